"""健康检查路由"""

import time

from fastapi import APIRouter

from marketwatch_service import __version__
from marketwatch_service.db import check_health

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查"""
    store_health = await check_health()
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "MarketWatch",
            "store": store_health,
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes 存活检查"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes 就绪检查"""
    return {"ready": True}
