"""
缓存管理路由
GET  /api/cache/keys      - 定时刷新索引中的标的
GET  /api/cache/stats     - 存储统计
POST /api/cache/refresh   - 立即执行一次刷新
"""

from fastapi import APIRouter

from marketwatch_service.db import get_store
from marketwatch_service.layers.key_index import KeyIndex
from marketwatch_service.models.response import ApiResponse
from marketwatch_service.services.refresh_service import get_refresh_service

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


@router.get("/keys", response_model=ApiResponse)
async def list_keys():
    symbols = await KeyIndex(get_store()).list_symbols()
    return ApiResponse.ok(data={"count": len(symbols), "symbols": symbols})


@router.get("/stats", response_model=ApiResponse)
async def cache_stats():
    """获取存储统计信息"""
    return ApiResponse.ok(data=await get_store().stats())


@router.post("/refresh", response_model=ApiResponse)
async def refresh_now():
    """手动触发一次刷新（与定时任务相同的逻辑）"""
    report = await get_refresh_service().refresh_once()
    return ApiResponse.ok(data=report.model_dump(), message=f"刷新完成: {len(report.refreshed)} 个标的")
