"""
MarketWatch 行情缓存服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn marketwatch_service.main:app --host 0.0.0.0 --port 8002
    python -m marketwatch_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketwatch_service import __version__
from marketwatch_service.config import settings
from marketwatch_service.db import init_store, close_connections
from marketwatch_service.errors import FetchError, StoreError, ValidationError
from marketwatch_service.models.response import ApiResponse
from marketwatch_service.routers import health, symbols, cache
from marketwatch_service.services.refresh_service import RefreshScheduler, get_refresh_service

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 MarketWatch v{__version__} 启动中")
    logger.info(f"   Store     : {settings.STORE_BACKEND}")
    logger.info(f"   Refresh   : {settings.REFRESH_MODE} / {settings.REFRESH_INTERVAL_SECONDS}s")
    logger.info("=" * 60)

    store = await init_store()
    logger.info(f"✅ 存储就绪（{store.backend}）")

    scheduler = None
    if settings.REFRESH_ENABLED:
        scheduler = RefreshScheduler(get_refresh_service())
        scheduler.start()
    app.state.scheduler = scheduler

    yield

    logger.info("🔄 行情缓存服务正在关闭...")
    if scheduler:
        await scheduler.stop()
    await close_connections()
    logger.info("✅ 行情缓存服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="MarketWatch 行情缓存服务",
    description=(
        "第三方金融数据 API 前的读穿透缓存与定时刷新层：\n"
        "- 📊 多模块聚合标的数据并缓存\n"
        "- 🔁 按索引定时刷新缓存\n"
        "- 📈 日线取样与枢轴点（支撑 / 阻力位）\n\n"
        "**分层架构**\n"
        "```\n"
        "Store        ← Redis / MongoDB / 内存 键值存储\n"
        "Key Index    ← 定时刷新标的索引\n"
        "Acquisition  ← 上游多模块聚合（软限速）\n"
        "Processing   ← 日线序列整理与取样\n"
        "Analysis     ← 枢轴点计算\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 异常处理 ──────────────────────────────────────────────
def _error_response(status_code: int, exc: Exception, message: str) -> JSONResponse:
    body = ApiResponse.from_exception(exc, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return _error_response(400, exc, "请求参数错误")


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    # 请求体类型错误或不是合法 JSON，与业务校验失败统一为 400
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    body = ApiResponse.fail(
        error=detail or "请求体格式错误",
        message="请求参数错误",
        error_type=ValidationError.__name__,
    )
    return JSONResponse(status_code=400, content=body.model_dump())


@app.exception_handler(FetchError)
async def fetch_exception_handler(request: Request, exc: FetchError):
    logger.warning(f"上游数据获取失败: {exc}")
    return _error_response(502, exc, "上游数据获取失败")


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    logger.error(f"存储访问失败: {exc}")
    return _error_response(503, exc, "存储不可用")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "内部服务错误", "message": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(symbols.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "MarketWatch",
        "version": __version__,
        "usage": "POST /api/symbols {\"symbol\": \"AAPL\", \"skipCache\": false}",
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "marketwatch_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
