"""
存储连接管理模块
根据 STORE_BACKEND 初始化 Redis（异步）或 MongoDB（异步）连接，
外部存储不可用时降级为进程内存储
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from redis.asyncio import Redis, ConnectionPool

from marketwatch_service.config import settings
from marketwatch_service.layers.store import KeyValueStore, MemoryStore, MongoStore, RedisStore

logger = logging.getLogger(__name__)

# ── 全局连接实例 ─────────────────────────────────────────
_mongo_client: Optional[AsyncIOMotorClient] = None
_redis_client: Optional[Redis] = None
_redis_pool: Optional[ConnectionPool] = None
_store: Optional[KeyValueStore] = None


async def init_redis() -> Optional[RedisStore]:
    """初始化 Redis 异步连接，失败返回 None"""
    global _redis_client, _redis_pool
    try:
        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=10,
        )
        _redis_client = Redis(connection_pool=_redis_pool)
        await _redis_client.ping()
        logger.info(f"✅ Redis 连接成功: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return RedisStore(_redis_client)
    except Exception as exc:
        logger.warning(f"⚠️ Redis 连接失败（服务将继续以降级模式运行）: {exc}")
        _redis_client = None
        _redis_pool = None
        return None


async def init_mongodb() -> Optional[MongoStore]:
    """初始化 MongoDB 异步连接，失败返回 None"""
    global _mongo_client
    try:
        _mongo_client = AsyncIOMotorClient(
            settings.MONGO_URI,
            serverSelectionTimeoutMS=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
        )
        await _mongo_client.admin.command("ping")
        collection = _mongo_client[settings.MONGODB_DATABASE][settings.MONGODB_COLLECTION]
        await collection.create_index("key", unique=True)
        logger.info(f"✅ MongoDB 连接成功: {settings.MONGODB_HOST}:{settings.MONGODB_PORT}")
        return MongoStore(collection)
    except Exception as exc:
        logger.warning(f"⚠️ MongoDB 连接失败（服务将继续以降级模式运行）: {exc}")
        _mongo_client = None
        return None


async def init_store() -> KeyValueStore:
    """按配置初始化存储后端，返回实际使用的存储"""
    global _store
    backend = settings.STORE_BACKEND.lower()
    store: Optional[KeyValueStore] = None
    if backend == "redis":
        store = await init_redis()
    elif backend == "mongodb":
        store = await init_mongodb()
    elif backend != "memory":
        logger.warning(f"未知的存储后端: {backend}")

    if store is None:
        if backend != "memory":
            logger.warning("⚠️ 存储降级为进程内存模式，重启后缓存丢失")
        store = MemoryStore()
    _store = store
    return store


async def close_connections():
    """关闭所有存储连接"""
    global _mongo_client, _redis_client, _redis_pool, _store
    if _mongo_client:
        _mongo_client.close()
        _mongo_client = None
        logger.info("MongoDB 连接已关闭")
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis 连接已关闭")
    _store = None


def set_store(store: Optional[KeyValueStore]) -> None:
    """替换当前存储实例（测试注入用）"""
    global _store
    _store = store


def get_store() -> KeyValueStore:
    """获取当前存储实例，未初始化时使用内存存储"""
    global _store
    if _store is None:
        _store = MemoryStore()
    return _store


async def check_health() -> dict:
    """检查存储连接健康状态"""
    result = {
        "backend": get_store().backend,
        "redis": {"status": "disabled"},
        "mongodb": {"status": "disabled"},
    }
    if _redis_client:
        try:
            await _redis_client.ping()
            result["redis"] = {"status": "healthy", "host": settings.REDIS_HOST}
        except Exception as exc:
            result["redis"] = {"status": "unhealthy", "error": str(exc)}
    elif settings.STORE_BACKEND.lower() == "redis":
        result["redis"] = {"status": "disconnected"}

    if _mongo_client:
        try:
            await _mongo_client.admin.command("ping")
            result["mongodb"] = {"status": "healthy", "host": settings.MONGODB_HOST}
        except Exception as exc:
            result["mongodb"] = {"status": "unhealthy", "error": str(exc)}
    elif settings.STORE_BACKEND.lower() == "mongodb":
        result["mongodb"] = {"status": "disconnected"}

    return result
