"""
Layer 1 – 键值存储层
对外只暴露 get / put / compare_and_set 三个原语，没有事务，也没有列举键的能力。
后端：Redis（默认） → MongoDB → 内存（测试及降级模式）
"""

import hashlib
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError, PyMongoError
from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from marketwatch_service.errors import StoreError

logger = logging.getLogger(__name__)


def _make_key(namespace: str, *parts: str) -> str:
    """生成规范化存储键"""
    raw = ":".join([namespace] + list(parts))
    if len(raw) > 200:
        raw = namespace + ":" + hashlib.md5(raw.encode()).hexdigest()
    return raw


class KeyValueStore:
    """键值存储接口，所有值均为字符串"""

    backend = "abstract"

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    async def compare_and_set(
        self, key: str, expected: Optional[str], value: str
    ) -> bool:
        """当前值等于 expected 时写入 value；expected 为 None 表示键必须不存在"""
        raise NotImplementedError

    async def stats(self) -> Dict[str, Any]:
        return {"backend": self.backend}


# ── 内存 ──────────────────────────────────────────────────

class MemoryStore(KeyValueStore):
    """进程内存储，用于测试以及外部存储不可用时的降级运行"""

    backend = "memory"

    def __init__(self):
        # key -> (expires_at 或 None, value)
        self._data: Dict[str, Tuple[Optional[float], str]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and expires_at < time.time():
            self._data.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.time() + ttl if ttl else None
        self._data[key] = (expires_at, value)

    async def compare_and_set(
        self, key: str, expected: Optional[str], value: str
    ) -> bool:
        # 协程调度下两次 await 之间没有挂起点，读与写天然原子
        current = await self.get(key)
        if current != expected:
            return False
        self._data[key] = (None, value)
        return True

    async def stats(self) -> Dict[str, Any]:
        return {"backend": self.backend, "keys": len(self._data), "status": "healthy"}


# ── Redis ─────────────────────────────────────────────────

class RedisStore(KeyValueStore):
    backend = "redis"

    def __init__(self, client: Redis):
        self._redis = client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            logger.warning(f"Redis 读取失败: {key}: {exc}")
            raise StoreError(f"Redis 读取失败: {key}") from exc

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            if ttl:
                await self._redis.setex(key, ttl, value)
            else:
                await self._redis.set(key, value)
            logger.debug(f"存储写入（Redis）: {key}")
        except RedisError as exc:
            logger.warning(f"Redis 写入失败: {key}: {exc}")
            raise StoreError(f"Redis 写入失败: {key}") from exc

    async def compare_and_set(
        self, key: str, expected: Optional[str], value: str
    ) -> bool:
        """WATCH / MULTI 乐观事务"""
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value)
                await pipe.execute()
                return True
        except WatchError:
            logger.debug(f"Redis 条件写冲突: {key}")
            return False
        except RedisError as exc:
            raise StoreError(f"Redis 条件写失败: {key}") from exc

    async def stats(self) -> Dict[str, Any]:
        try:
            return {"backend": self.backend, "keys": await self._redis.dbsize(), "status": "healthy"}
        except RedisError as exc:
            return {"backend": self.backend, "status": "error", "error": str(exc)}


# ── MongoDB ───────────────────────────────────────────────

class MongoStore(KeyValueStore):
    """文档结构：{key, value, expires_at}，key 上需要唯一索引"""

    backend = "mongodb"

    def __init__(self, collection: AsyncIOMotorCollection):
        self._coll = collection

    async def get(self, key: str) -> Optional[str]:
        try:
            doc = await self._coll.find_one({"key": key})
            if not doc:
                return None
            expires_at = doc.get("expires_at")
            if expires_at and expires_at.replace(tzinfo=timezone.utc) < datetime.now(tz=timezone.utc):
                await self._coll.delete_one({"key": key})
                return None
            return doc.get("value")
        except PyMongoError as exc:
            logger.warning(f"MongoDB 读取失败: {key}: {exc}")
            raise StoreError(f"MongoDB 读取失败: {key}") from exc

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = datetime.now(tz=timezone.utc) + timedelta(seconds=ttl) if ttl else None
        try:
            await self._coll.update_one(
                {"key": key},
                {"$set": {"key": key, "value": value, "expires_at": expires_at}},
                upsert=True,
            )
            logger.debug(f"存储写入（MongoDB）: {key}")
        except PyMongoError as exc:
            logger.warning(f"MongoDB 写入失败: {key}: {exc}")
            raise StoreError(f"MongoDB 写入失败: {key}") from exc

    async def compare_and_set(
        self, key: str, expected: Optional[str], value: str
    ) -> bool:
        try:
            if expected is None:
                await self._coll.insert_one({"key": key, "value": value, "expires_at": None})
                return True
            result = await self._coll.update_one(
                {"key": key, "value": expected},
                {"$set": {"value": value}},
            )
            return result.matched_count == 1
        except DuplicateKeyError:
            return False
        except PyMongoError as exc:
            raise StoreError(f"MongoDB 条件写失败: {key}") from exc

    async def stats(self) -> Dict[str, Any]:
        try:
            count = await self._coll.count_documents({})
            return {"backend": self.backend, "documents": count, "status": "healthy"}
        except PyMongoError as exc:
            return {"backend": self.backend, "status": "error", "error": str(exc)}
