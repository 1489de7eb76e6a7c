"""
Layer 2 – 标的索引层
存储不提供列举键的能力，因此用一个保留键手工维护需要定时刷新的标的列表，
值为以分隔符结尾拼接的字符串，例如 "AAPL,MSFT,"。

默认的 append 是无隔离的读-改-写：并发追加同一个未缓存标的时可能丢失
一次追加，也可能写入重复项。开启 atomic 后改用存储的条件写，并跳过已存在的标的。
"""

import logging
from typing import List, Optional

from marketwatch_service.config import settings
from marketwatch_service.errors import IndexConflictError
from marketwatch_service.layers.store import KeyValueStore

logger = logging.getLogger(__name__)


class KeyIndex:
    """定时刷新标的索引"""

    def __init__(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
        delimiter: Optional[str] = None,
        atomic: Optional[bool] = None,
        max_retries: Optional[int] = None,
    ):
        self._store = store
        self.key = key or settings.KEY_INDEX_KEY
        self.delimiter = delimiter or settings.KEY_INDEX_DELIMITER
        self.atomic = settings.KEY_INDEX_ATOMIC_APPEND if atomic is None else atomic
        self.max_retries = max_retries or settings.KEY_INDEX_MAX_RETRIES

    async def ensure_initialized(self) -> None:
        """索引键不存在时写入空字符串，可重复调用"""
        if await self._store.get(self.key) is None:
            await self._store.put(self.key, "")
            logger.info(f"标的索引已初始化: {self.key}")

    def _split(self, raw: str) -> List[str]:
        entries = raw.split(self.delimiter)
        # 末尾分隔符会产生一个空元素
        if entries and entries[-1] == "":
            entries.pop()
        return entries

    async def list_symbols(self) -> List[str]:
        """按追加顺序返回索引中的标的；索引不存在时会先初始化为空"""
        raw = await self._store.get(self.key)
        if raw is None:
            await self._store.put(self.key, "")
            return []
        return self._split(raw)

    async def append(self, symbol: str) -> None:
        if self.atomic:
            await self._append_atomic(symbol)
            return
        current = await self._store.get(self.key)
        # 未初始化时按空串处理
        await self._store.put(self.key, (current or "") + symbol + self.delimiter)
        logger.debug(f"标的索引追加: {symbol}")

    async def _append_atomic(self, symbol: str) -> None:
        for attempt in range(self.max_retries):
            current = await self._store.get(self.key)
            if current is not None and symbol in self._split(current):
                logger.debug(f"标的已在索引中，跳过追加: {symbol}")
                return
            updated = (current or "") + symbol + self.delimiter
            if await self._store.compare_and_set(self.key, current, updated):
                logger.debug(f"标的索引追加（条件写）: {symbol}")
                return
            logger.debug(f"标的索引条件写冲突（第 {attempt + 1} 次）: {symbol}")
        raise IndexConflictError(
            f"标的索引追加失败，重试 {self.max_retries} 次仍冲突: {symbol}"
        )
