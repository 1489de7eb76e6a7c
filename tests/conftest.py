"""测试公共夹具：内存存储与假的上游获取层"""

import asyncio
import os
import sys
from typing import Any, Dict, Iterable, Optional

import pytest

# 确保项目根目录在 sys.path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from marketwatch_service.errors import FetchError  # noqa: E402
from marketwatch_service.layers.store import MemoryStore  # noqa: E402
from marketwatch_service.models.records import OhlcSample  # noqa: E402


class CountingStore(MemoryStore):
    """记录每次读写的内存存储"""

    def __init__(self):
        super().__init__()
        self.gets = []
        self.puts = []

    async def get(self, key: str) -> Optional[str]:
        self.gets.append(key)
        return await super().get(key)

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self.puts.append(key)
        await super().put(key, value, ttl=ttl)


class FakeAcquisition:
    """
    与 AcquisitionLayer 接口一致的假实现。
    每次调用都会 await asyncio.sleep(0)，模拟真实的 I/O 挂起点。
    """

    def __init__(
        self,
        records: Optional[Dict[str, Any]] = None,
        failing: Iterable[str] = (),
        sample: Optional[Dict[str, float]] = None,
    ):
        self.records = records or {}
        self.failing = set(failing)
        self.sample = sample or {"open": 10.0, "high": 20.0, "low": 5.0, "close": 15.0}
        self.calls = []
        self.sample_calls = []
        self.version = 0

    async def fetch_symbol_info(self, symbol: str) -> Dict[str, Any]:
        self.calls.append(symbol)
        await asyncio.sleep(0)
        if symbol in self.failing:
            raise FetchError(f"上游返回错误: Not Found: {symbol}", module="price")
        self.version += 1
        return self.records.get(
            symbol,
            {"price": {"symbol": symbol, "version": self.version}, "summaryDetail": {}},
        )

    async def fetch_last_day_sample(self, symbol: str, use_previous_day: bool = False) -> OhlcSample:
        self.sample_calls.append((symbol, use_previous_day))
        await asyncio.sleep(0)
        if symbol in self.failing:
            raise FetchError(f"chart 请求失败: {symbol}")
        return OhlcSample(
            symbol=symbol,
            timestamp=1700000000 if use_previous_day else 1700086400,
            volume=1000.0,
            **self.sample,
        )


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def acquisition() -> FakeAcquisition:
    return FakeAcquisition(failing={"FAIL"})
