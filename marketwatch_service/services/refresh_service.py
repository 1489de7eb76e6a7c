"""
定时刷新服务
读取标的索引，重新从上游聚合并覆盖缓存。

两种模式：
  single : 按索引顺序尝试，第一个刷新成功的标的写入后立即返回（现有行为）
  sweep  : 遍历索引中的全部标的
单个标的失败只记录日志并继续下一个；整个任务对外不产生结果。
"""

import asyncio
import json
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from marketwatch_service.config import settings
from marketwatch_service.db import get_store
from marketwatch_service.layers.acquisition import AcquisitionLayer, get_acquisition_layer
from marketwatch_service.layers.key_index import KeyIndex
from marketwatch_service.layers.store import KeyValueStore
from marketwatch_service.services.symbol_service import symbol_key

logger = logging.getLogger(__name__)

REFRESH_MODES = ("single", "sweep")


class RefreshReport(BaseModel):
    """一次刷新的结果"""
    mode: str
    attempted: List[str] = Field(default_factory=list)
    refreshed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class RefreshService:
    """按索引刷新缓存"""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        acquisition: Optional[AcquisitionLayer] = None,
        mode: Optional[str] = None,
    ):
        self._store = store
        self._acq = acquisition or get_acquisition_layer()
        self.mode = (mode or settings.REFRESH_MODE).lower()
        if self.mode not in REFRESH_MODES:
            raise ValueError(f"不支持的刷新模式: {self.mode}，可选: {REFRESH_MODES}")

    @property
    def store(self) -> KeyValueStore:
        return self._store or get_store()

    async def refresh_once(self) -> RefreshReport:
        report = RefreshReport(mode=self.mode)
        symbols = await KeyIndex(self.store).list_symbols()
        logger.info(f"开始刷新缓存（模式：{self.mode}），索引共 {len(symbols)} 个标的")

        for symbol in symbols:
            report.attempted.append(symbol)
            try:
                data = await self._acq.fetch_symbol_info(symbol)
                await self.store.put(symbol_key(symbol), json.dumps(data, ensure_ascii=False))
            except Exception as exc:
                report.failed.append(symbol)
                logger.warning(f"{symbol} 刷新失败，跳过: {exc}")
                continue
            report.refreshed.append(symbol)
            logger.info(f"{symbol} 刷新成功")
            if self.mode == "single":
                break

        logger.info(
            f"刷新结束: 成功 {len(report.refreshed)} / 失败 {len(report.failed)}"
        )
        return report


class RefreshScheduler:
    """事件循环上的周期任务，按固定间隔调用 refresh_once，任何异常都不会终止进程"""

    def __init__(self, service: RefreshService, interval: Optional[float] = None):
        self._service = service
        self.interval = interval or settings.REFRESH_INTERVAL_SECONDS
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="marketwatch-refresh")
        logger.info(f"定时刷新已启动，间隔 {self.interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("定时刷新已停止")

    async def tick(self) -> Optional[RefreshReport]:
        """执行一次刷新；失败只记日志"""
        try:
            return await self._service.refresh_once()
        except Exception as exc:
            logger.error(f"定时刷新异常: {exc}", exc_info=True)
            return None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()


# ── 模块级别单例 ──────────────────────────────────────────
_refresh_service: Optional[RefreshService] = None


def get_refresh_service() -> RefreshService:
    global _refresh_service
    if _refresh_service is None:
        _refresh_service = RefreshService()
    return _refresh_service
