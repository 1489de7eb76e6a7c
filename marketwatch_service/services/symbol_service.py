"""
标的数据服务
整合存储、索引、获取、分析四层，对外提供读穿透缓存接口

并发说明：未命中路径上的写缓存与追加索引都是无条件的，没有先查后写的原子性。
同一未缓存标的的两个并发请求会各自请求上游、各自写缓存（后写者覆盖），
并各自追加索引（可能产生重复项，见 KeyIndex）。
"""

import json
import logging
from typing import Any, Optional

from marketwatch_service.config import settings
from marketwatch_service.db import get_store
from marketwatch_service.errors import ValidationError
from marketwatch_service.layers.acquisition import AcquisitionLayer, get_acquisition_layer
from marketwatch_service.layers.analysis import AnalysisLayer, get_analysis_layer
from marketwatch_service.layers.key_index import KeyIndex
from marketwatch_service.layers.store import KeyValueStore, _make_key
from marketwatch_service.models.records import OhlcSample, PivotLevels, PivotRecord

logger = logging.getLogger(__name__)


def symbol_key(symbol: str) -> str:
    """复合记录的存储键"""
    return _make_key(settings.SYMBOL_CACHE_NAMESPACE, symbol)


def pivot_key(symbol: str, previous_day: bool) -> str:
    return _make_key(settings.PIVOT_CACHE_NAMESPACE, symbol, "previous" if previous_day else "last")


def validate_symbol(symbol: Any) -> str:
    """标的代码必须为非空字符串，且不能包含索引分隔符"""
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValidationError("请在请求体中提供 symbol")
    if settings.KEY_INDEX_DELIMITER in symbol:
        raise ValidationError(f"symbol 不能包含分隔符 '{settings.KEY_INDEX_DELIMITER}'")
    return symbol


def _decode(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        # 按存储原样返回
        return raw


class SymbolService:
    """标的读穿透缓存服务"""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        acquisition: Optional[AcquisitionLayer] = None,
        analysis: Optional[AnalysisLayer] = None,
        index: Optional[KeyIndex] = None,
    ):
        self._store = store
        self._index = index
        self._acq = acquisition or get_acquisition_layer()
        self._analysis = analysis or get_analysis_layer()

    @property
    def store(self) -> KeyValueStore:
        return self._store or get_store()

    @property
    def index(self) -> KeyIndex:
        return self._index or KeyIndex(self.store)

    # ── 复合记录 ──────────────────────────────────────────

    async def get_or_populate(self, symbol: Any, skip_cache: bool = False) -> Any:
        """
        读穿透获取标的复合记录

        Args:
            symbol: 标的代码（区分大小写）
            skip_cache: 为 True 时跳过缓存，强制从上游刷新并覆盖缓存
        """
        symbol = validate_symbol(symbol)
        index = self.index
        await index.ensure_initialized()

        if not skip_cache:
            raw = await self.store.get(symbol_key(symbol))
            if raw is not None:
                logger.debug(f"缓存命中: {symbol}")
                return _decode(raw)
            logger.debug(f"缓存未命中: {symbol}")

        return await self.populate(symbol, index)

    async def populate(self, symbol: str, index: Optional[KeyIndex] = None) -> Any:
        """从上游聚合 → 写缓存 → 追加索引；聚合失败时不写入任何数据"""
        data = await self._acq.fetch_symbol_info(symbol)
        await self.store.put(symbol_key(symbol), json.dumps(data, ensure_ascii=False))
        await (index or self.index).append(symbol)
        logger.info(f"{symbol} 已写入缓存")
        return data

    # ── 日线 / 枢轴点 ─────────────────────────────────────

    async def compute_ohlc_last_day(
        self, symbol: Any, use_previous_day: bool = False
    ) -> OhlcSample:
        symbol = validate_symbol(symbol)
        return await self._acq.fetch_last_day_sample(symbol, use_previous_day)

    def pivot_levels(self, ohlc: OhlcSample) -> PivotLevels:
        return self._analysis.pivot_levels_for(ohlc)

    async def get_pivot_record(
        self, symbol: Any, use_previous_day: bool = False, skip_cache: bool = False
    ) -> PivotRecord:
        """日线取样 + 枢轴点，结果按 PIVOT_CACHE_TTL 缓存，不进入刷新索引"""
        symbol = validate_symbol(symbol)
        ttl = settings.PIVOT_CACHE_TTL
        key = pivot_key(symbol, use_previous_day)

        if ttl and not skip_cache:
            raw = await self.store.get(key)
            if raw is not None:
                return PivotRecord.model_validate_json(raw)

        sample = await self._acq.fetch_last_day_sample(symbol, use_previous_day)
        record = PivotRecord(
            symbol=symbol,
            previous_day=use_previous_day,
            sample=sample,
            levels=self.pivot_levels(sample),
        )
        if ttl:
            await self.store.put(key, record.model_dump_json(), ttl=ttl)
        return record


# ── 模块级别单例 ──────────────────────────────────────────
_symbol_service: Optional[SymbolService] = None


def get_symbol_service() -> SymbolService:
    global _symbol_service
    if _symbol_service is None:
        _symbol_service = SymbolService()
    return _symbol_service
