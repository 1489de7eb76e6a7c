"""
Layer 4 – 数据处理层
将上游 chart 接口返回的六条并行序列整理为 DataFrame，并按需取最后一日或前一日。
"""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from marketwatch_service.errors import FetchError
from marketwatch_service.models.records import OhlcSample

logger = logging.getLogger(__name__)

SERIES_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]
_PRICE_COLUMNS = ["open", "high", "low", "close"]


class ProcessingLayer:
    """数据处理层：序列整理 + 取样"""

    def series_to_frame(self, series: Dict[str, List[Any]]) -> pd.DataFrame:
        """
        六条并行序列 → DataFrame

        标准列：timestamp, open, high, low, close, volume
        行顺序与上游一致，不排序、不去重
        """
        missing = [col for col in SERIES_COLUMNS if not isinstance(series.get(col), list)]
        if missing:
            raise FetchError(f"chart 数据缺少序列: {', '.join(missing)}")

        lengths = {len(series[col]) for col in SERIES_COLUMNS}
        if len(lengths) != 1:
            raise FetchError(f"chart 序列长度不一致: {sorted(lengths)}")

        df = pd.DataFrame({col: series[col] for col in SERIES_COLUMNS})
        for col in SERIES_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        return df

    def select_sample(
        self, df: pd.DataFrame, symbol: str, use_previous_day: bool = False
    ) -> OhlcSample:
        """取最后一个元素，或 use_previous_day 时取倒数第二个元素"""
        offset = 2 if use_previous_day else 1
        if len(df) < offset:
            raise FetchError(
                f"{symbol} chart 数据不足: 需要 {offset} 条，实际 {len(df)} 条"
            )

        row = df.iloc[-offset]
        prices = {col: row[col] for col in _PRICE_COLUMNS}
        if pd.isna(row["timestamp"]) or any(pd.isna(v) for v in prices.values()):
            raise FetchError(f"{symbol} 所选交易日报价不完整")

        volume = row["volume"]
        return OhlcSample(
            symbol=symbol,
            timestamp=int(row["timestamp"]),
            open=float(prices["open"]),
            high=float(prices["high"]),
            low=float(prices["low"]),
            close=float(prices["close"]),
            volume=None if pd.isna(volume) else float(volume),
        )


# ── 模块级别单例 ──────────────────────────────────────────
_processor: Optional[ProcessingLayer] = None


def get_processing_layer() -> ProcessingLayer:
    global _processor
    if _processor is None:
        _processor = ProcessingLayer()
    return _processor
