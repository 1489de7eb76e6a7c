"""日线取样与枢轴点记录模型"""

from typing import Optional

from pydantic import BaseModel


class OhlcSample(BaseModel):
    """单日 OHLCV 取样"""
    symbol: str
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None


class PivotLevels(BaseModel):
    """经典枢轴点：枢轴 + 三档阻力位 + 三档支撑位"""
    pivot: float
    first_resistance: float
    second_resistance: float
    third_resistance: float
    first_support: float
    second_support: float
    third_support: float


class PivotRecord(BaseModel):
    """缓存的支撑 / 阻力记录"""
    symbol: str
    previous_day: bool
    sample: OhlcSample
    levels: PivotLevels
