"""
Layer 5 – 分析层
经典（场内交易员）枢轴点法：由单日 OHLC 推导三档支撑位与阻力位。
全部使用双精度浮点计算，展示时再四舍五入。
"""

from typing import Optional

from marketwatch_service.models.records import OhlcSample, PivotLevels


class AnalysisLayer:
    """枢轴点计算"""

    def pivot_levels(
        self, open_: float, high: float, low: float, close: float
    ) -> PivotLevels:
        pivot = (open_ + high + low + close) / 4
        spread = high - low
        return PivotLevels(
            pivot=pivot,
            first_resistance=2 * pivot - low,
            second_resistance=pivot + spread,
            third_resistance=pivot + 2 * spread,
            first_support=2 * pivot - high,
            second_support=pivot - spread,
            third_support=pivot - 2 * spread,
        )

    def pivot_levels_for(self, sample: OhlcSample) -> PivotLevels:
        return self.pivot_levels(sample.open, sample.high, sample.low, sample.close)


# ── 模块级别单例 ──────────────────────────────────────────
_analysis: Optional[AnalysisLayer] = None


def get_analysis_layer() -> AnalysisLayer:
    global _analysis
    if _analysis is None:
        _analysis = AnalysisLayer()
    return _analysis
