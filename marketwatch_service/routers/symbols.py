"""
标的数据路由
POST /api/symbols                       - 读穿透获取复合记录（请求体 symbol / skipCache）
GET  /api/symbols/{symbol}              - 同上，查询参数形式
GET  /api/symbols/{symbol}/ohlc         - 最后一日（或前一日）OHLCV
GET  /api/symbols/{symbol}/pivots       - 枢轴点支撑 / 阻力位
"""

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from marketwatch_service.models.response import ApiResponse
from marketwatch_service.services.symbol_service import get_symbol_service

router = APIRouter(prefix="/api/symbols", tags=["标的数据"])


class SymbolRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: Optional[str] = None
    skip_cache: bool = Field(default=False, alias="skipCache")


@router.post("", response_model=ApiResponse)
async def post_symbol(body: SymbolRequest):
    """获取标的复合记录，skipCache 为 true 时强制刷新"""
    data = await get_symbol_service().get_or_populate(body.symbol, skip_cache=body.skip_cache)
    return ApiResponse.ok(data=data)


@router.get("/{symbol}", response_model=ApiResponse)
async def get_symbol(
    symbol: str,
    skip_cache: bool = Query(default=False),
):
    data = await get_symbol_service().get_or_populate(symbol, skip_cache=skip_cache)
    return ApiResponse.ok(data=data)


@router.get("/{symbol}/ohlc", response_model=ApiResponse)
async def get_ohlc(
    symbol: str,
    previous_day: bool = Query(default=False, description="取前一交易日而非最后一日"),
):
    sample = await get_symbol_service().compute_ohlc_last_day(symbol, previous_day)
    return ApiResponse.ok(data=sample.model_dump())


@router.get("/{symbol}/pivots", response_model=ApiResponse)
async def get_pivots(
    symbol: str,
    previous_day: bool = Query(default=False),
    skip_cache: bool = Query(default=False),
):
    """经典枢轴点（支撑 / 阻力位）"""
    record = await get_symbol_service().get_pivot_record(
        symbol, use_previous_day=previous_day, skip_cache=skip_cache
    )
    return ApiResponse.ok(data=record.model_dump())
