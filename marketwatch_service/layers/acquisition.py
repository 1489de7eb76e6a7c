"""
Layer 3 – 数据获取层
逐个模块请求上游 quoteSummary 接口并聚合为一条复合记录；任一模块失败即整体失败，
绝不返回部分结果。另提供 chart 接口的单日取样。

限速为软限速：每第 N 次调用前暂停一段时间，使用 asyncio.sleep，不阻塞事件循环上的其他任务。
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from marketwatch_service.config import settings
from marketwatch_service.errors import FetchError
from marketwatch_service.layers.extraction import extract
from marketwatch_service.layers.processing import SERIES_COLUMNS, get_processing_layer
from marketwatch_service.models.records import OhlcSample

logger = logging.getLogger(__name__)

_QUOTE_SUMMARY_ROOT = "quoteSummary"
_CHART_ROOT = "chart"

# chart 序列在文档中的位置
_CHART_SERIES_PATHS = {
    "timestamp": "chart.result.0.timestamp",
    "open": "chart.result.0.indicators.quote.0.open",
    "high": "chart.result.0.indicators.quote.0.high",
    "low": "chart.result.0.indicators.quote.0.low",
    "close": "chart.result.0.indicators.quote.0.close",
    "volume": "chart.result.0.indicators.quote.0.volume",
}


def _upstream_error(document: Any, root: str) -> Optional[Dict[str, Any]]:
    """识别 {root: {error: {code, description}}} 形式的上游业务错误"""
    if not isinstance(document, dict):
        return None
    body = document.get(root)
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if error:
        return error if isinstance(error, dict) else {"description": str(error)}
    return None


class AcquisitionLayer:
    """上游多模块聚合客户端"""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        modules: Optional[List[str]] = None,
        rate_limit_every: Optional[int] = None,
        rate_limit_pause: Optional[float] = None,
    ):
        self._client = client
        self.modules = list(modules or settings.QUOTE_SUMMARY_MODULES)
        self.rate_limit_every = (
            settings.RATE_LIMIT_EVERY if rate_limit_every is None else rate_limit_every
        )
        self.rate_limit_pause = (
            settings.RATE_LIMIT_PAUSE_SECONDS if rate_limit_pause is None else rate_limit_pause
        )
        self._proc = get_processing_layer()

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.UPSTREAM_TIMEOUT,
            headers={"User-Agent": settings.UPSTREAM_USER_AGENT},
            follow_redirects=True,
        )

    # ── URL ───────────────────────────────────────────────

    def module_url(self, symbol: str, module: str) -> str:
        return settings.UPSTREAM_QUOTE_SUMMARY_URL.format(
            symbol=quote(symbol, safe=""), module=module
        )

    def chart_url(self, symbol: str) -> str:
        return settings.UPSTREAM_CHART_URL.format(symbol=quote(symbol, safe=""))

    # ── 单次请求 ──────────────────────────────────────────

    async def fetch_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        root: str,
        module: Optional[str] = None,
    ) -> Any:
        """GET 并解析 JSON；网络错误、非 JSON、上游业务错误、HTTP 错误均抛出 FetchError"""
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(f"上游请求失败: {url}: {exc}", module=module) from exc

        try:
            document = resp.json()
        except ValueError as exc:
            raise FetchError(
                f"上游响应不是合法 JSON（HTTP {resp.status_code}）: {url}", module=module
            ) from exc

        error = _upstream_error(document, root)
        if error:
            raise FetchError(
                f"上游返回错误: {error.get('code')}: {error.get('description')}",
                module=module,
                code=error.get("code"),
                description=error.get("description"),
            )
        if resp.status_code >= 400:
            raise FetchError(f"上游 HTTP {resp.status_code}: {url}", module=module)
        return document

    async def _pace(self, index: int) -> None:
        if self.rate_limit_pause <= 0 or self.rate_limit_every <= 0:
            return
        if index % self.rate_limit_every == 0:
            logger.debug(f"限速暂停 {self.rate_limit_pause}s（第 {index} 次调用前）")
            await asyncio.sleep(self.rate_limit_pause)

    # ── 聚合 ──────────────────────────────────────────────

    async def fetch_symbol_info(self, symbol: str) -> Dict[str, Any]:
        """按固定顺序拉取全部模块，返回 {模块名: 模块数据}"""
        if self._client is not None:
            return await self._fetch_modules(self._client, symbol)
        async with self._new_client() as client:
            return await self._fetch_modules(client, symbol)

    async def _fetch_modules(self, client: httpx.AsyncClient, symbol: str) -> Dict[str, Any]:
        info: Dict[str, Any] = {}
        for i, module in enumerate(self.modules):
            await self._pace(i)
            document = await self.fetch_json(
                client, self.module_url(symbol, module), _QUOTE_SUMMARY_ROOT, module=module
            )
            info[module] = extract(document, f"{_QUOTE_SUMMARY_ROOT}.result.0.{module}")
        logger.info(f"{symbol} 聚合完成，共 {len(info)} 个模块")
        return info

    async def fetch_last_day_sample(
        self, symbol: str, use_previous_day: bool = False
    ) -> OhlcSample:
        """拉取 chart 接口，取最后一日（或前一日）的 OHLCV"""
        if self._client is not None:
            document = await self.fetch_json(self._client, self.chart_url(symbol), _CHART_ROOT)
        else:
            async with self._new_client() as client:
                document = await self.fetch_json(client, self.chart_url(symbol), _CHART_ROOT)

        series = {col: extract(document, _CHART_SERIES_PATHS[col]) for col in SERIES_COLUMNS}
        df = self._proc.series_to_frame(series)
        return self._proc.select_sample(df, symbol, use_previous_day)


# ── 模块级别单例 ──────────────────────────────────────────
_acquisition: Optional[AcquisitionLayer] = None


def get_acquisition_layer() -> AcquisitionLayer:
    global _acquisition
    if _acquisition is None:
        _acquisition = AcquisitionLayer()
    return _acquisition
