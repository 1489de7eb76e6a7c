"""
行情缓存服务配置模块
支持从环境变量读取配置，自动检测 Docker 容器环境并启用服务发现
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_mongo_host() -> str:
    """Docker 环境使用服务名 'mongodb'，本地使用 'localhost'"""
    return "mongodb" if _is_docker() else "localhost"


def _default_redis_host() -> str:
    """Docker 环境使用服务名 'redis'，本地使用 'localhost'"""
    return "redis" if _is_docker() else "localhost"


# 上游 quoteSummary 模块，按拉取顺序排列
DEFAULT_QUOTE_SUMMARY_MODULES = [
    "summaryProfile",
    "summaryDetail",
    "esgScores",
    "price",
    "assetProfile",
    "incomeStatementHistoryQuarterly",
    "balanceSheetHistory",
    "balanceSheetHistoryQuarterly",
    "cashflowStatementHistory",
    "defaultKeyStatistics",
    "financialData",
    "calendarEvents",
    "secFilings",
    "recommendationTrend",
    "upgradeDowngradeHistory",
    "institutionOwnership",
    "fundOwnership",
    "majorDirectHolders",
    "majorHoldersBreakdown",
    "insiderTransactions",
    "insiderHolders",
    "netSharePurchaseActivity",
    "earnings",
    "earningsHistory",
    "earningsTrend",
    "industryTrend",
    "indexTrend",
    "sectorTrend",
    "cashflowStatementHistoryQuarterly",
]


class MarketWatchSettings(BaseSettings):
    """行情缓存服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8002)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── 存储后端 ──────────────────────────────────────────
    # redis / mongodb / memory，连接失败时降级为 memory
    STORE_BACKEND: str = Field(default="redis")

    # ── Redis 配置（支持服务发现） ─────────────────────────
    REDIS_HOST: str = Field(default_factory=_default_redis_host)
    REDIS_PORT: int = Field(default=6379)
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_MAX_CONNECTIONS: int = Field(default=20)

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── MongoDB 配置（支持服务发现） ───────────────────────
    MONGODB_HOST: str = Field(default_factory=_default_mongo_host)
    MONGODB_PORT: int = Field(default=27017)
    MONGODB_USERNAME: str = Field(default="")
    MONGODB_PASSWORD: str = Field(default="")
    MONGODB_DATABASE: str = Field(default="marketwatch")
    MONGODB_AUTH_SOURCE: str = Field(default="admin")
    MONGODB_COLLECTION: str = Field(default="marketwatch_symbols")
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = Field(default=5000)

    @property
    def MONGO_URI(self) -> str:
        if self.MONGODB_USERNAME and self.MONGODB_PASSWORD:
            return (
                f"mongodb://{self.MONGODB_USERNAME}:{self.MONGODB_PASSWORD}"
                f"@{self.MONGODB_HOST}:{self.MONGODB_PORT}"
                f"/{self.MONGODB_DATABASE}?authSource={self.MONGODB_AUTH_SOURCE}"
            )
        return f"mongodb://{self.MONGODB_HOST}:{self.MONGODB_PORT}/{self.MONGODB_DATABASE}"

    # ── 标的索引 ──────────────────────────────────────────
    KEY_INDEX_KEY: str = Field(default="KEYS")
    KEY_INDEX_DELIMITER: str = Field(default=",")
    # False 保持原有的读-改-写追加（存在并发竞争），True 使用条件写
    KEY_INDEX_ATOMIC_APPEND: bool = Field(default=False)
    KEY_INDEX_MAX_RETRIES: int = Field(default=5)

    # ── 上游数据源 ────────────────────────────────────────
    UPSTREAM_QUOTE_SUMMARY_URL: str = Field(
        default="https://query1.finance.yahoo.com/v10/finance/quoteSummary/{symbol}?modules={module}"
    )
    UPSTREAM_CHART_URL: str = Field(
        default="https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?interval=1d&range=5d"
    )
    UPSTREAM_TIMEOUT: Optional[float] = Field(default=None)  # None 表示不设超时
    UPSTREAM_USER_AGENT: str = Field(default="Mozilla/5.0 (compatible; MarketWatch/1.0)")
    QUOTE_SUMMARY_MODULES: List[str] = Field(
        default_factory=lambda: list(DEFAULT_QUOTE_SUMMARY_MODULES)
    )

    # ── 限速配置 ──────────────────────────────────────────
    RATE_LIMIT_EVERY: int = Field(default=5)             # 每 N 次调用暂停一次，<= 0 表示不暂停
    RATE_LIMIT_PAUSE_SECONDS: float = Field(default=1.0)  # 0 表示不暂停

    # ── 缓存配置 ──────────────────────────────────────────
    SYMBOL_CACHE_NAMESPACE: str = Field(default="symbol")
    PIVOT_CACHE_NAMESPACE: str = Field(default="pivot")
    PIVOT_CACHE_TTL: int = Field(default=3600)  # 0 表示不缓存枢轴点

    # ── 定时刷新 ──────────────────────────────────────────
    REFRESH_ENABLED: bool = Field(default=True)
    REFRESH_INTERVAL_SECONDS: float = Field(default=86400)
    # single：刷新成功一个标的即返回；sweep：遍历全部标的
    REFRESH_MODE: str = Field(default="single")

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> MarketWatchSettings:
    """获取全局配置（单例）"""
    return MarketWatchSettings()


settings = get_settings()
