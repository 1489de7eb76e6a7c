"""
服务异常定义
路由层根据异常类型转换为对应的 HTTP 状态码
"""

from typing import Any, Optional


class MarketWatchError(Exception):
    """所有业务异常的基类"""


class ValidationError(MarketWatchError):
    """请求参数不合法（缺少或为空的标的代码等），在任何 I/O 之前抛出"""


class FetchError(MarketWatchError):
    """上游 HTTP 请求失败、JSON 解析失败或上游返回业务错误"""

    def __init__(
        self,
        message: str,
        *,
        module: Optional[str] = None,
        code: Optional[Any] = None,
        description: Optional[str] = None,
    ):
        super().__init__(message)
        self.module = module
        self.code = code
        self.description = description


class StoreError(MarketWatchError):
    """键值存储读写失败"""


class IndexConflictError(StoreError):
    """条件写重试次数耗尽，标的索引追加失败"""
