"""
JSON 路径提取
按点分路径逐级下钻，遇到不存在的字段时停止下钻并返回当前位置的节点
（宽松策略，不视为错误）。
"""

from typing import Any, NamedTuple, Optional, Tuple


class PathResolution(NamedTuple):
    """value 为最终停留的节点；remaining 为未能解析的剩余路径段，空表示完全解析"""

    value: Any
    remaining: Tuple[str, ...] = ()

    @property
    def resolved(self) -> bool:
        return not self.remaining


def _step(node: Any, segment: str) -> Tuple[bool, Any]:
    if isinstance(node, dict):
        if segment in node:
            return True, node[segment]
        return False, node
    if isinstance(node, (list, tuple)) and segment.isascii() and segment.isdigit():
        index = int(segment)
        if index < len(node):
            return True, node[index]
    return False, node


def resolve_path(document: Any, path: Optional[str]) -> PathResolution:
    """解析点分路径，例如 "quoteSummary.result.0.price" """
    if not path:
        return PathResolution(document)
    segments = path.split(".")
    node = document
    for i, segment in enumerate(segments):
        found, node = _step(node, segment)
        if not found:
            return PathResolution(node, tuple(segments[i:]))
    return PathResolution(node)


def extract(document: Any, path: Optional[str]) -> Any:
    """尽力提取：路径完全命中返回目标值，否则返回停止处的节点"""
    return resolve_path(document, path).value
