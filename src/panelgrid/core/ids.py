"""Panel 与节点标识工具

布局中有两类标识：

- PanelId：pane 承载的内容。静态 id 来自固定集合
  （chat, files, editor, terminal, preview）。动态 id 由协作方在运行时生成，带命名空间：
    editor:<tabId>         分离出来的 editor tab
    terminal:<instanceId>  额外的终端实例
- NodeId：树节点的结构标识，如 "node-12-lx3k9a"。
"""

import itertools
import time

from ..config import DETACHED_EDITOR_PREFIX, DETACHED_TERMINAL_PREFIX, STATIC_PANELS

_node_counter = itertools.count(1)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_node_id(prefix: str = "node") -> str:
    """生成进程内唯一的节点 ID

    递增计数器加当前时间：进程内不会重复，也很难与之前 session 恢复出来的 id 冲突。

    Args:
        prefix: 叶子用 "node"，group 用 "group"

    Returns:
        形如 "node-12-lx3k9a0b" 的 ID
    """
    millis = int(time.time() * 1000)
    return f"{prefix}-{next(_node_counter)}-{_to_base36(millis)}"


def is_static(panel_id: str) -> bool:
    """是否为内置 panel"""
    return panel_id in STATIC_PANELS


def is_detached_editor(panel_id: str) -> bool:
    """是否为分离的 editor tab"""
    return panel_id.startswith(DETACHED_EDITOR_PREFIX) and len(panel_id) > len(DETACHED_EDITOR_PREFIX)


def is_detached_terminal(panel_id: str) -> bool:
    """是否为额外的终端实例"""
    return panel_id.startswith(DETACHED_TERMINAL_PREFIX) and len(panel_id) > len(DETACHED_TERMINAL_PREFIX)


def is_dynamic(panel_id: str) -> bool:
    """是否为协作方运行时生成的 id"""
    return is_detached_editor(panel_id) or is_detached_terminal(panel_id)


def make_detached_editor_id(tab_id: str) -> str:
    """生成分离 editor tab 的 panel ID

    Args:
        tab_id: editor tab 管理器持有的 tab ID

    Returns:
        带命名空间的 ID，如 "editor:tab-7"
    """
    return f"{DETACHED_EDITOR_PREFIX}{tab_id}"


def get_detached_editor_tab_id(panel_id: str) -> str | None:
    """取出 editor tab ID，不是分离 editor 时返回 None"""
    if not is_detached_editor(panel_id):
        return None
    return panel_id[len(DETACHED_EDITOR_PREFIX):]


def make_detached_terminal_id(instance_id: str) -> str:
    """生成额外终端实例的 panel ID"""
    return f"{DETACHED_TERMINAL_PREFIX}{instance_id}"


def get_detached_terminal_id(panel_id: str) -> str | None:
    """取出终端实例 ID，不是分离终端时返回 None"""
    if not is_detached_terminal(panel_id):
        return None
    return panel_id[len(DETACHED_TERMINAL_PREFIX):]


def short_id(node_id: str, length: int = 12) -> str:
    """日志用的短 ID"""
    return node_id[:length]
