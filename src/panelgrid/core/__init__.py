"""核心标识工具"""

from .ids import (
    generate_node_id,
    get_detached_editor_tab_id,
    get_detached_terminal_id,
    is_detached_editor,
    is_detached_terminal,
    is_dynamic,
    is_static,
    make_detached_editor_id,
    make_detached_terminal_id,
    short_id,
)

__all__ = [
    "generate_node_id",
    "get_detached_editor_tab_id",
    "get_detached_terminal_id",
    "is_detached_editor",
    "is_detached_terminal",
    "is_dynamic",
    "is_static",
    "make_detached_editor_id",
    "make_detached_terminal_id",
    "short_id",
]
