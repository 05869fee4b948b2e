"""Layout 模块

Panel 布局引擎：
- types: 布局树节点（PanelNode, GroupNode）及其 JSON 形式
- tree: 纯函数树变换（插入、删除、交换、调整尺寸）
- visibility: 可见树计算与显示/隐藏规则
- dropzones: drop zone id 及其到树变换的解析
- mobile: 小屏 panel 顺序
- persistence / storage: 快照编解码与存储后端
- store: LayoutStore，持有可变布局状态
"""

from .types import (
    Edge,
    GroupNode,
    LayoutDecodeError,
    LayoutNode,
    Orientation,
    PanelNode,
    node_from_dict,
    node_to_dict,
)
from .defaults import DEFAULT_LAYOUT, DEFAULT_MOBILE_PANELS, default_visibility
from .tree import (
    check_invariants,
    find_node,
    find_panel_node,
    get_all_panel_ids,
    insert_as_split,
    insert_as_tab,
    insert_at_edge,
    merge_panel,
    normalize_sizes,
    remove_panel,
    resize_group,
    set_active_tab,
    swap_panels,
)
from .visibility import reduce_visible, toggle_visibility
from .dropzones import DropAction, PanelDropMode, apply_drop, parse_drop_zone, resolve_drop
from .persistence import LayoutSnapshot, decode, encode, load_snapshot, restore, save_snapshot
from .storage import FileStorage, MemoryStorage, Storage
from .store import DragState, LayoutState, LayoutStore

__all__ = [
    # 类型
    "Edge",
    "GroupNode",
    "LayoutDecodeError",
    "LayoutNode",
    "Orientation",
    "PanelNode",
    "node_from_dict",
    "node_to_dict",
    # 默认值
    "DEFAULT_LAYOUT",
    "DEFAULT_MOBILE_PANELS",
    "default_visibility",
    # 树操作
    "check_invariants",
    "find_node",
    "find_panel_node",
    "get_all_panel_ids",
    "insert_as_split",
    "insert_as_tab",
    "insert_at_edge",
    "merge_panel",
    "normalize_sizes",
    "remove_panel",
    "resize_group",
    "set_active_tab",
    "swap_panels",
    # 可见性
    "reduce_visible",
    "toggle_visibility",
    # 拖放
    "DropAction",
    "PanelDropMode",
    "apply_drop",
    "parse_drop_zone",
    "resolve_drop",
    # 持久化
    "LayoutSnapshot",
    "decode",
    "encode",
    "load_snapshot",
    "restore",
    "save_snapshot",
    "FileStorage",
    "MemoryStorage",
    "Storage",
    # Store
    "DragState",
    "LayoutState",
    "LayoutStore",
]
