"""放置目标解析

把一次完成的拖拽（被拖 panel id + drop zone id）映射为恰好一个树操作。

Drop zone 词汇（由渲染层生成）：
    edge-left, edge-right              窗口边缘的新列
    split-<edge>-<nodeId>              pane 旁边的新 pane
    merge-<nodeId>                     作为 pane 的 tab 加入
    panel-<panelId>                    放到 panel 主体上（合并或交换）

目标按传入的树校验，该树必须是放置时的当前树，而不是拖拽开始时捕获的树。
放到自身、过期 id、未知 zone 都解析为无操作。
"""

from dataclasses import dataclass
from enum import Enum

from ..telemetry import get_logger, metrics
from .tree import (
    find_node,
    find_panel_node,
    insert_as_split,
    insert_at_edge,
    merge_panel,
    swap_panels,
)
from .types import Edge, LayoutNode, NodeId, PanelId, PanelNode

logger = get_logger(__name__)

EDGE_ZONE_PREFIX = "edge-"
SPLIT_ZONE_PREFIX = "split-"
MERGE_ZONE_PREFIX = "merge-"
PANEL_ZONE_PREFIX = "panel-"

WINDOW_EDGES = (Edge.LEFT, Edge.RIGHT)
PANE_EDGES = (Edge.TOP, Edge.BOTTOM, Edge.LEFT, Edge.RIGHT)


class DropKind(Enum):
    """drop zone 的作用"""
    EDGE = "edge"
    SPLIT = "split"
    MERGE = "merge"
    PANEL = "panel"


class PanelDropMode(Enum):
    """放到另一个 panel 主体上的行为

    - MERGE: 被拖 panel 作为目标 pane 的 tab 加入
    - SWAP: 交换两个 panel（单 tab 布局）
    """
    MERGE = "merge"
    SWAP = "swap"


@dataclass(frozen=True)
class DropTarget:
    """解析后的 drop zone id"""
    kind: DropKind
    edge: Edge | None = None
    node_id: NodeId | None = None
    panel_id: PanelId | None = None


@dataclass(frozen=True)
class DropAction:
    """解析完成的放置，绑定一个树操作

    Attributes:
        operation: "insert_at_edge" | "insert_as_split" | "merge" | "swap"
        panel_id: 被拖 panel
        relocate: panel 已在树中时为 True
        edge: edge/split 放置的边
        node_id: split/merge 放置的目标节点
        other_panel_id: 交换的目标 panel
    """
    operation: str
    panel_id: PanelId
    relocate: bool = True
    edge: Edge | None = None
    node_id: NodeId | None = None
    other_panel_id: PanelId | None = None

    def apply(self, tree: LayoutNode) -> LayoutNode | None:
        """执行绑定的操作（不适用时返回 None）"""
        if self.operation == "insert_at_edge":
            return insert_at_edge(tree, self.panel_id, self.edge, relocate=self.relocate)
        if self.operation == "insert_as_split":
            return insert_as_split(
                tree, self.panel_id, self.node_id, self.edge, relocate=self.relocate
            )
        if self.operation == "merge":
            return merge_panel(tree, self.panel_id, self.node_id)
        if self.operation == "swap":
            return swap_panels(tree, self.panel_id, self.other_panel_id)
        return None


# === Zone id ===

def make_edge_zone_id(edge: Edge) -> str:
    return f"{EDGE_ZONE_PREFIX}{edge.value}"


def make_split_zone_id(edge: Edge, node_id: NodeId) -> str:
    return f"{SPLIT_ZONE_PREFIX}{edge.value}-{node_id}"


def make_merge_zone_id(node_id: NodeId) -> str:
    return f"{MERGE_ZONE_PREFIX}{node_id}"


def make_panel_zone_id(panel_id: PanelId) -> str:
    return f"{PANEL_ZONE_PREFIX}{panel_id}"


def parse_drop_zone(zone_id: str) -> DropTarget | None:
    """解析 drop zone id

    Returns:
        DropTarget；id 不在词汇表中时返回 None
    """
    if not isinstance(zone_id, str):
        return None

    if zone_id.startswith(EDGE_ZONE_PREFIX):
        try:
            edge = Edge(zone_id[len(EDGE_ZONE_PREFIX):])
        except ValueError:
            return None
        if edge not in WINDOW_EDGES:
            return None
        return DropTarget(kind=DropKind.EDGE, edge=edge)

    if zone_id.startswith(SPLIT_ZONE_PREFIX):
        edge_name, sep, node_id = zone_id[len(SPLIT_ZONE_PREFIX):].partition("-")
        if not sep or not node_id:
            return None
        try:
            edge = Edge(edge_name)
        except ValueError:
            return None
        return DropTarget(kind=DropKind.SPLIT, edge=edge, node_id=node_id)

    if zone_id.startswith(MERGE_ZONE_PREFIX):
        node_id = zone_id[len(MERGE_ZONE_PREFIX):]
        return DropTarget(kind=DropKind.MERGE, node_id=node_id) if node_id else None

    if zone_id.startswith(PANEL_ZONE_PREFIX):
        panel_id = zone_id[len(PANEL_ZONE_PREFIX):]
        return DropTarget(kind=DropKind.PANEL, panel_id=panel_id) if panel_id else None

    return None


# === 解析 ===

def resolve_drop(
    tree: LayoutNode,
    dragged_id: PanelId,
    zone_id: str,
    panel_drop: PanelDropMode = PanelDropMode.MERGE,
) -> DropAction | None:
    """把放置映射为树操作，并按 `tree` 校验

    不在树中的被拖 id（如正在分离的 editor tab）是插入而不是移动。

    Returns:
        DropAction；放置应被忽略时返回 None
    """
    target = parse_drop_zone(zone_id)
    if target is None:
        logger.debug(f"[Drop] Unknown zone: {zone_id!r}")
        return None

    source = find_panel_node(tree, dragged_id)
    relocate = source is not None
    own_single_pane = source is not None and len(source.panel_ids) == 1

    if target.kind == DropKind.EDGE:
        if own_single_pane and isinstance(tree, PanelNode):
            # 整个布局就是被拖 panel 的 pane
            return None
        return DropAction("insert_at_edge", dragged_id, relocate=relocate, edge=target.edge)

    if target.kind == DropKind.SPLIT:
        node = find_node(tree, target.node_id)
        if node is None:
            return None
        if own_single_pane and node.id == source.id:
            return None
        return DropAction(
            "insert_as_split", dragged_id, relocate=relocate, edge=target.edge, node_id=node.id
        )

    if target.kind == DropKind.MERGE:
        node = find_node(tree, target.node_id)
        if not isinstance(node, PanelNode) or dragged_id in node.panel_ids:
            return None
        return DropAction("merge", dragged_id, relocate=relocate, node_id=node.id)

    # DropKind.PANEL
    if target.panel_id == dragged_id:
        return None
    host = find_panel_node(tree, target.panel_id)
    if host is None:
        return None
    if panel_drop == PanelDropMode.SWAP:
        if not relocate:
            return None
        return DropAction("swap", dragged_id, other_panel_id=target.panel_id)
    if dragged_id in host.panel_ids:
        return None
    return DropAction("merge", dragged_id, relocate=relocate, node_id=host.id)


def apply_drop(
    tree: LayoutNode,
    dragged_id: PanelId,
    zone_id: str,
    panel_drop: PanelDropMode = PanelDropMode.MERGE,
) -> LayoutNode:
    """针对当前树解析并执行放置

    Returns:
        新树；放置被忽略时返回 `tree` 本身
    """
    action = resolve_drop(tree, dragged_id, zone_id, panel_drop)
    result = action.apply(tree) if action is not None else None
    if result is None:
        metrics.inc("drop.noop")
        logger.debug(f"[Drop] Ignored {dragged_id} -> {zone_id}")
        return tree
    return result


# === 拖拽时提供的 zone ===

def edge_zones() -> list[str]:
    """拖拽时显示的窗口边缘 zone"""
    return [make_edge_zone_id(edge) for edge in WINDOW_EDGES]


def zones_for_pane(node: PanelNode, dragged_id: PanelId) -> list[str]:
    """拖拽时某个 pane 上显示的 zone

    四个 split zone 加中心（merge）zone；被拖 panel 自己的单 panel pane 不显示中心 zone。
    """
    zones = [make_split_zone_id(edge, node.id) for edge in PANE_EDGES]
    if node.panel_ids != (dragged_id,):
        zones.append(make_merge_zone_id(node.id))
    return zones
