"""布局树数据类型

包含：
- Orientation / Edge: 拆分方向与放置边
- PanelNode: 叶子 pane，承载有序的 tab 集合
- GroupNode: 内部节点，在子节点间分配空间
- LayoutNode: PanelNode | GroupNode
- node_to_dict / node_from_dict: 与浏览器共用的 JSON 格式
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

PanelId = str
NodeId = str


class LayoutDecodeError(ValueError):
    """序列化的布局树格式错误"""


class Orientation(Enum):
    """group 排列子节点的方向

    - HORIZONTAL: 子节点并排（列）
    - VERTICAL: 子节点堆叠（行）
    """
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class Edge(Enum):
    """新 pane 放在节点（或窗口）的哪一侧"""
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @property
    def orientation(self) -> Orientation:
        """在该边放置 pane 所需的 group 方向"""
        if self in (Edge.LEFT, Edge.RIGHT):
            return Orientation.HORIZONTAL
        return Orientation.VERTICAL

    @property
    def before(self) -> bool:
        """新 pane 是否位于锚点之前"""
        return self in (Edge.TOP, Edge.LEFT)


@dataclass(frozen=True)
class PanelNode:
    """叶子 pane

    Attributes:
        id: 节点结构 id
        panel_ids: 承载的 tab，按 tab 顺序（非空）
        active_index: 当前渲染的 tab 下标
    """
    id: NodeId
    panel_ids: tuple[PanelId, ...]
    active_index: int = 0

    @property
    def active_panel_id(self) -> PanelId:
        """当前渲染的 tab"""
        return self.panel_ids[self.active_index]

    def with_tabs(self, panel_ids: tuple[PanelId, ...], active_index: int) -> "PanelNode":
        return PanelNode(id=self.id, panel_ids=panel_ids, active_index=active_index)


@dataclass(frozen=True)
class GroupNode:
    """内部节点

    Attributes:
        id: 节点结构 id
        orientation: 拆分方向
        children: 子节点（至少两个）
        sizes: 每个子节点的百分比占比，与 children 一一对应
    """
    id: NodeId
    orientation: Orientation
    children: tuple["LayoutNode", ...]
    sizes: tuple[float, ...]

    def with_children(
        self, children: tuple["LayoutNode", ...], sizes: tuple[float, ...]
    ) -> "GroupNode":
        return GroupNode(id=self.id, orientation=self.orientation, children=children, sizes=sizes)


LayoutNode = PanelNode | GroupNode


def node_to_dict(node: LayoutNode) -> dict[str, Any]:
    """把树转换为 JSON 兼容形式"""
    if isinstance(node, PanelNode):
        return {
            "type": "panel",
            "id": node.id,
            "panelIds": list(node.panel_ids),
            "activeIndex": node.active_index,
        }
    return {
        "type": "group",
        "id": node.id,
        "direction": node.orientation.value,
        "children": [node_to_dict(child) for child in node.children],
        "sizes": list(node.sizes),
    }


def node_from_dict(data: Any) -> LayoutNode:
    """从 JSON 形式构建树

    也接受旧的单 tab 叶子格式（{"panelId": ...}）。
    越界的 activeIndex 会被截断，结构问题直接抛出。

    Raises:
        LayoutDecodeError: 输入格式错误
    """
    if not isinstance(data, dict):
        raise LayoutDecodeError(f"node must be an object, got {type(data).__name__}")

    node_id = data.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise LayoutDecodeError("node id missing")

    node_type = data.get("type")
    if node_type == "panel":
        panel_ids = data.get("panelIds")
        if panel_ids is None and isinstance(data.get("panelId"), str):
            panel_ids = [data["panelId"]]
        if (
            not isinstance(panel_ids, list)
            or not panel_ids
            or not all(isinstance(p, str) and p for p in panel_ids)
        ):
            raise LayoutDecodeError(f"panel {node_id} has no valid panelIds")
        active_index = data.get("activeIndex", 0)
        if not isinstance(active_index, int) or isinstance(active_index, bool):
            active_index = 0
        active_index = min(max(active_index, 0), len(panel_ids) - 1)
        return PanelNode(id=node_id, panel_ids=tuple(panel_ids), active_index=active_index)

    if node_type == "group":
        try:
            orientation = Orientation(data.get("direction"))
        except ValueError:
            raise LayoutDecodeError(f"group {node_id} has invalid direction") from None
        children = data.get("children")
        sizes = data.get("sizes")
        if not isinstance(children, list) or not children:
            raise LayoutDecodeError(f"group {node_id} has no children")
        if not isinstance(sizes, list) or len(sizes) != len(children):
            raise LayoutDecodeError(f"group {node_id} sizes do not match children")
        if not all(isinstance(s, (int, float)) and not isinstance(s, bool) and s > 0 for s in sizes):
            raise LayoutDecodeError(f"group {node_id} has invalid sizes")
        return GroupNode(
            id=node_id,
            orientation=orientation,
            children=tuple(node_from_dict(child) for child in children),
            sizes=tuple(float(s) for s in sizes),
        )

    raise LayoutDecodeError(f"unknown node type: {node_type!r}")
