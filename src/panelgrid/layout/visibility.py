"""可见性计算

可见性表（PanelId -> bool）与树并列存放，不在树中。隐藏 panel 不会改变存储的树几何：
由计算函数派生出要渲染的树，panel 重新显示后尺寸恢复原来的比例。

表中没有的 id 视为可见。
"""

from collections.abc import Mapping

from .tree import filter_panels, find_panel_node, set_active_tab
from .types import GroupNode, LayoutNode, PanelId, PanelNode

VisibilityMap = Mapping[PanelId, bool]


def is_visible(visibility: VisibilityMap, panel_id: PanelId) -> bool:
    """单个 panel 的可见性（默认可见）"""
    return visibility.get(panel_id, True) is not False


def reduce_visible(tree: LayoutNode, visibility: VisibilityMap) -> LayoutNode | None:
    """派生交给渲染层的树

    - 叶子只显示可见 tab，隐藏的活动 tab 交给第一个可见 tab
    - 没有任何可见 panel 的叶子和 group 消失
    - 只剩一个可见子节点的 group 被该子节点取代
    - 剩余兄弟节点的尺寸忽略隐藏项后重新缩放到 100

    Returns:
        可见树，全部不可见时返回 None
    """
    return filter_panels(tree, lambda panel_id: is_visible(visibility, panel_id))


def has_visible_panel(node: LayoutNode, visibility: VisibilityMap) -> bool:
    """`node` 下是否有可见 panel"""
    if isinstance(node, PanelNode):
        return any(is_visible(visibility, p) for p in node.panel_ids)
    return any(has_visible_panel(child, visibility) for child in node.children)


def visible_panel_ids(tree: LayoutNode, visibility: VisibilityMap) -> list[PanelId]:
    """会被渲染为 tab 的 panel，按树顺序"""
    visible = reduce_visible(tree, visibility)
    if visible is None:
        return []
    result: list[PanelId] = []
    stack: list[LayoutNode] = [visible]
    while stack:
        node = stack.pop()
        if isinstance(node, GroupNode):
            stack.extend(reversed(node.children))
        else:
            result.extend(node.panel_ids)
    return result


def toggle_visibility(
    tree: LayoutNode, visibility: VisibilityMap, panel_id: PanelId
) -> tuple[LayoutNode, dict[PanelId, bool]]:
    """翻转 panel 可见性并修正活动 tab

    隐藏多 tab pane 的活动 tab 时激活其右侧下一个可见 tab，没有则向左找。
    显示多 tab pane 中的 tab 时将其设为活动。

    Returns:
        (树, 新可见性表)；只有活动 tab 变化时树才改变
    """
    was_visible = is_visible(visibility, panel_id)
    new_visibility = dict(visibility)
    new_visibility[panel_id] = not was_visible

    node = find_panel_node(tree, panel_id)
    if node is None or len(node.panel_ids) < 2:
        return tree, new_visibility

    if not was_visible:
        return set_active_tab(tree, node.id, panel_id), new_visibility

    if node.active_panel_id != panel_id:
        return tree, new_visibility

    index = node.panel_ids.index(panel_id)
    candidates = list(node.panel_ids[index + 1:]) + list(reversed(node.panel_ids[:index]))
    for candidate in candidates:
        if is_visible(new_visibility, candidate):
            return set_active_tab(tree, node.id, candidate), new_visibility
    return tree, new_visibility
