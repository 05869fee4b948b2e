"""布局树操作

作用于 LayoutNode 树的纯函数。输入不会被修改，未改变的子树在新旧两棵树之间共享。

返回约定：
- 未知 id 使操作成为空操作，原样返回输入树
- 可能"不适用"的操作改为返回 None，调用方使用结果前必须检查
- 这里不会因为错误的 id 抛异常
"""

from collections.abc import Callable, Iterator, Mapping, Sequence

from ..config import EDGE_SPLIT_SIZE, MIN_SIZE, NEW_SPLIT_SIZE, SIZE_EPSILON, TOTAL_SIZE
from ..core.ids import generate_node_id
from .types import Edge, GroupNode, LayoutNode, NodeId, PanelId, PanelNode


# === 尺寸 ===

def normalize_sizes(sizes: Sequence[float], floor: float = MIN_SIZE) -> tuple[float, ...]:
    """缩放尺寸使其和为 100，且每项不小于 `floor`

    会低于下限的项固定为下限，其余项按比例分配剩余空间。
    无法让每一项都满足下限时平均分配。
    """
    count = len(sizes)
    if count == 0:
        return ()
    values = [max(float(s), 0.0) for s in sizes]
    total = sum(values)
    if total <= 0 or count * floor >= TOTAL_SIZE:
        return tuple(TOTAL_SIZE / count for _ in values)

    pinned = [False] * count
    scaled = [v / total * TOTAL_SIZE for v in values]
    while True:
        below = [i for i in range(count) if not pinned[i] and scaled[i] < floor]
        if not below:
            break
        for i in below:
            pinned[i] = True
        free_total = sum(values[i] for i in range(count) if not pinned[i])
        remaining = TOTAL_SIZE - floor * sum(pinned)
        for i in range(count):
            scaled[i] = floor if pinned[i] else values[i] / free_total * remaining
    return tuple(scaled)


def _rescale(sizes: Sequence[float]) -> tuple[float, ...]:
    """缩放尺寸使其和为 100，严格保持比例"""
    total = sum(sizes)
    if total <= 0:
        return tuple(TOTAL_SIZE / len(sizes) for _ in sizes)
    return tuple(s / total * TOTAL_SIZE for s in sizes)


# === 查询 ===

def iter_nodes(tree: LayoutNode) -> Iterator[LayoutNode]:
    """深度优先先序遍历所有节点"""
    yield tree
    if isinstance(tree, GroupNode):
        for child in tree.children:
            yield from iter_nodes(child)


def find_panel_node(tree: LayoutNode, panel_id: PanelId) -> PanelNode | None:
    """查找承载 `panel_id` 的叶子"""
    if isinstance(tree, PanelNode):
        return tree if panel_id in tree.panel_ids else None
    for child in tree.children:
        found = find_panel_node(child, panel_id)
        if found is not None:
            return found
    return None


def find_node(tree: LayoutNode, node_id: NodeId) -> LayoutNode | None:
    """按结构 id 查找任意节点"""
    for node in iter_nodes(tree):
        if node.id == node_id:
            return node
    return None


def find_parent(tree: LayoutNode, node_id: NodeId) -> GroupNode | None:
    """查找直接包含 `node_id` 的 group（根节点返回 None）"""
    for node in iter_nodes(tree):
        if isinstance(node, GroupNode) and any(c.id == node_id for c in node.children):
            return node
    return None


def get_all_panel_ids(tree: LayoutNode) -> list[PanelId]:
    """所有 panel id，按深度优先的 tab 顺序"""
    if isinstance(tree, PanelNode):
        return list(tree.panel_ids)
    result: list[PanelId] = []
    for child in tree.children:
        result.extend(get_all_panel_ids(child))
    return result


def structurally_equal(a: LayoutNode, b: LayoutNode, tolerance: float = SIZE_EPSILON) -> bool:
    """比较两棵树，允许尺寸存在浮点误差"""
    if isinstance(a, PanelNode):
        return isinstance(b, PanelNode) and a == b
    if not isinstance(b, GroupNode):
        return False
    if a.id != b.id or a.orientation != b.orientation or len(a.children) != len(b.children):
        return False
    if any(abs(x - y) > tolerance for x, y in zip(a.sizes, b.sizes)):
        return False
    return all(structurally_equal(x, y, tolerance) for x, y in zip(a.children, b.children))


def check_invariants(tree: LayoutNode) -> list[str]:
    """列出违反结构不变量的问题（树合法时为空）"""
    problems: list[str] = []
    seen: set[PanelId] = set()
    for node in iter_nodes(tree):
        if isinstance(node, PanelNode):
            if not node.panel_ids:
                problems.append(f"{node.id}: no tabs")
            elif not 0 <= node.active_index < len(node.panel_ids):
                problems.append(f"{node.id}: active index {node.active_index} out of range")
            for panel_id in node.panel_ids:
                if panel_id in seen:
                    problems.append(f"{node.id}: duplicate panel {panel_id}")
                seen.add(panel_id)
            continue
        if len(node.children) < 2:
            problems.append(f"{node.id}: fewer than 2 children")
        if len(node.children) != len(node.sizes):
            problems.append(f"{node.id}: sizes do not match children")
        if abs(sum(node.sizes) - TOTAL_SIZE) > SIZE_EPSILON:
            problems.append(f"{node.id}: sizes sum to {sum(node.sizes)}")
    return problems


# === 改写辅助 ===

def _rewrite(node: LayoutNode, replacements: Mapping[NodeId, LayoutNode]) -> LayoutNode:
    """一次遍历按 id 替换节点，共享未改动的子树"""
    if node.id in replacements:
        return replacements[node.id]
    if isinstance(node, PanelNode):
        return node
    children = tuple(_rewrite(child, replacements) for child in node.children)
    if all(new is old for new, old in zip(children, node.children)):
        return node
    return node.with_children(children, node.sizes)


def _new_leaf(panel_id: PanelId) -> PanelNode:
    return PanelNode(id=generate_node_id("node"), panel_ids=(panel_id,), active_index=0)


def _splice(group: GroupNode, index: int, child: LayoutNode, share: float) -> GroupNode:
    """在 `index` 处以固定占比插入 `child`，其余项等比缩小"""
    scale = (TOTAL_SIZE - share) / sum(group.sizes)
    sizes = [s * scale for s in group.sizes]
    sizes.insert(index, share)
    children = list(group.children)
    children.insert(index, child)
    return group.with_children(tuple(children), normalize_sizes(sizes))


def _place_beside(tree: LayoutNode, target_id: NodeId, leaf: PanelNode, edge: Edge) -> LayoutNode:
    parent = find_parent(tree, target_id)
    if parent is not None and parent.orientation == edge.orientation:
        index = next(i for i, c in enumerate(parent.children) if c.id == target_id)
        if not edge.before:
            index += 1
        return _rewrite(tree, {parent.id: _splice(parent, index, leaf, NEW_SPLIT_SIZE)})

    target = find_node(tree, target_id)
    children = (leaf, target) if edge.before else (target, leaf)
    group = GroupNode(
        id=generate_node_id("group"),
        orientation=edge.orientation,
        children=children,
        sizes=(TOTAL_SIZE / 2, TOTAL_SIZE / 2),
    )
    return _rewrite(tree, {target_id: group})


def _detach_for_insert(tree: LayoutNode, panel_id: PanelId, relocate: bool) -> LayoutNode | None:
    """移出 `panel_id` 后的树（relocate），或确认其不存在（新 id）"""
    present = find_panel_node(tree, panel_id) is not None
    if not relocate:
        return None if present else tree
    if not present:
        return None
    return remove_panel(tree, panel_id)


# === 操作 ===

def remove_panel(tree: LayoutNode, panel_id: PanelId) -> LayoutNode | None:
    """移除 panel，删除并折叠变空的节点

    多 tab 叶子只去掉该 tab，activeIndex 截断到 len-1（下标不随前面 tab 的删除而前移）。
    单 tab 叶子被删除，只剩一个子节点的 group 折叠为该子节点。

    Returns:
        新树；`panel_id` 未知时返回原树；删除后没有任何 panel 时返回 None
    """
    if find_panel_node(tree, panel_id) is None:
        return tree
    return _remove(tree, panel_id)


def _remove(node: LayoutNode, panel_id: PanelId) -> LayoutNode | None:
    if isinstance(node, PanelNode):
        if panel_id not in node.panel_ids:
            return node
        if len(node.panel_ids) == 1:
            return None
        index = node.panel_ids.index(panel_id)
        panel_ids = node.panel_ids[:index] + node.panel_ids[index + 1:]
        return node.with_tabs(panel_ids, min(node.active_index, len(panel_ids) - 1))

    children: list[LayoutNode] = []
    sizes: list[float] = []
    changed = False
    for child, size in zip(node.children, node.sizes):
        result = _remove(child, panel_id)
        if result is not child:
            changed = True
        if result is not None:
            children.append(result)
            sizes.append(size)

    if not changed:
        return node
    if not children:
        return None
    if len(children) == 1:
        return children[0]
    if len(children) == len(node.children):
        return node.with_children(tuple(children), node.sizes)
    return node.with_children(tuple(children), normalize_sizes(sizes))


def insert_as_tab(tree: LayoutNode, panel_id: PanelId, target_node_id: NodeId) -> LayoutNode:
    """把 `panel_id` 作为叶子的新活动 tab 加入

    目标不存在或不是叶子，或 panel 已在别的叶子中时不做任何事。
    panel 已在目标中时只将其设为活动。
    """
    target = find_node(tree, target_node_id)
    if not isinstance(target, PanelNode):
        return tree
    if panel_id in target.panel_ids:
        return set_active_tab(tree, target.id, panel_id)
    if find_panel_node(tree, panel_id) is not None:
        return tree
    panel_ids = target.panel_ids + (panel_id,)
    return _rewrite(tree, {target.id: target.with_tabs(panel_ids, len(panel_ids) - 1)})


def merge_panel(tree: LayoutNode, panel_id: PanelId, target_node_id: NodeId) -> LayoutNode | None:
    """把 `panel_id` 作为 tab 移入叶子

    尚不在树中的 panel 直接插入。

    Returns:
        新树；目标不是叶子或已承载该 panel 时返回 None
    """
    target = find_node(tree, target_node_id)
    if not isinstance(target, PanelNode) or panel_id in target.panel_ids:
        return None
    base = tree
    if find_panel_node(tree, panel_id) is not None:
        base = remove_panel(tree, panel_id)
        if base is None:
            return None
    return insert_as_tab(base, panel_id, target_node_id)


def insert_as_split(
    tree: LayoutNode,
    panel_id: PanelId,
    target_node_id: NodeId,
    edge: Edge | str,
    relocate: bool = True,
) -> LayoutNode | None:
    """在节点某一侧新建 pane 放置 `panel_id`

    目标的父 group 方向与该边一致时，新 pane 作为兄弟节点占 25%；
    否则目标被包进一个 50/50 的新双子 group。

    Args:
        tree: 当前树
        panel_id: 要放置的 panel
        target_node_id: 被拆分的节点
        edge: 目标的哪一侧
        relocate: True 移动树中已有的 panel，False 插入全新的 id

    Returns:
        新树；panel 无法从原位置取出（或插入时已存在），
        或移出 panel 后目标已不存在时返回 None
    """
    edge = Edge(edge)
    base = _detach_for_insert(tree, panel_id, relocate)
    if base is None or find_node(base, target_node_id) is None:
        return None
    return _place_beside(base, target_node_id, _new_leaf(panel_id), edge)


def insert_at_edge(
    tree: LayoutNode,
    panel_id: PanelId,
    edge: Edge | str,
    relocate: bool = True,
) -> LayoutNode | None:
    """在窗口边缘新建一列/一行放置 `panel_id`

    根 group 方向与该边一致时新增首/尾子节点，占 25%；
    其他根节点被包进一个 25/75 的新 group。

    Returns:
        新树；返回 None 的条件同 insert_as_split
    """
    edge = Edge(edge)
    base = _detach_for_insert(tree, panel_id, relocate)
    if base is None:
        return None

    leaf = _new_leaf(panel_id)
    if isinstance(base, GroupNode) and base.orientation == edge.orientation:
        index = 0 if edge.before else len(base.children)
        return _splice(base, index, leaf, EDGE_SPLIT_SIZE)

    rest = TOTAL_SIZE - EDGE_SPLIT_SIZE
    return GroupNode(
        id=generate_node_id("group"),
        orientation=edge.orientation,
        children=(leaf, base) if edge.before else (base, leaf),
        sizes=(EDGE_SPLIT_SIZE, rest) if edge.before else (rest, EDGE_SPLIT_SIZE),
    )


def swap_panels(tree: LayoutNode, panel_a: PanelId, panel_b: PanelId) -> LayoutNode:
    """交换两个 panel，不改变网格几何

    每个 panel 占据对方的 tab 位置。两个叶子都只承载这一个 panel 时，
    叶子也交换节点 id，使 panel 保持其节点标识。同一叶子内的 tab 交换位置。
    同样的交换执行两次得到原树。
    """
    if panel_a == panel_b:
        return tree
    node_a = find_panel_node(tree, panel_a)
    node_b = find_panel_node(tree, panel_b)
    if node_a is None or node_b is None:
        return tree

    if node_a.id == node_b.id:
        tabs = list(node_a.panel_ids)
        ia, ib = tabs.index(panel_a), tabs.index(panel_b)
        tabs[ia], tabs[ib] = panel_b, panel_a
        return _rewrite(tree, {node_a.id: node_a.with_tabs(tuple(tabs), node_a.active_index)})

    tabs_a = tuple(panel_b if p == panel_a else p for p in node_a.panel_ids)
    tabs_b = tuple(panel_a if p == panel_b else p for p in node_b.panel_ids)
    exclusive = len(node_a.panel_ids) == 1 and len(node_b.panel_ids) == 1
    id_a, id_b = (node_b.id, node_a.id) if exclusive else (node_a.id, node_b.id)
    return _rewrite(tree, {
        node_a.id: PanelNode(id=id_a, panel_ids=tabs_a, active_index=node_a.active_index),
        node_b.id: PanelNode(id=id_b, panel_ids=tabs_b, active_index=node_b.active_index),
    })


def resize_group(tree: LayoutNode, group_id: NodeId, sizes: Sequence[float]) -> LayoutNode:
    """替换某个 group 的尺寸

    尺寸按下限归一化到 100，已归一化的输入保持不变。
    group 未知或长度不匹配时不做任何事。
    """
    group = find_node(tree, group_id)
    if not isinstance(group, GroupNode) or len(sizes) != len(group.children):
        return tree
    return _rewrite(tree, {group_id: group.with_children(group.children, normalize_sizes(sizes))})


def set_active_tab(tree: LayoutNode, node_id: NodeId, panel_id: PanelId) -> LayoutNode:
    """把 `panel_id` 设为叶子的渲染 tab（不在该叶子中时不做任何事）"""
    node = find_node(tree, node_id)
    if not isinstance(node, PanelNode) or panel_id not in node.panel_ids:
        return tree
    index = node.panel_ids.index(panel_id)
    if index == node.active_index:
        return tree
    return _rewrite(tree, {node.id: node.with_tabs(node.panel_ids, index)})


def remap_panel_ids(tree: LayoutNode, mapping: Mapping[PanelId, PanelId]) -> LayoutNode:
    """全树替换 panel id，不在 `mapping` 中的 id 保持不变"""
    if not mapping:
        return tree
    if isinstance(tree, PanelNode):
        panel_ids = tuple(mapping.get(p, p) for p in tree.panel_ids)
        if panel_ids == tree.panel_ids:
            return tree
        return tree.with_tabs(panel_ids, tree.active_index)
    children = tuple(remap_panel_ids(child, mapping) for child in tree.children)
    if all(new is old for new, old in zip(children, tree.children)):
        return tree
    return tree.with_children(children, tree.sizes)


def filter_panels(tree: LayoutNode, keep: Callable[[PanelId], bool]) -> LayoutNode | None:
    """只保留 `keep` 接受的 panel，裁剪并折叠其余部分

    叶子保留被接受的 tab，活动 tab 被去掉时第一个剩余 tab 成为活动。
    空叶子消失，只剩一个子节点的 group 折叠为该子节点，
    剩下的兄弟节点尺寸按原比例重新缩放到 100。

    `keep` 按深度优先的 tab 顺序对每个 panel 调用一次。

    Returns:
        过滤后的树，全部不保留时返回 None
    """
    if isinstance(tree, PanelNode):
        kept = tuple(p for p in tree.panel_ids if keep(p))
        if not kept:
            return None
        if kept == tree.panel_ids:
            return tree
        active_id = tree.active_panel_id
        return tree.with_tabs(kept, kept.index(active_id) if active_id in kept else 0)

    children: list[LayoutNode] = []
    sizes: list[float] = []
    for child, size in zip(tree.children, tree.sizes):
        result = filter_panels(child, keep)
        if result is not None:
            children.append(result)
            sizes.append(size)

    if not children:
        return None
    if len(children) == 1:
        return children[0]
    if len(children) == len(tree.children):
        if all(new is old for new, old in zip(children, tree.children)):
            return tree
        return tree.with_children(tuple(children), tree.sizes)
    return tree.with_children(tuple(children), _rescale(sizes))


def dedupe_panels(tree: LayoutNode) -> LayoutNode | None:
    """去掉重复出现的 panel id，保留第一次出现"""
    seen: set[PanelId] = set()

    def first_time(panel_id: PanelId) -> bool:
        if panel_id in seen:
            return False
        seen.add(panel_id)
        return True

    return filter_panels(tree, first_time)


def normalize_tree(tree: LayoutNode) -> LayoutNode:
    """折叠单子节点 group 并归一化每个 group 的尺寸"""
    if isinstance(tree, PanelNode):
        return tree
    children = tuple(normalize_tree(child) for child in tree.children)
    if len(children) == 1:
        return children[0]
    return tree.with_children(children, normalize_sizes(tree.sizes))
