"""LayoutStore - 布局状态持有者

职责：
- 持有当前布局状态，是唯一的修改入口
- 每个公开操作都是对不可变 LayoutState 的读-改-写，在锁内用一次引用替换发布，
  观察者只会看到操作前或操作后的状态
- 每次变化交给快照写入器（尽力而为）并通知已注册的监听者
- 动态 panel 的生命周期委托给 editor / terminal 管理器

每个 store 都是独立实例，彼此不共享状态。
"""

import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from ..config import LAYOUT_STORAGE_KEY, PANEL_DROP_MODE
from ..core.ids import (
    get_detached_editor_tab_id,
    get_detached_terminal_id,
    is_detached_editor,
    is_detached_terminal,
    is_dynamic,
    is_static,
    make_detached_editor_id,
)
from ..telemetry import format_node_log, get_logger, metrics
from . import tree as ops
from .defaults import DEFAULT_LAYOUT, default_visibility
from .dropzones import PanelDropMode, apply_drop
from .mobile import close_mobile_panel, open_mobile_panel
from .persistence import (
    LayoutSnapshot,
    SnapshotWriter,
    default_snapshot,
    load_snapshot,
    restore,
    serialize,
)
from .storage import Storage
from .types import Edge, LayoutNode, NodeId, PanelId, PanelNode
from .visibility import is_visible, reduce_visible, toggle_visibility

if TYPE_CHECKING:
    from ..workspace.editors import EditorTabs
    from ..workspace.terminals import TerminalSessions

logger = get_logger(__name__)


@dataclass(frozen=True)
class DragState:
    """进行中的拖拽（最多一个）"""
    dragged_panel_id: PanelId | None = None
    dragged_editor_tab_id: str | None = None

    @property
    def is_dragging(self) -> bool:
        return self.dragged_panel_id is not None or self.dragged_editor_tab_id is not None


@dataclass(frozen=True)
class LayoutState:
    """不可变的布局状态

    Attributes:
        layout: 布局树
        visibility: panel 可见性（约定只读）
        mobile_panels: 小屏单列顺序，自上而下
        drag: 进行中的拖拽
    """
    layout: LayoutNode
    visibility: Mapping[PanelId, bool] = field(default_factory=default_visibility)
    mobile_panels: tuple[PanelId, ...] = ("chat",)
    drag: DragState = field(default_factory=DragState)

    def to_snapshot(self) -> LayoutSnapshot:
        return LayoutSnapshot(
            tree=self.layout,
            visibility=dict(self.visibility),
            mobile_panels=self.mobile_panels,
        )

    def replace(self, **changes: Any) -> "LayoutState":
        values = {
            "layout": self.layout,
            "visibility": self.visibility,
            "mobile_panels": self.mobile_panels,
            "drag": self.drag,
        }
        values.update(changes)
        return LayoutState(**values)


OnChangeCallback = Callable[[LayoutState], Any]
StateTransform = Callable[[LayoutState], "LayoutState | None"]


def _without(visibility: Mapping[PanelId, bool], panel_id: PanelId) -> dict[PanelId, bool]:
    result = dict(visibility)
    result.pop(panel_id, None)
    return result


class LayoutStore:
    """布局状态句柄

    Args:
        storage: 快照写入位置；None 表示只保存在内存
        editors: editor tab 管理器，拥有 editor:<tabId> panel
        terminals: 终端会话管理器，拥有 terminal:<instanceId> panel
        storage_key: 布局快照的存储 key
        executor: 提供时在其上执行快照写入，不阻塞调用线程
        panel_drop: 放到 panel-<id> 区域时的行为
        load: 构造时是否恢复已存储的快照
    """

    def __init__(
        self,
        storage: Storage | None = None,
        editors: "EditorTabs | None" = None,
        terminals: "TerminalSessions | None" = None,
        storage_key: str = LAYOUT_STORAGE_KEY,
        executor: Executor | None = None,
        panel_drop: PanelDropMode | str = PANEL_DROP_MODE,
        load: bool = True,
    ):
        self._lock = threading.RLock()
        self._editors = editors
        self._terminals = terminals
        self._panel_drop = PanelDropMode(panel_drop)
        self._writer = SnapshotWriter(storage, storage_key, executor) if storage is not None else None
        self._listeners: list[OnChangeCallback] = []

        if storage is not None and load:
            snapshot = load_snapshot(storage, storage_key, live=self._live_predicate())
        else:
            snapshot = default_snapshot()
        self._state = LayoutState(
            layout=snapshot.tree,
            visibility=dict(snapshot.visibility),
            mobile_panels=snapshot.mobile_panels,
        )

    # === 读取 ===

    @property
    def state(self) -> LayoutState:
        return self._state

    @property
    def layout(self) -> LayoutNode:
        return self._state.layout

    @property
    def visibility(self) -> dict[PanelId, bool]:
        return dict(self._state.visibility)

    @property
    def mobile_panels(self) -> tuple[PanelId, ...]:
        return self._state.mobile_panels

    @property
    def drag(self) -> DragState:
        return self._state.drag

    @property
    def editors(self) -> "EditorTabs | None":
        return self._editors

    @property
    def terminals(self) -> "TerminalSessions | None":
        return self._terminals

    def visible_layout(self) -> LayoutNode | None:
        """要渲染的树（没有可见 panel 时为 None）"""
        state = self._state
        return reduce_visible(state.layout, state.visibility)

    def get_all_panel_ids(self) -> list[PanelId]:
        return ops.get_all_panel_ids(self._state.layout)

    def find_panel_node(self, panel_id: PanelId) -> PanelNode | None:
        return ops.find_panel_node(self._state.layout, panel_id)

    # === 监听 ===

    def add_listener(self, callback: OnChangeCallback) -> None:
        """注册回调，每次变化后以新状态调用"""
        self._listeners.append(callback)

    def remove_listener(self, callback: OnChangeCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, state: LayoutState) -> None:
        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"[LayoutStore] Listener failed: {e}")

    # === 核心更新 ===

    def _update(self, op: str, transform: StateTransform, persist: bool = True) -> bool:
        """原子地应用 `transform`

        transform 接收当前状态并返回新状态；无变化时返回 None 或原对象。

        Returns:
            状态是否发生变化
        """
        with self._lock:
            current = self._state
            new = transform(current)
            if new is None or new is current:
                return False
            self._state = new
            if persist and self._writer is not None:
                self._writer.write(new.to_snapshot())

        if persist:
            metrics.inc("layout.mutation", {"op": op})
            metrics.gauge("layout.panels", len(ops.get_all_panel_ids(new.layout)))
        self._notify(new)
        return True

    def _update_layout(self, op: str, fn: Callable[[LayoutNode], LayoutNode | None]) -> bool:
        def transform(state: LayoutState) -> LayoutState | None:
            layout = fn(state.layout)
            if layout is None or layout is state.layout:
                return None
            return state.replace(layout=layout)

        changed = self._update(op, transform)
        if not changed:
            logger.debug(f"[LayoutStore] {op}: no change")
        return changed

    # === 树操作 ===

    def merge_panels(self, panel_id: PanelId, target_node_id: NodeId) -> bool:
        """把 panel 移入另一个 pane 作为 tab"""
        return self._update_layout("merge", lambda t: ops.merge_panel(t, panel_id, target_node_id))

    def split_panel(self, panel_id: PanelId, target_node_id: NodeId, edge: Edge | str) -> bool:
        """把 panel 移到 `target_node_id` 旁边的新 pane"""
        return self._update_layout(
            "split", lambda t: ops.insert_as_split(t, panel_id, target_node_id, edge)
        )

    def move_panel_to_edge(self, panel_id: PanelId, edge: Edge | str) -> bool:
        """把 panel 移到窗口边缘的新列/行"""
        return self._update_layout("edge", lambda t: ops.insert_at_edge(t, panel_id, edge))

    def swap_panels(self, panel_a: PanelId, panel_b: PanelId) -> bool:
        return self._update_layout("swap", lambda t: ops.swap_panels(t, panel_a, panel_b))

    def set_active_tab(self, node_id: NodeId, panel_id: PanelId) -> bool:
        return self._update_layout("tab", lambda t: ops.set_active_tab(t, node_id, panel_id))

    def update_sizes(self, group_id: NodeId, sizes: Sequence[float]) -> bool:
        """渲染层的 resize 回调"""
        return self._update_layout("resize", lambda t: ops.resize_group(t, group_id, sizes))

    def remove_panel(self, panel_id: PanelId) -> bool:
        """从树中移除 panel

        拒绝移除最后一个 panel，布局始终至少保留一个 pane。
        被移除的静态 panel 标记为隐藏，再次显示时会重新加回。
        """
        def transform(state: LayoutState) -> LayoutState | None:
            layout = ops.remove_panel(state.layout, panel_id)
            if layout is None:
                logger.warning(format_node_log("LayoutStore", panel_id, "Refused removing last panel"))
                metrics.inc("remove.refused")
                return None
            if layout is state.layout:
                return None
            visibility = _without(state.visibility, panel_id)
            if is_static(panel_id):
                visibility[panel_id] = False
            if reduce_visible(layout, visibility) is None:
                logger.warning(format_node_log("LayoutStore", panel_id, "Refused removing last visible panel"))
                metrics.inc("remove.refused")
                return None
            return state.replace(layout=layout, visibility=visibility)

        return self._update("remove", transform)

    # === 可见性 ===

    def toggle_visibility(self, panel_id: PanelId) -> bool:
        """显示或隐藏 panel

        隐藏分离的 editor 或 terminal 会将其关闭；拒绝隐藏最后一个可见 panel。
        """
        state = self._state
        if is_visible(state.visibility, panel_id) and is_dynamic(panel_id):
            if ops.find_panel_node(state.layout, panel_id) is not None:
                return self.remove_detached_panel(panel_id, close_editor=True)

        def transform(state: LayoutState) -> LayoutState | None:
            layout, visibility = toggle_visibility(state.layout, state.visibility, panel_id)
            if visibility[panel_id] and is_static(panel_id) and ops.find_panel_node(layout, panel_id) is None:
                # 已从网格移除：作为新列加回
                layout = ops.insert_at_edge(layout, panel_id, Edge.RIGHT, relocate=False) or layout
            if reduce_visible(layout, visibility) is None:
                logger.warning(format_node_log("LayoutStore", panel_id, "Refused hiding last visible panel"))
                metrics.inc("visibility.refused")
                return None
            return state.replace(layout=layout, visibility=visibility)

        return self._update("toggle", transform)

    def set_visibility(self, panel_id: PanelId, visible: bool) -> bool:
        if is_visible(self._state.visibility, panel_id) == visible:
            return False
        return self.toggle_visibility(panel_id)

    def close_panel(self, panel_id: PanelId) -> bool:
        """pane tab 的关闭按钮

        动态 panel 直接关闭，静态 panel 只隐藏。
        """
        if is_dynamic(panel_id):
            return self.remove_detached_panel(panel_id, close_editor=True)
        return self.set_visibility(panel_id, False)

    def reset_layout(self) -> bool:
        """恢复内置布局

        销毁额外的终端，分离的 editor 回到 editor panel。
        """
        for panel_id in self.get_all_panel_ids():
            instance_id = get_detached_terminal_id(panel_id)
            if instance_id and self._terminals is not None:
                self._terminals.destroy(instance_id)
        if self._editors is not None:
            self._editors.reattach_all()

        logger.info("[LayoutStore] Layout reset")
        return self._update(
            "reset",
            lambda s: s.replace(layout=DEFAULT_LAYOUT, visibility=default_visibility()),
        )

    # === 分离的 editor ===

    def _detach(self, tab_id: str, place: Callable[[LayoutNode, PanelId], LayoutNode | None]) -> bool:
        if self._editors is None or not self._editors.detach_tab(tab_id):
            return False
        panel_id = make_detached_editor_id(tab_id)

        def transform(state: LayoutState) -> LayoutState | None:
            layout = place(state.layout, panel_id)
            if layout is None or layout is state.layout:
                return None
            visibility = dict(state.visibility)
            visibility[panel_id] = True
            return state.replace(layout=layout, visibility=visibility)

        if self._update("detach", transform):
            return True
        # 布局不接受：把 tab 还回去
        self._editors.reattach_tab(tab_id)
        return False

    def detach_editor_tab(self, tab_id: str) -> bool:
        """把 tab 分离到文件树右侧（没有文件树时放到根节点旁）"""
        def place(tree: LayoutNode, panel_id: PanelId) -> LayoutNode | None:
            files = ops.find_panel_node(tree, "files")
            target = files.id if files is not None else tree.id
            return ops.insert_as_split(tree, panel_id, target, Edge.RIGHT, relocate=False)

        return self._detach(tab_id, place)

    def detach_editor_tab_to_split(self, tab_id: str, target_node_id: NodeId, edge: Edge | str) -> bool:
        return self._detach(
            tab_id,
            lambda t, p: ops.insert_as_split(t, p, target_node_id, edge, relocate=False),
        )

    def detach_editor_tab_to_edge(self, tab_id: str, edge: Edge | str) -> bool:
        return self._detach(tab_id, lambda t, p: ops.insert_at_edge(t, p, edge, relocate=False))

    def detach_editor_tab_to_merge(self, tab_id: str, target_node_id: NodeId) -> bool:
        return self._detach(tab_id, lambda t, p: ops.merge_panel(t, p, target_node_id))

    def reattach_editor(self, panel_id: PanelId) -> bool:
        """把分离的 editor 送回 editor panel"""
        tab_id = get_detached_editor_tab_id(panel_id)
        if tab_id is None:
            return False
        if self._editors is not None:
            self._editors.reattach_tab(tab_id)
        return self._drop_dynamic(panel_id)

    def remove_detached_panel(self, panel_id: PanelId, close_editor: bool = False) -> bool:
        """从布局中移除动态 panel

        终端会话被销毁；设置 `close_editor` 时关闭 editor tab，否则交给其管理器处理。
        """
        if not is_dynamic(panel_id):
            return False
        instance_id = get_detached_terminal_id(panel_id)
        if instance_id and self._terminals is not None:
            self._terminals.destroy(instance_id)
        tab_id = get_detached_editor_tab_id(panel_id)
        if tab_id and close_editor and self._editors is not None:
            self._editors.close_detached(tab_id)
        return self._drop_dynamic(panel_id)

    def _drop_dynamic(self, panel_id: PanelId) -> bool:
        def transform(state: LayoutState) -> LayoutState | None:
            layout = ops.remove_panel(state.layout, panel_id)
            if layout is None:
                logger.warning(format_node_log("LayoutStore", panel_id, "Refused removing last panel"))
                metrics.inc("remove.refused")
                return None
            if layout is state.layout and panel_id not in state.visibility:
                return None
            mobile = tuple(p for p in state.mobile_panels if p != panel_id) or ("chat",)
            return state.replace(
                layout=layout,
                visibility=_without(state.visibility, panel_id),
                mobile_panels=mobile,
            )

        return self._update("remove", transform)

    # === 终端 ===

    def open_new_terminal(self) -> PanelId | None:
        """在主终端旁（或底部）打开额外终端

        Returns:
            新 panel id；没有终端管理器时为 None
        """
        if self._terminals is None:
            return None
        session = self._terminals.create()
        panel_id = session.panel_id

        def transform(state: LayoutState) -> LayoutState | None:
            terminal = ops.find_panel_node(state.layout, "terminal")
            if terminal is not None:
                layout = ops.insert_as_split(state.layout, panel_id, terminal.id, Edge.RIGHT, relocate=False)
            else:
                layout = ops.insert_at_edge(state.layout, panel_id, Edge.BOTTOM, relocate=False)
            if layout is None:
                return None
            visibility = dict(state.visibility)
            visibility[panel_id] = True
            return state.replace(layout=layout, visibility=visibility)

        if not self._update("terminal", transform):
            self._terminals.destroy(session.instance_id)
            return None
        return panel_id

    # === 拖放 ===

    def start_drag(self, panel_id: PanelId | None) -> None:
        """开始拖拽 pane（None 清除拖拽）"""
        self._update("drag", lambda s: s.replace(drag=DragState(dragged_panel_id=panel_id)), persist=False)

    def start_editor_tab_drag(self, tab_id: str | None) -> None:
        """开始拖拽 editor tab（此时还不是 panel）"""
        self._update("drag", lambda s: s.replace(drag=DragState(dragged_editor_tab_id=tab_id)), persist=False)

    def end_drag(self, zone_id: str | None) -> bool:
        """拖拽在 `zone_id` 上结束（None: 落在任何区域之外）

        Returns:
            布局是否变化
        """
        drag = self._state.drag
        self._update("drag", lambda s: s.replace(drag=DragState()), persist=False)
        if zone_id is None:
            return False
        if drag.dragged_editor_tab_id is not None:
            return self._drop_editor_tab(drag.dragged_editor_tab_id, zone_id)
        if drag.dragged_panel_id is not None:
            return self.drop(drag.dragged_panel_id, zone_id)
        return False

    def drop(self, dragged_id: PanelId, zone_id: str) -> bool:
        """应用一次放置，按此刻的布局校验

        不在树中的 panel 只有在静态或由协作者创建并存活时才会被插入。
        """
        def transform(state: LayoutState) -> LayoutState | None:
            if ops.find_panel_node(state.layout, dragged_id) is None and not self._has_owner(dragged_id):
                logger.warning(format_node_log("LayoutStore", dragged_id, "Refused drop of unowned panel"))
                metrics.inc("drop.refused")
                return None
            layout = apply_drop(state.layout, dragged_id, zone_id, self._panel_drop)
            if layout is state.layout:
                return None
            visibility = state.visibility
            if not is_visible(visibility, dragged_id):
                visibility = dict(visibility)
                visibility[dragged_id] = True
            return state.replace(layout=layout, visibility=visibility)

        changed = self._update("drop", transform)
        if changed:
            logger.info(format_node_log("LayoutStore", dragged_id, f"Dropped on {zone_id}"))
        return changed

    def _drop_editor_tab(self, tab_id: str, zone_id: str) -> bool:
        if self._editors is None or not self._editors.detach_tab(tab_id):
            return False
        if self.drop(make_detached_editor_id(tab_id), zone_id):
            return True
        self._editors.reattach_tab(tab_id)
        return False

    # === 小屏 ===

    def set_mobile_panels(self, panels: Sequence[PanelId]) -> bool:
        return self._update("mobile", lambda s: s.replace(mobile_panels=tuple(panels)))

    def open_mobile_panel(self, panel_id: PanelId, position: str) -> bool:
        def transform(state: LayoutState) -> LayoutState | None:
            panels = open_mobile_panel(state.mobile_panels, panel_id, position)
            if panels == state.mobile_panels:
                return None
            return state.replace(mobile_panels=panels)

        return self._update("mobile", transform)

    def close_mobile_panel(self, panel_id: PanelId) -> bool:
        """关闭小屏单列中的 panel

        分离的 editor 回到 editor panel，额外终端被销毁。
        """
        if is_detached_editor(panel_id) and self._editors is not None:
            self._editors.reattach_tab(get_detached_editor_tab_id(panel_id))
        if is_detached_terminal(panel_id) and self._terminals is not None:
            self._terminals.destroy(get_detached_terminal_id(panel_id))

        def transform(state: LayoutState) -> LayoutState | None:
            panels, visibility = close_mobile_panel(state.mobile_panels, panel_id, state.visibility)
            layout = state.layout
            if is_dynamic(panel_id):
                visibility.pop(panel_id, None)
                layout = ops.remove_panel(layout, panel_id) or layout
            return state.replace(layout=layout, visibility=visibility, mobile_panels=panels)

        return self._update("mobile", transform)

    # === 快照 ===

    def get_snapshot(self) -> LayoutSnapshot:
        return self._state.to_snapshot()

    def restore_from_snapshot(
        self,
        snapshot: LayoutSnapshot | Mapping[str, Any] | None,
        panel_id_mapping: Mapping[PanelId, PanelId] | None = None,
    ) -> bool:
        """替换整个布局，例如切换 workspace session 时

        先销毁当前布局中的额外终端。mapping 把快照中的动态 id 改名为
        editor 管理器重新创建的 id；没有存活所有者的动态 id 会被剪除。
        """
        for panel_id in self.get_all_panel_ids():
            instance_id = get_detached_terminal_id(panel_id)
            if instance_id and self._terminals is not None:
                self._terminals.destroy(instance_id)

        data = serialize(snapshot) if isinstance(snapshot, LayoutSnapshot) else snapshot
        restored = restore(data, live=self._live_predicate(), panel_id_mapping=panel_id_mapping)
        return self._update(
            "restore",
            lambda s: s.replace(
                layout=restored.tree,
                visibility=dict(restored.visibility),
                mobile_panels=restored.mobile_panels,
                drag=DragState(),
            ),
        )

    def _has_owner(self, panel_id: PanelId) -> bool:
        """panel id 是否静态，或由存活的 editor tab / 终端会话拥有"""
        if is_static(panel_id):
            return True
        if is_detached_editor(panel_id):
            return self._editors is not None and self._editors.is_live_panel(panel_id)
        if is_detached_terminal(panel_id):
            return self._terminals is not None and self._terminals.is_live_panel(panel_id)
        return False

    def _live_predicate(self) -> Callable[[PanelId], bool] | None:
        if self._editors is None and self._terminals is None:
            return None
        editors = self._editors
        terminals = self._terminals

        def live(panel_id: PanelId) -> bool:
            if is_detached_editor(panel_id):
                return editors is None or editors.is_live_panel(panel_id)
            if is_detached_terminal(panel_id):
                return terminals is None or terminals.is_live_panel(panel_id)
            return True

        return live
