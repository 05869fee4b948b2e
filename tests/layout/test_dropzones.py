"""放置目标解析测试"""

import pytest

from panelgrid.layout.defaults import DEFAULT_LAYOUT
from panelgrid.layout.dropzones import (
    DropKind,
    PanelDropMode,
    apply_drop,
    edge_zones,
    make_edge_zone_id,
    make_merge_zone_id,
    make_panel_zone_id,
    make_split_zone_id,
    parse_drop_zone,
    resolve_drop,
    zones_for_pane,
)
from panelgrid.layout.tree import check_invariants, find_node, find_panel_node, get_all_panel_ids
from panelgrid.layout.types import Edge, GroupNode, Orientation, PanelNode
from panelgrid.telemetry import metrics


class TestZoneIds:
    """Zone id 构造与解析"""

    def test_builders(self):
        assert make_edge_zone_id(Edge.LEFT) == "edge-left"
        assert make_split_zone_id(Edge.TOP, "node-3") == "split-top-node-3"
        assert make_merge_zone_id("node-3") == "merge-node-3"
        assert make_panel_zone_id("editor:tab-1") == "panel-editor:tab-1"

    def test_parse_edge(self):
        target = parse_drop_zone("edge-right")
        assert target.kind == DropKind.EDGE
        assert target.edge == Edge.RIGHT

    def test_parse_split_keeps_dashed_node_id(self):
        target = parse_drop_zone("split-bottom-node-12-lx3k9a")
        assert target.kind == DropKind.SPLIT
        assert target.edge == Edge.BOTTOM
        assert target.node_id == "node-12-lx3k9a"

    def test_parse_merge_and_panel(self):
        assert parse_drop_zone("merge-node-chat").node_id == "node-chat"
        target = parse_drop_zone("panel-terminal:term-1")
        assert target.kind == DropKind.PANEL
        assert target.panel_id == "terminal:term-1"

    @pytest.mark.parametrize("zone_id", [
        "", "bogus", "edge-top", "edge-middle", "split-left", "split-left-",
        "split-middle-node-1", "merge-", "panel-", None, 42,
    ])
    def test_parse_invalid(self, zone_id):
        assert parse_drop_zone(zone_id) is None

    def test_edge_zones(self):
        assert edge_zones() == ["edge-left", "edge-right"]

    def test_zones_for_pane(self):
        node = find_node(DEFAULT_LAYOUT, "node-chat")
        assert zones_for_pane(node, "files") == [
            "split-top-node-chat",
            "split-bottom-node-chat",
            "split-left-node-chat",
            "split-right-node-chat",
            "merge-node-chat",
        ]

    def test_no_center_zone_on_own_pane(self):
        node = find_node(DEFAULT_LAYOUT, "node-chat")
        assert "merge-node-chat" not in zones_for_pane(node, "chat")


class TestResolveDrop:
    """放置解析"""

    def test_edge(self):
        action = resolve_drop(DEFAULT_LAYOUT, "files", "edge-right")
        assert action.operation == "insert_at_edge"
        assert action.edge == Edge.RIGHT
        assert action.relocate is True

    def test_new_panel_is_inserted(self):
        """不在树中的 panel 是插入而不是移动"""
        action = resolve_drop(DEFAULT_LAYOUT, "editor:tab-1", "split-left-node-chat")
        assert action.operation == "insert_as_split"
        assert action.relocate is False

    def test_split_onto_own_single_pane(self):
        assert resolve_drop(DEFAULT_LAYOUT, "chat", "split-left-node-chat") is None

    def test_split_onto_own_multi_tab_pane(self):
        """允许把 tab 拖出到自身 pane 旁边"""
        action = resolve_drop(DEFAULT_LAYOUT, "preview", "split-right-node-editor")
        assert action.operation == "insert_as_split"

    def test_stale_node(self):
        assert resolve_drop(DEFAULT_LAYOUT, "chat", "split-left-node-gone") is None
        assert resolve_drop(DEFAULT_LAYOUT, "chat", "merge-node-gone") is None

    def test_merge_into_own_pane(self):
        assert resolve_drop(DEFAULT_LAYOUT, "preview", "merge-node-editor") is None

    def test_merge_into_group(self):
        assert resolve_drop(DEFAULT_LAYOUT, "chat", "merge-group-center") is None

    def test_panel_drop_merges_by_default(self):
        action = resolve_drop(DEFAULT_LAYOUT, "files", "panel-chat")
        assert action.operation == "merge"
        assert action.node_id == "node-chat"

    def test_panel_drop_swap_mode(self):
        action = resolve_drop(DEFAULT_LAYOUT, "files", "panel-chat", PanelDropMode.SWAP)
        assert action.operation == "swap"
        assert action.other_panel_id == "chat"

    def test_swap_needs_dragged_panel_in_tree(self):
        assert resolve_drop(DEFAULT_LAYOUT, "editor:tab-1", "panel-chat", PanelDropMode.SWAP) is None

    def test_panel_drop_on_itself(self):
        assert resolve_drop(DEFAULT_LAYOUT, "chat", "panel-chat") is None

    def test_panel_drop_on_missing_panel(self):
        assert resolve_drop(DEFAULT_LAYOUT, "chat", "panel-editor:tab-9") is None

    def test_panel_drop_on_same_pane(self):
        assert resolve_drop(DEFAULT_LAYOUT, "editor", "panel-preview") is None

    def test_edge_on_single_pane_layout(self):
        """整个布局就是被拖 panel 的 pane"""
        solo = PanelNode(id="solo", panel_ids=("chat",))
        assert resolve_drop(solo, "chat", "edge-left") is None

    def test_edge_from_multi_tab_root_pane(self):
        root = PanelNode(id="solo", panel_ids=("chat", "files"))
        action = resolve_drop(root, "chat", "edge-left")
        tree = action.apply(root)
        assert isinstance(tree, GroupNode)
        assert tree.orientation == Orientation.HORIZONTAL
        assert tree.children[0].panel_ids == ("chat",)
        assert tree.children[1] == PanelNode(id="solo", panel_ids=("files",))
        assert tree.sizes == (25.0, 75.0)


class TestApplyDrop:
    """执行放置"""

    def test_files_right_of_editor(self):
        tree = apply_drop(DEFAULT_LAYOUT, "files", "split-right-node-editor")
        assert get_all_panel_ids(tree).count("files") == 1
        wrapper = tree.children[0].children[0]
        assert wrapper.orientation == Orientation.HORIZONTAL
        assert wrapper.sizes == (50.0, 50.0)
        assert [c.panel_ids[0] for c in wrapper.children] == ["editor", "files"]
        assert check_invariants(tree) == []

    def test_detached_editor_merge(self):
        tree = apply_drop(DEFAULT_LAYOUT, "editor:tab-1", "merge-node-terminal")
        node = find_panel_node(tree, "editor:tab-1")
        assert node.id == "node-terminal"
        assert node.active_panel_id == "editor:tab-1"

    def test_noop_returns_same_tree(self):
        assert apply_drop(DEFAULT_LAYOUT, "chat", "panel-chat") is DEFAULT_LAYOUT
        assert apply_drop(DEFAULT_LAYOUT, "chat", "nowhere") is DEFAULT_LAYOUT
        assert metrics.get_counter("drop.noop") == 2

    def test_swap_mode(self):
        tree = apply_drop(DEFAULT_LAYOUT, "files", "panel-chat", PanelDropMode.SWAP)
        assert tree.children[0].panel_ids == ("chat",)
        assert tree.children[2].panel_ids == ("files",)
