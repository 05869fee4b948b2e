"""EditorTabs 测试"""

from panelgrid.workspace.editors import EditorTabs


class TestTabs:
    """打开 / 关闭"""

    def test_open_mints_ids(self):
        editors = EditorTabs()
        a = editors.open_tab("a.py")
        b = editors.open_tab("b.py")
        assert (a.tab_id, b.tab_id) == ("tab-1", "tab-2")
        assert editors.active_tab_id == "tab-2"
        assert b.panel_id == "editor:tab-2"

    def test_open_same_path_reuses_tab(self):
        editors = EditorTabs()
        a = editors.open_tab("a.py")
        editors.open_tab("b.py")
        assert editors.open_tab("a.py") is a
        assert editors.active_tab_id == a.tab_id

    def test_close_moves_active(self):
        editors = EditorTabs()
        editors.open_tab("a.py")
        b = editors.open_tab("b.py")
        assert editors.close_tab(b.tab_id)
        assert editors.active_tab_id == "tab-1"
        assert not editors.close_tab(b.tab_id)

    def test_modified(self):
        editors = EditorTabs()
        tab = editors.open_tab("a.py")
        assert not editors.has_modified()
        editors.mark_modified(tab.tab_id)
        assert editors.has_modified()


class TestDetach:
    """分离 / 合回"""

    def test_detach_and_reattach(self):
        editors = EditorTabs()
        tab = editors.open_tab("a.py")
        assert editors.detach_tab(tab.tab_id)
        assert not editors.detach_tab(tab.tab_id)
        assert editors.detached_tabs == [tab]
        assert editors.active_tab_id is None
        assert editors.is_live_panel("editor:tab-1")

        assert editors.reattach_tab(tab.tab_id)
        assert editors.open_tabs == [tab]
        assert editors.active_tab_id == tab.tab_id
        assert not editors.is_live_panel("editor:tab-1")

    def test_close_detached(self):
        editors = EditorTabs()
        tab = editors.open_tab("a.py")
        assert not editors.close_detached(tab.tab_id)
        editors.detach_tab(tab.tab_id)
        assert editors.close_detached(tab.tab_id)
        assert editors.get(tab.tab_id) is None

    def test_reattach_all(self):
        editors = EditorTabs()
        for path in ("a.py", "b.py", "c.py"):
            editors.detach_tab(editors.open_tab(path).tab_id)
        assert editors.reattach_all() == 3
        assert editors.detached_tabs == []

    def test_live_panel_rejects_other_ids(self):
        assert not EditorTabs().is_live_panel("chat")


class TestSnapshot:
    """快照 / 恢复"""

    def test_restore_mints_fresh_ids(self):
        editors = EditorTabs()
        editors.open_tab("a.py")
        detached = editors.open_tab("b.py")
        editors.detach_tab(detached.tab_id)
        snapshot = editors.snapshot()

        mapping = editors.restore(snapshot)
        assert mapping == {"editor:tab-2": "editor:tab-4"}
        assert [t.path for t in editors.open_tabs] == ["a.py"]
        assert [t.path for t in editors.detached_tabs] == ["b.py"]
        assert editors.active_tab_id == "tab-3"

    def test_restore_active_index(self):
        editors = EditorTabs()
        editors.open_tab("a.py")
        editors.open_tab("b.py")
        snapshot = editors.snapshot()
        snapshot["activeTabIndex"] = 0

        editors.restore(snapshot)
        assert editors.get(editors.active_tab_id).path == "a.py"

    def test_restore_skips_malformed_entries(self):
        editors = EditorTabs()
        mapping = editors.restore({
            "openTabs": [{"path": "a.py"}, "junk", {"path": 3}],
            "detachedEditors": [{"path": "b.py"}, {"id": "tab-9"}],
        })
        assert mapping == {}
        assert len(editors.open_tabs) == 1
        assert len(editors.detached_tabs) == 1

    def test_restore_none_clears(self):
        editors = EditorTabs()
        editors.open_tab("a.py")
        assert editors.restore(None) == {}
        assert editors.open_tabs == []
        assert editors.active_tab_id is None
