"""WorkspaceSessionManager 测试"""

import pytest

from panelgrid.layout.defaults import DEFAULT_LAYOUT
from panelgrid.layout.persistence import serialize
from panelgrid.layout.storage import MemoryStorage
from panelgrid.layout.store import LayoutStore
from panelgrid.telemetry import metrics
from panelgrid.workspace.editors import EditorTabs
from panelgrid.workspace.sessions import SessionError, WorkspaceSession, WorkspaceSessionManager
from panelgrid.workspace.terminals import TerminalSessions


def make_store(storage=None):
    return LayoutStore(storage, editors=EditorTabs(), terminals=TerminalSessions())


@pytest.fixture
def store():
    return make_store()


@pytest.fixture
def manager(store):
    return WorkspaceSessionManager(store)


def merged_layout_snapshot():
    other = LayoutStore()
    other.merge_panels("files", "node-chat")
    return {"workspace": {}, "layout": serialize(other.get_snapshot())}


class TestInit:
    """启动时选择 session"""

    def test_first_start_creates_device_session(self, manager):
        session = manager.init()
        assert session.name == "Desktop"
        assert session.device_tag == "Desktop"
        assert manager.active_id == session.id

    def test_keeps_active(self, manager):
        first = manager.init()
        assert manager.init() is first

    def test_resumes_latest(self, manager, store):
        older = manager.add("Older")
        older.updated_at = 100.0
        newer = manager.add("Newer", snapshot=merged_layout_snapshot())
        newer.updated_at = 200.0

        assert manager.init() is newer
        assert manager.active_id == newer.id
        assert store.find_panel_node("files").id == "node-chat"


class TestCreateAndSwitch:
    """创建 / 切换"""

    def test_create_resets_workspace(self, manager, store):
        manager.init()
        store.merge_panels("files", "node-chat")
        store.open_new_terminal()

        session = manager.create("Review")
        assert manager.active_id == session.id
        assert store.layout is DEFAULT_LAYOUT
        assert store.terminals.instance_ids == []

    def test_switch_back_restores_layout(self, manager, store):
        first = manager.init()
        store.merge_panels("files", "node-chat")
        manager.create("Other")

        assert manager.switch(first.id)
        assert manager.active_id == first.id
        assert store.find_panel_node("files").id == "node-chat"

    def test_detached_editor_restored_with_fresh_id(self, manager, store):
        first = manager.init()
        editors = store.editors
        editors.open_tab("a.py")
        tab = editors.open_tab("b.py")
        store.detach_editor_tab(tab.tab_id)
        assert "editor:tab-2" in store.get_all_panel_ids()

        manager.create("Other")
        manager.switch(first.id)

        panel_ids = store.get_all_panel_ids()
        assert "editor:tab-2" not in panel_ids
        assert "editor:tab-4" in panel_ids
        assert store.visibility["editor:tab-4"] is True
        assert editors.is_live_panel("editor:tab-4")

    def test_switch_destroys_terminals(self, manager, store):
        manager.init()
        other = manager.add("Other")
        store.open_new_terminal()
        manager.switch(other.id)
        assert store.terminals.instance_ids == []

    def test_switch_to_active(self, manager):
        session = manager.init()
        assert manager.switch(session.id)

    def test_switch_unknown(self, manager):
        manager.init()
        assert not manager.switch("nope")

    def test_malformed_snapshot_resets(self, manager, store):
        manager.init()
        store.merge_panels("files", "node-chat")
        broken = manager.add("Broken", snapshot={"workspace": "junk"})

        assert manager.switch(broken.id)
        assert store.layout is DEFAULT_LAYOUT
        assert metrics.get_counter("persist.error", {"op": "restore", "reason": "session"}) == 1

    def test_save_current(self, manager, store):
        session = manager.init()
        store.merge_panels("files", "node-chat")
        assert manager.save_current()
        assert session.snapshot["layout"]["layout"]["children"][-1]["panelIds"] == ["chat", "files"]

    def test_save_without_active(self, manager):
        assert not manager.save_current()


class TestUpdateAndDelete:
    """更新 / 重命名 / 删除"""

    def test_rename(self, manager):
        session = manager.init()
        assert manager.rename(session.id, "  Main  ").name == "Main"

    def test_empty_name_defaults(self, manager):
        assert manager.add("").name == "New Workspace"

    def test_name_too_long(self, manager):
        session = manager.init()
        with pytest.raises(SessionError):
            manager.rename(session.id, "x" * 101)

    def test_update_unknown(self, manager):
        with pytest.raises(SessionError):
            manager.update("nope", name="x")

    def test_update_snapshot(self, manager):
        session = manager.add("A")
        manager.update(session.id, snapshot={"workspace": {}, "layout": {}})
        assert session.snapshot == {"workspace": {}, "layout": {}}
        assert session.name == "A"

    def test_delete_last_refused(self, manager):
        session = manager.init()
        with pytest.raises(SessionError):
            manager.delete(session.id)
        assert metrics.get_counter("session.delete_refused") == 1

    def test_delete_unknown(self, manager):
        with pytest.raises(SessionError):
            manager.delete("nope")

    def test_delete_inactive(self, manager):
        active = manager.init()
        other = manager.add("Other")
        manager.delete(other.id)
        assert manager.get(other.id) is None
        assert manager.active_id == active.id

    def test_delete_active_switches(self, manager, store):
        first = manager.init()
        store.merge_panels("files", "node-chat")
        second = manager.create("Second")

        manager.delete(second.id)
        assert manager.active_id == first.id
        assert store.find_panel_node("files").id == "node-chat"


class TestListing:
    """列出 / 最近 session"""

    def test_most_recent_first(self, manager):
        a = manager.add("A")
        b = manager.add("B")
        a.updated_at, b.updated_at = 200.0, 100.0
        assert [s.name for s in manager.list_sessions()] == ["A", "B"]
        assert manager.latest() is a

    def test_latest_empty(self, manager):
        assert manager.latest() is None


class TestPersistence:
    """存储读写"""

    def test_reload(self):
        storage = MemoryStorage()
        manager = WorkspaceSessionManager(make_store(), storage)
        manager.init()
        second = manager.create("Second")

        reloaded = WorkspaceSessionManager(make_store(), storage)
        assert reloaded.active_id == second.id
        assert {s.name for s in reloaded.list_sessions()} == {"Desktop", "Second"}
        assert reloaded.init().id == second.id

    def test_restart_keeps_editor_tabs(self):
        """连续两次重启后，打开的和分离的 editor tab 仍然保留"""
        storage = MemoryStorage()
        store = make_store(storage)
        manager = WorkspaceSessionManager(store, storage)
        manager.init()
        store.editors.open_tab("/b.py")
        tab = store.editors.open_tab("/a.py")
        store.detach_editor_tab(tab.tab_id)
        manager.save_current()

        for _ in range(2):
            store = make_store(storage)
            manager = WorkspaceSessionManager(store, storage)
            manager.init()

            assert [t.path for t in store.editors.open_tabs] == ["/b.py"]
            detached = store.editors.detached_tabs
            assert [t.path for t in detached] == ["/a.py"]
            assert detached[0].panel_id in store.get_all_panel_ids()
            assert store.visibility[detached[0].panel_id] is True
            manager.save_current()

    def test_restart_with_fresh_session_keeps_layout(self):
        """活动 session 尚无快照时保留已存储的布局"""
        storage = MemoryStorage()
        store = make_store(storage)
        WorkspaceSessionManager(store, storage).init()
        store.merge_panels("files", "node-chat")

        store = make_store(storage)
        WorkspaceSessionManager(store, storage).init()
        assert store.find_panel_node("files").id == "node-chat"

    def test_corrupted_list(self):
        storage = MemoryStorage({"panelgrid-workspace-sessions": b"{not json"})
        manager = WorkspaceSessionManager(make_store(), storage)
        assert manager.list_sessions() == []
        assert metrics.get_counter("persist.error", {"op": "load", "reason": "sessions"}) == 1

    def test_session_dict_round_trip(self):
        session = WorkspaceSession(id="s1", name="Main", device_tag="Phone", snapshot={"a": 1})
        assert WorkspaceSession.from_dict(session.to_dict()) == session

    def test_from_dict_defaults(self):
        session = WorkspaceSession.from_dict({"id": "s1", "snapshot": "junk"})
        assert session.name == "New Workspace"
        assert session.snapshot == {}
