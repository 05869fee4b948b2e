"""TerminalSessions 测试"""

from panelgrid.workspace.terminals import TerminalSessions


class TestTerminalSessions:
    """终端 session 池"""

    def test_create(self):
        terminals = TerminalSessions()
        session = terminals.create()
        assert session.instance_id.startswith("term-")
        assert session.panel_id == f"terminal:{session.instance_id}"
        assert terminals.is_live_panel(session.panel_id)

    def test_create_existing_returns_same(self):
        terminals = TerminalSessions()
        assert terminals.create("t1") is terminals.create("t1")
        assert terminals.instance_ids == ["t1"]

    def test_attach_keeps_session(self):
        """移动 pane 只重新绑定 session"""
        terminals = TerminalSessions()
        session = terminals.create("t1")
        assert terminals.attach("t1", "node-1")
        assert session.attached
        assert terminals.detach("t1")
        assert not session.attached
        assert terminals.attach("t1", "node-2")
        assert terminals.get("t1") is session
        assert session.container_id == "node-2"

    def test_attach_unknown(self):
        terminals = TerminalSessions()
        assert not terminals.attach("nope", "node-1")
        assert not terminals.detach("nope")

    def test_destroy(self):
        terminals = TerminalSessions()
        terminals.create("t1")
        assert terminals.destroy("t1")
        assert not terminals.destroy("t1")
        assert not terminals.is_live_panel("terminal:t1")

    def test_destroy_all(self):
        terminals = TerminalSessions()
        terminals.create("t1")
        terminals.create("t2")
        assert terminals.destroy_all() == 2
        assert terminals.instance_ids == []

    def test_live_panel_rejects_other_ids(self):
        assert not TerminalSessions().is_live_panel("terminal")
