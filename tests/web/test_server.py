"""Web 服务器路由与 WebSocket 测试"""

import json

import pytest
from fastapi.testclient import TestClient

from panelgrid.layout.storage import MemoryStorage
from panelgrid.layout.store import LayoutStore
from panelgrid.web.app import create_app
from panelgrid.web.server import LayoutServer


@pytest.fixture
def server():
    return create_app()


@pytest.fixture
def client(server):
    return TestClient(server.app)


class TestLayoutRoutes:
    """/api/layout 路由"""

    def test_get_layout(self, client):
        data = client.get("/api/layout").json()
        assert data["type"] == "layout"
        assert data["layout"]["id"] == "root"
        assert data["visiblePanelIds"] == ["files", "editor", "terminal", "chat"]
        assert data["mobilePanels"] == ["chat"]
        assert "preview" in data["panelIds"]

    def test_text(self, client):
        response = client.get("/api/layout/text")
        assert response.status_code == 200
        assert "node-files" in response.text

    def test_zones(self, client):
        data = client.get("/api/layout/zones/files").json()
        assert data["edges"] == ["edge-left", "edge-right"]
        assert "merge-node-files" not in data["panes"]["node-files"]
        assert "merge-node-chat" in data["panes"]["node-chat"]
        assert len(data["panes"]["node-files"]) == 4

    def test_drop(self, client, server):
        response = client.post("/api/layout/drop", json={"dragged_id": "files", "zone_id": "merge-node-chat"})
        assert response.json() == {"success": True, "message": ""}
        assert server.store.find_panel_node("files").id == "node-chat"

    def test_drop_ignored(self, client):
        response = client.post("/api/layout/drop", json={"dragged_id": "files", "zone_id": "nowhere"})
        body = response.json()
        assert body["success"] is False
        assert body["message"]

    def test_drop_validation_error(self, client):
        assert client.post("/api/layout/drop", json={"zone_id": "edge-left"}).status_code == 422

    def test_resize(self, client, server):
        assert client.post("/api/layout/resize", json={"group_id": "root", "sizes": [50, 25, 25]}).json()["success"]
        assert server.store.layout.sizes == pytest.approx((50.0, 25.0, 25.0))
        assert not client.post("/api/layout/resize", json={"group_id": "x", "sizes": [1]}).json()["success"]

    def test_tab(self, client):
        body = client.post("/api/layout/tab", json={"node_id": "node-editor", "panel_id": "preview"}).json()
        assert body["success"]

    def test_toggle_and_reset(self, client, server):
        assert client.post("/api/layout/visibility/terminal/toggle").json()["success"]
        assert server.store.visibility["terminal"] is False
        assert client.post("/api/layout/reset").json()["success"]
        assert server.store.visibility["terminal"] is True


class TestSessionRoutes:
    """/api/workspace-sessions 路由"""

    prefix = "/api/workspace-sessions"

    def test_list(self, client):
        sessions = client.get(self.prefix).json()
        assert [s["name"] for s in sessions] == ["Desktop"]

    def test_create(self, client, server):
        response = client.post(self.prefix, json={"name": "Work", "device_tag": "Phone"})
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Work"
        assert data["device_tag"] == "Phone"
        assert server.sessions.active_id != data["id"]

    def test_create_invalid_name(self, client):
        assert client.post(self.prefix, json={"name": "x" * 101}).status_code == 400

    def test_latest(self, client, server):
        response = client.get(f"{self.prefix}/latest")
        assert response.status_code == 200
        assert response.json()["id"] == server.sessions.active_id

    def test_latest_none(self):
        client = TestClient(LayoutServer(LayoutStore()).app)
        assert client.get(f"{self.prefix}/latest").status_code == 404

    def test_update(self, client, server):
        session_id = server.sessions.active_id
        response = client.put(f"{self.prefix}/{session_id}", json={"name": "Main"})
        assert response.status_code == 200
        assert response.json()["name"] == "Main"
        assert client.put(f"{self.prefix}/{session_id}", json={"name": "x" * 101}).status_code == 400
        assert client.put(f"{self.prefix}/nope", json={"name": "A"}).status_code == 404

    def test_delete(self, client, server):
        active_id = server.sessions.active_id
        assert client.delete(f"{self.prefix}/{active_id}").status_code == 409
        assert client.delete(f"{self.prefix}/nope").status_code == 404

        other_id = client.post(self.prefix, json={"name": "Other"}).json()["id"]
        response = client.delete(f"{self.prefix}/{other_id}")
        assert response.status_code == 200
        assert response.json() == {"message": "Workspace session deleted"}
        assert server.sessions.get(other_id) is None

    def test_switch(self, client, server):
        other_id = client.post(self.prefix, json={"name": "Other"}).json()["id"]
        response = client.post(f"{self.prefix}/{other_id}/switch")
        assert response.json()["success"]
        assert server.sessions.active_id == other_id
        assert client.post(f"{self.prefix}/nope/switch").status_code == 404


class TestRestart:
    """同一存储上重复启动"""

    def test_detached_editor_survives_two_restarts(self):
        storage = MemoryStorage()
        server = create_app(storage)
        tab = server.store.editors.open_tab("/a.py")
        server.store.detach_editor_tab(tab.tab_id)
        server.sessions.save_current()

        for _ in range(2):
            server = create_app(storage)
            detached = server.store.editors.detached_tabs
            assert [t.path for t in detached] == ["/a.py"]
            data = TestClient(server.app).get("/api/layout").json()
            assert detached[0].panel_id in data["visiblePanelIds"]
            server.sessions.save_current()


class TestWebSocket:
    """/ws 端点"""

    def test_initial_layout(self, client):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "layout"

    def test_action_result_and_broadcast(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"action": "toggle", "panel_id": "terminal"}))
            assert ws.receive_json() == {"type": "toggle_result", "success": True}
            update = ws.receive_json()
            assert update["type"] == "layout"
            assert update["visibility"]["terminal"] is False

    def test_unknown_action(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"action": "explode"}))
            message = ws.receive_json()
            assert message["type"] == "error"
            assert "explode" in message["message"]

    def test_drag_and_drop(self, client, server):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"action": "drag_start", "panel_id": "chat"}))
            assert ws.receive_json() == {"type": "drag_start_result", "success": True}
            ws.send_text(json.dumps({"action": "drop", "zone_id": "edge-left"}))
            assert ws.receive_json() == {"type": "drop_result", "success": True}
            assert ws.receive_json()["type"] == "layout"
        assert server.store.layout.children[0].panel_ids == ("chat",)
