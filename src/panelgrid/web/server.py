"""Web 服务器

基于一个 LayoutStore 的 HTTP API 和 WebSocket 端点。通过 API 做出的每次变更
都以 layout 消息广播给所有已连接的客户端。
"""

from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from panelgrid.layout.dropzones import edge_zones, zones_for_pane
from panelgrid.layout.store import LayoutStore
from panelgrid.layout.tree import iter_nodes
from panelgrid.layout.types import PanelNode, node_to_dict
from panelgrid.layout.visibility import visible_panel_ids
from panelgrid.render import render_text
from panelgrid.telemetry import get_logger
from panelgrid.web.handlers import MessageHandler
from panelgrid.workspace.sessions import SessionError, WorkspaceSession, WorkspaceSessionManager

logger = get_logger(__name__)


class DropRequest(BaseModel):
    """完成的拖拽"""

    dragged_id: str  # 被拖 panel id
    zone_id: str  # drop zone id，如 "split-left-node-3"


class ResizeRequest(BaseModel):
    group_id: str
    sizes: list[float]


class TabRequest(BaseModel):
    node_id: str
    panel_id: str


class ActionResponse(BaseModel):
    success: bool
    message: str = ""


class SessionCreateRequest(BaseModel):
    name: str = ""
    device_tag: str = ""
    snapshot: dict[str, Any] | None = None


class SessionUpdateRequest(BaseModel):
    name: str = ""
    snapshot: dict[str, Any] | None = None


class SessionResponse(BaseModel):
    id: str
    name: str
    device_tag: str
    snapshot: dict[str, Any]
    created_at: float
    updated_at: float

    @classmethod
    def from_session(cls, session: WorkspaceSession) -> "SessionResponse":
        return cls(**session.to_dict())


def layout_message(store: LayoutStore) -> dict:
    """发送给客户端的布局状态"""
    state = store.state
    visible = store.visible_layout()
    return {
        "type": "layout",
        "layout": node_to_dict(state.layout),
        "visible": node_to_dict(visible) if visible is not None else None,
        "visibility": dict(state.visibility),
        "mobilePanels": list(state.mobile_panels),
        "panelIds": store.get_all_panel_ids(),
        "visiblePanelIds": visible_panel_ids(state.layout, state.visibility),
    }


class LayoutServer:
    """FastAPI 应用 + WebSocket 客户端"""

    def __init__(self, store: LayoutStore, sessions: WorkspaceSessionManager | None = None):
        self.app = FastAPI(title="panelgrid")
        self.store = store
        self.sessions = sessions or WorkspaceSessionManager(store)
        self.clients: list[WebSocket] = []

        self._handler = MessageHandler(store=store, broadcast=self.broadcast_layout)

        self._setup_routes()
        self._setup_session_routes()

    async def broadcast_layout(self) -> None:
        await self.broadcast(layout_message(self.store))

    async def _respond(self, changed: bool, message: str = "") -> ActionResponse:
        if changed:
            await self.broadcast_layout()
        return ActionResponse(success=changed, message=message if not changed else "")

    def _setup_routes(self):
        store = self.store

        @self.app.get("/api/layout")
        async def get_layout():
            return layout_message(store)

        @self.app.get("/api/layout/text", response_class=PlainTextResponse)
        async def get_layout_text():
            """调试用树视图"""
            return render_text(store.layout, store.visibility)

        @self.app.get("/api/layout/zones/{dragged_id}")
        async def get_zones(dragged_id: str):
            """拖拽 `dragged_id` 时提供的 drop zone"""
            visible = store.visible_layout()
            panes = {}
            if visible is not None:
                for node in iter_nodes(visible):
                    if isinstance(node, PanelNode):
                        panes[node.id] = zones_for_pane(node, dragged_id)
            return {"edges": edge_zones(), "panes": panes}

        @self.app.post("/api/layout/drop", response_model=ActionResponse)
        async def drop(request: DropRequest):
            changed = store.drop(request.dragged_id, request.zone_id)
            return await self._respond(changed, "Drop had no effect")

        @self.app.post("/api/layout/resize", response_model=ActionResponse)
        async def resize(request: ResizeRequest):
            changed = store.update_sizes(request.group_id, request.sizes)
            return await self._respond(changed, "Unknown group or size count mismatch")

        @self.app.post("/api/layout/tab", response_model=ActionResponse)
        async def activate_tab(request: TabRequest):
            changed = store.set_active_tab(request.node_id, request.panel_id)
            return await self._respond(changed, "Unknown pane or tab")

        @self.app.post("/api/layout/reset", response_model=ActionResponse)
        async def reset():
            changed = store.reset_layout()
            return await self._respond(changed, "Layout already at defaults")

        @self.app.post("/api/layout/visibility/{panel_id}/toggle", response_model=ActionResponse)
        async def toggle(panel_id: str):
            changed = store.toggle_visibility(panel_id)
            return await self._respond(changed, "Cannot hide the last visible panel")

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            await websocket.accept()
            self.clients.append(websocket)
            try:
                await websocket.send_json(layout_message(store))
                while True:
                    data = await websocket.receive_text()
                    await self._handler.handle(websocket, data)
            except WebSocketDisconnect:
                self.clients.remove(websocket)

    def _setup_session_routes(self):
        sessions = self.sessions
        prefix = "/api/workspace-sessions"

        def get_or_404(session_id: str) -> WorkspaceSession:
            session = sessions.get(session_id)
            if session is None:
                raise HTTPException(status_code=404, detail="Workspace session not found")
            return session

        @self.app.get(prefix, response_model=list[SessionResponse])
        async def list_sessions():
            return [SessionResponse.from_session(s) for s in sessions.list_sessions()]

        @self.app.get(f"{prefix}/latest", response_model=SessionResponse)
        async def latest_session():
            session = sessions.latest()
            if session is None:
                raise HTTPException(status_code=404, detail="No workspace sessions found")
            return SessionResponse.from_session(session)

        @self.app.post(prefix, response_model=SessionResponse, status_code=201)
        async def create_session(request: SessionCreateRequest):
            try:
                session = sessions.add(request.name, request.device_tag, request.snapshot)
            except SessionError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return SessionResponse.from_session(session)

        @self.app.put(f"{prefix}/{{session_id}}", response_model=SessionResponse)
        async def update_session(session_id: str, request: SessionUpdateRequest):
            get_or_404(session_id)
            try:
                session = sessions.update(session_id, name=request.name, snapshot=request.snapshot)
            except SessionError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return SessionResponse.from_session(session)

        @self.app.delete(f"{prefix}/{{session_id}}")
        async def delete_session(session_id: str):
            get_or_404(session_id)
            was_active = sessions.active_id == session_id
            try:
                sessions.delete(session_id)
            except SessionError as e:
                raise HTTPException(status_code=409, detail=str(e))
            if was_active:
                await self.broadcast_layout()
            return {"message": "Workspace session deleted"}

        @self.app.post(f"{prefix}/{{session_id}}/switch", response_model=ActionResponse)
        async def switch_session(session_id: str):
            get_or_404(session_id)
            sessions.switch(session_id)
            await self.broadcast_layout()
            return ActionResponse(success=True)

    async def broadcast(self, data: dict):
        """向所有客户端发送消息"""
        for client in list(self.clients):
            try:
                await client.send_json(data)
            except Exception as e:
                logger.debug(f"[LayoutServer] Dropping client: {e}")
                if client in self.clients:
                    self.clients.remove(client)
