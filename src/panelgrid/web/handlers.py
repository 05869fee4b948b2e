"""WebSocket 消息处理

客户端发送带 "action" 字段的 JSON 消息：

    {"action": "drag_start", "panel_id": "files"}      or  {"action": "drag_start", "tab_id": "tab-3"}
    {"action": "drop", "zone_id": "merge-node-7"}       （zone_id 为 null：放在所有 zone 之外）
    {"action": "drop", "dragged_id": "chat", "zone_id": "edge-left"}
    {"action": "resize", "group_id": "root", "sizes": [30, 70]}
    {"action": "toggle", "panel_id": "terminal"}
    {"action": "activate_tab", "node_id": "node-editor", "panel_id": "preview"}

每条消息回复 {"type": "<action>_result", "success": bool}，成功的变更广播给所有客户端。
"""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import WebSocket

from panelgrid.layout.store import LayoutStore
from panelgrid.telemetry import get_logger

logger = get_logger(__name__)


@dataclass
class MessageHandler:
    """WebSocket 消息处理器"""

    store: LayoutStore
    broadcast: Callable[[], Awaitable[None]]

    async def handle(self, websocket: WebSocket, data: str):
        """处理一条 WebSocket 消息"""
        try:
            msg = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"[MessageHandler] Invalid message: {data[:80]}")
            return
        if not isinstance(msg, dict):
            return

        action = msg.get("action")
        handler = getattr(self, f"_handle_{action}", None) if isinstance(action, str) else None
        if handler is None:
            logger.warning(f"[MessageHandler] Unknown action: {action}")
            await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})
            return

        try:
            success = handler(msg)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[MessageHandler] Bad {action} message: {e}")
            success = False

        await websocket.send_json({"type": f"{action}_result", "success": success})
        if success and action != "drag_start":
            await self.broadcast()

    def _handle_drag_start(self, msg: dict) -> bool:
        if msg.get("tab_id") is not None:
            self.store.start_editor_tab_drag(msg["tab_id"])
        else:
            self.store.start_drag(msg["panel_id"])
        return True

    def _handle_drop(self, msg: dict) -> bool:
        zone_id = msg.get("zone_id")
        dragged_id = msg.get("dragged_id")
        if dragged_id is not None:
            self.store.end_drag(None)
            return zone_id is not None and self.store.drop(dragged_id, zone_id)
        return self.store.end_drag(zone_id)

    def _handle_resize(self, msg: dict) -> bool:
        sizes = [float(s) for s in msg["sizes"]]
        return self.store.update_sizes(msg["group_id"], sizes)

    def _handle_toggle(self, msg: dict) -> bool:
        return self.store.toggle_visibility(msg["panel_id"])

    def _handle_activate_tab(self, msg: dict) -> bool:
        return self.store.set_active_tab(msg["node_id"], msg["panel_id"])
