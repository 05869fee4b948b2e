"""Workspace session 管理

workspace session 是整个工作区的具名存档：editor tab 加布局快照。
切换 session 时先保存当前 session，销毁运行中的终端，恢复 editor
（重新分配 tab id），再把得到的 panel id 映射交给布局 store。

所有 session 作为一个 JSON 文档存放在 Storage 中，活动 session id 单独存一个 key。
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from ..config import (
    ACTIVE_SESSION_KEY,
    DEFAULT_DEVICE_TAG,
    DEFAULT_SESSION_NAME,
    SESSION_NAME_MAX_LENGTH,
    SESSIONS_STORAGE_KEY,
)
from ..layout.persistence import serialize
from ..telemetry import get_logger, metrics

if TYPE_CHECKING:
    from ..layout.storage import Storage
    from ..layout.store import LayoutStore

logger = get_logger(__name__)


class SessionError(ValueError):
    """被拒绝的 session 请求（未知 id、名称非法、最后一个 session）"""


@dataclass
class WorkspaceSession:
    """一个已保存的工作区

    Attributes:
        id: uuid 字符串
        name: 显示名称
        device_tag: 创建 session 的设备（"Desktop", "Phone"）
        snapshot: {"workspace": editor 快照, "layout": 布局快照}，新 session 为 {}
    """
    id: str
    name: str
    device_tag: str = ""
    snapshot: dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "device_tag": self.device_tag,
            "snapshot": self.snapshot,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkspaceSession":
        snapshot = data.get("snapshot")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or DEFAULT_SESSION_NAME),
            device_tag=str(data.get("device_tag") or ""),
            snapshot=snapshot if isinstance(snapshot, dict) else {},
            created_at=float(data.get("created_at", 0.0)),
            updated_at=float(data.get("updated_at", 0.0)),
        )


def _validate_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        return DEFAULT_SESSION_NAME
    if len(name) > SESSION_NAME_MAX_LENGTH:
        raise SessionError(f"name longer than {SESSION_NAME_MAX_LENGTH} characters")
    return name


class WorkspaceSessionManager:
    """绑定到一个布局 store 的具名 workspace session

    Args:
        store: 布局 store，其 editor / terminal 管理器一并恢复
        storage: session 存放位置；None 表示只保存在内存
        storage_key: session 列表的存储 key
    """

    def __init__(
        self,
        store: "LayoutStore",
        storage: "Storage | None" = None,
        storage_key: str = SESSIONS_STORAGE_KEY,
    ):
        self.store = store
        self._storage = storage
        self._storage_key = storage_key
        self._sessions: dict[str, WorkspaceSession] = {}
        self._active_id: str | None = None
        self._load()

    # === 存储 ===

    def _load(self) -> None:
        if self._storage is None:
            return
        try:
            raw = self._storage.get(self._storage_key)
            active = self._storage.get(ACTIVE_SESSION_KEY)
        except Exception as e:
            logger.error(f"[Sessions] Load failed: {e}")
            metrics.inc("persist.error", {"op": "load", "reason": "storage"})
            return

        if raw:
            try:
                entries = json.loads(raw)
                for entry in entries:
                    session = WorkspaceSession.from_dict(entry)
                    self._sessions[session.id] = session
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"[Sessions] Invalid session list, starting empty: {e}")
                metrics.inc("persist.error", {"op": "load", "reason": "sessions"})
                self._sessions.clear()

        if active:
            active_id = active.decode("utf-8", errors="replace")
            if active_id in self._sessions:
                self._active_id = active_id
        logger.info(f"[Sessions] Loaded {len(self._sessions)} sessions")

    def _save(self) -> None:
        if self._storage is None:
            return
        data = [s.to_dict() for s in self._sessions.values()]
        try:
            self._storage.set(self._storage_key, json.dumps(data, ensure_ascii=False).encode("utf-8"))
            self._storage.set(ACTIVE_SESSION_KEY, (self._active_id or "").encode("utf-8"))
        except Exception as e:
            logger.error(f"[Sessions] Save failed: {e}")
            metrics.inc("persist.error", {"op": "save", "reason": "sessions"})

    # === 查询 ===

    @property
    def active_id(self) -> str | None:
        return self._active_id

    def get(self, session_id: str) -> WorkspaceSession | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[WorkspaceSession]:
        """所有 session，最近更新的在前"""
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    def latest(self) -> WorkspaceSession | None:
        sessions = self.list_sessions()
        return sessions[0] if sessions else None

    # === 生命周期 ===

    def init(self, device_tag: str = DEFAULT_DEVICE_TAG) -> WorkspaceSession:
        """选择启动时使用的 session

        已存储的活动 session 仍存在时恢复它的快照，否则恢复最近的 session，
        都没有时以设备名创建第一个 session。
        """
        if self._active_id in self._sessions:
            session = self._sessions[self._active_id]
            if session.snapshot:
                # editor tab 只存在于进程内，重启后需从快照重建
                self._apply_snapshot(session.snapshot)
            logger.info(f"[Sessions] Resumed active session {session.id}")
            return session

        latest = self.latest()
        if latest is not None:
            self._active_id = latest.id
            self._apply_snapshot(latest.snapshot)
            self._save()
            logger.info(f"[Sessions] Resumed latest session {latest.id}")
            return latest

        session = self._add(device_tag, device_tag, {})
        self._active_id = session.id
        self._save()
        return session

    def _add(self, name: str, device_tag: str, snapshot: dict[str, Any]) -> WorkspaceSession:
        session = WorkspaceSession(
            id=str(uuid.uuid4()),
            name=_validate_name(name),
            device_tag=device_tag,
            snapshot=snapshot,
        )
        self._sessions[session.id] = session
        logger.info(f"[Sessions] Created {session.id} ({session.name})")
        return session

    def add(
        self,
        name: str | None = None,
        device_tag: str = "",
        snapshot: dict[str, Any] | None = None,
    ) -> WorkspaceSession:
        """保存一个 session，不影响当前工作区"""
        session = self._add(name or DEFAULT_SESSION_NAME, device_tag, snapshot or {})
        self._save()
        return session

    def create(self, name: str | None = None, device_tag: str = DEFAULT_DEVICE_TAG) -> WorkspaceSession:
        """保存当前 session，然后新建一个空 session 并设为活动"""
        name = _validate_name(name)
        self.save_current()
        session = self._add(name, device_tag, {})
        self._active_id = session.id
        self._reset_workspace()
        self._save()
        return session

    def switch(self, session_id: str) -> bool:
        """切换活动 session

        Returns:
            session 不存在时返回 False
        """
        if session_id == self._active_id:
            return True
        target = self._sessions.get(session_id)
        if target is None:
            logger.warning(f"[Sessions] Switch to unknown session {session_id}")
            return False

        self.save_current()
        self._apply_snapshot(target.snapshot)
        self._active_id = session_id
        self._save()
        logger.info(f"[Sessions] Switched to {session_id}")
        return True

    def save_current(self) -> bool:
        """把当前工作区写入活动 session"""
        session = self._sessions.get(self._active_id) if self._active_id else None
        if session is None:
            return False
        session.snapshot = self.current_snapshot()
        session.updated_at = time.time()
        self._save()
        return True

    def current_snapshot(self) -> dict[str, Any]:
        editors = self.store.editors
        return {
            "workspace": editors.snapshot() if editors is not None else {},
            "layout": serialize(self.store.get_snapshot()),
        }

    def update(
        self,
        session_id: str,
        name: str | None = None,
        snapshot: dict[str, Any] | None = None,
    ) -> WorkspaceSession:
        """修改 session 的名称和/或快照

        Raises:
            SessionError: 未知 session 或名称非法
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionError(f"unknown session {session_id}")
        if name:
            session.name = _validate_name(name)
        if snapshot is not None:
            session.snapshot = snapshot
        session.updated_at = time.time()
        self._save()
        return session

    def rename(self, session_id: str, name: str) -> WorkspaceSession:
        return self.update(session_id, name=name)

    def delete(self, session_id: str) -> None:
        """删除 session；若为活动 session 则先切换走

        Raises:
            SessionError: 未知 session，或只剩最后一个
        """
        if session_id not in self._sessions:
            raise SessionError(f"unknown session {session_id}")
        if len(self._sessions) <= 1:
            metrics.inc("session.delete_refused")
            raise SessionError("cannot delete the last workspace")

        del self._sessions[session_id]
        logger.info(f"[Sessions] Deleted {session_id}")
        if self._active_id == session_id:
            # 已删除的 session 不再回写
            self._active_id = None
            self.switch(self.list_sessions()[0].id)
        else:
            self._save()

    # === 工作区恢复 ===

    def _reset_workspace(self) -> None:
        if self.store.terminals is not None:
            self.store.terminals.destroy_all()
        if self.store.editors is not None:
            self.store.editors.restore(None)
        self.store.reset_layout()

    def _apply_snapshot(self, snapshot: dict[str, Any] | None) -> None:
        """恢复 editor 和布局；快照格式错误时重置为默认"""
        if self.store.terminals is not None:
            self.store.terminals.destroy_all()

        workspace = snapshot.get("workspace") if isinstance(snapshot, dict) else None
        layout = snapshot.get("layout") if isinstance(snapshot, dict) else None
        if not isinstance(workspace, dict) or not isinstance(layout, dict):
            if snapshot:
                logger.warning("[Sessions] Malformed snapshot, resetting workspace")
                metrics.inc("persist.error", {"op": "restore", "reason": "session"})
            self._reset_workspace()
            return

        mapping: dict[str, str] = {}
        if self.store.editors is not None:
            mapping = self.store.editors.restore(workspace)
        self.store.restore_from_snapshot(layout, panel_id_mapping=mapping)
