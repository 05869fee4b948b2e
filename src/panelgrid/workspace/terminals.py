"""终端 session 池

终端 session 是按稳定实例 id 索引的长期资源。pane 只挂载和卸载 session，
隐藏或移动终端 pane 不会重建 session，其内容在可见性变化后依然保留。
额外的终端 pane 使用 panel id terminal:<instanceId>。
"""

import itertools
import time
from dataclasses import dataclass, field

from ..core.ids import get_detached_terminal_id, make_detached_terminal_id
from ..telemetry import get_logger

logger = get_logger(__name__)


@dataclass
class TerminalSession:
    """一个终端 session 的句柄"""
    instance_id: str
    created_at: float = field(default_factory=time.time)
    container_id: str | None = None  # 当前显示该 session 的节点

    @property
    def panel_id(self) -> str:
        return make_detached_terminal_id(self.instance_id)

    @property
    def attached(self) -> bool:
        return self.container_id is not None


class TerminalSessions:
    """按实例 id 登记的终端 session"""

    def __init__(self):
        self._counter = itertools.count(1)
        self._sessions: dict[str, TerminalSession] = {}

    def create(self, instance_id: str | None = None) -> TerminalSession:
        """为实例 id 创建 session（已存在时直接返回）"""
        if instance_id is None:
            instance_id = f"term-{int(time.time() * 1000)}-{next(self._counter)}"
        session = self._sessions.get(instance_id)
        if session is None:
            session = TerminalSession(instance_id=instance_id)
            self._sessions[instance_id] = session
            logger.info(f"[Terminals] Created {instance_id}")
        return session

    def get(self, instance_id: str) -> TerminalSession | None:
        return self._sessions.get(instance_id)

    def attach(self, instance_id: str, container_id: str) -> bool:
        """把 session 绑定到显示它的节点"""
        session = self._sessions.get(instance_id)
        if session is None:
            return False
        session.container_id = container_id
        return True

    def detach(self, instance_id: str) -> bool:
        """解除 session 与节点的绑定，session 继续运行"""
        session = self._sessions.get(instance_id)
        if session is None:
            return False
        session.container_id = None
        return True

    def destroy(self, instance_id: str) -> bool:
        if self._sessions.pop(instance_id, None) is None:
            return False
        logger.info(f"[Terminals] Destroyed {instance_id}")
        return True

    def destroy_all(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        if count:
            logger.info(f"[Terminals] Destroyed {count} sessions")
        return count

    @property
    def instance_ids(self) -> list[str]:
        return list(self._sessions)

    def is_live_panel(self, panel_id: str) -> bool:
        """terminal:<instanceId> panel id 是否对应存活的 session"""
        instance_id = get_detached_terminal_id(panel_id)
        return instance_id is not None and instance_id in self._sessions
