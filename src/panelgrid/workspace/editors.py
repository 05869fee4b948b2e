"""Editor tab 管理

持有 editor tab 的生命周期，也就拥有 editor:<tabId> 这一 panel 命名空间。
布局核心只接收这里生成的 panel id。

tab 要么在主 editor panel 内，要么分离到独立 pane（panel id 为 editor:<tabId>）。
tab id 按进程生成，因此恢复工作区会创建新 id，并返回布局需要的旧 -> 新 panel id 映射。
"""

import itertools
from dataclasses import dataclass
from typing import Any

from ..core.ids import get_detached_editor_tab_id, make_detached_editor_id
from ..telemetry import get_logger

logger = get_logger(__name__)


@dataclass
class EditorTab:
    """一个打开的文件"""
    tab_id: str
    path: str
    modified: bool = False
    detached: bool = False

    @property
    def panel_id(self) -> str:
        return make_detached_editor_id(self.tab_id)

    def to_dict(self) -> dict:
        return {"id": self.tab_id, "path": self.path, "modified": self.modified}


class EditorTabs:
    """内存中的 editor tab 管理器"""

    def __init__(self):
        self._counter = itertools.count(1)
        self._tabs: dict[str, EditorTab] = {}
        self._active_tab_id: str | None = None

    def _mint_id(self) -> str:
        return f"tab-{next(self._counter)}"

    # === Tab ===

    def open_tab(self, path: str) -> EditorTab:
        """打开文件，同一路径复用已有 tab"""
        for tab in self._tabs.values():
            if tab.path == path:
                if not tab.detached:
                    self._active_tab_id = tab.tab_id
                return tab
        tab = EditorTab(tab_id=self._mint_id(), path=path)
        self._tabs[tab.tab_id] = tab
        self._active_tab_id = tab.tab_id
        logger.debug(f"[Editors] Opened {tab.tab_id}: {path}")
        return tab

    def get(self, tab_id: str) -> EditorTab | None:
        return self._tabs.get(tab_id)

    @property
    def open_tabs(self) -> list[EditorTab]:
        """主 editor panel 内的 tab"""
        return [t for t in self._tabs.values() if not t.detached]

    @property
    def detached_tabs(self) -> list[EditorTab]:
        """在独立 pane 中显示的 tab"""
        return [t for t in self._tabs.values() if t.detached]

    @property
    def active_tab_id(self) -> str | None:
        return self._active_tab_id

    def mark_modified(self, tab_id: str, modified: bool = True) -> None:
        tab = self._tabs.get(tab_id)
        if tab:
            tab.modified = modified

    def has_modified(self) -> bool:
        """是否有未保存的 tab"""
        return any(t.modified for t in self._tabs.values())

    def close_tab(self, tab_id: str) -> bool:
        tab = self._tabs.pop(tab_id, None)
        if tab is None:
            return False
        if self._active_tab_id == tab_id:
            remaining = self.open_tabs
            self._active_tab_id = remaining[-1].tab_id if remaining else None
        return True

    # === 分离 / 合回 ===

    def detach_tab(self, tab_id: str) -> bool:
        """把 tab 从 editor panel 移到独立 pane

        Returns:
            tab 未知或已分离时返回 False
        """
        tab = self._tabs.get(tab_id)
        if tab is None or tab.detached:
            return False
        tab.detached = True
        if self._active_tab_id == tab_id:
            remaining = self.open_tabs
            self._active_tab_id = remaining[-1].tab_id if remaining else None
        logger.info(f"[Editors] Detached {tab_id}")
        return True

    def reattach_tab(self, tab_id: str) -> bool:
        """把分离的 tab 移回 editor panel"""
        tab = self._tabs.get(tab_id)
        if tab is None or not tab.detached:
            return False
        tab.detached = False
        self._active_tab_id = tab_id
        logger.info(f"[Editors] Reattached {tab_id}")
        return True

    def close_detached(self, tab_id: str) -> bool:
        """彻底关闭分离的 tab"""
        tab = self._tabs.get(tab_id)
        if tab is None or not tab.detached:
            return False
        del self._tabs[tab_id]
        return True

    def reattach_all(self) -> int:
        count = 0
        for tab in self.detached_tabs:
            count += self.reattach_tab(tab.tab_id)
        return count

    def is_live_panel(self, panel_id: str) -> bool:
        """分离 editor 的 panel id 是否对应存活的分离 tab"""
        tab_id = get_detached_editor_tab_id(panel_id)
        if tab_id is None:
            return False
        tab = self._tabs.get(tab_id)
        return tab is not None and tab.detached

    # === 快照 ===

    def snapshot(self) -> dict[str, Any]:
        """供 workspace session 保存的可序列化状态"""
        active_index = None
        open_tabs = self.open_tabs
        for i, tab in enumerate(open_tabs):
            if tab.tab_id == self._active_tab_id:
                active_index = i
        return {
            "openTabs": [t.to_dict() for t in open_tabs],
            "activeTabIndex": active_index,
            "detachedEditors": [t.to_dict() for t in self.detached_tabs],
        }

    def restore(self, snapshot: dict[str, Any] | None) -> dict[str, str]:
        """用 `snapshot` 中的 tab 替换所有 tab

        每个恢复的 tab 都获得新 id。

        Returns:
            旧分离 panel id -> 新分离 panel id
        """
        self._tabs.clear()
        self._active_tab_id = None
        if not isinstance(snapshot, dict):
            return {}

        open_entries = snapshot.get("openTabs") or []
        for entry in open_entries:
            if isinstance(entry, dict) and isinstance(entry.get("path"), str):
                tab = EditorTab(tab_id=self._mint_id(), path=entry["path"], modified=bool(entry.get("modified")))
                self._tabs[tab.tab_id] = tab

        open_tabs = self.open_tabs
        active_index = snapshot.get("activeTabIndex")
        if isinstance(active_index, int) and 0 <= active_index < len(open_tabs):
            self._active_tab_id = open_tabs[active_index].tab_id
        elif open_tabs:
            self._active_tab_id = open_tabs[-1].tab_id

        mapping: dict[str, str] = {}
        for entry in snapshot.get("detachedEditors") or []:
            if not isinstance(entry, dict) or not isinstance(entry.get("path"), str):
                continue
            tab = EditorTab(tab_id=self._mint_id(), path=entry["path"], detached=True)
            self._tabs[tab.tab_id] = tab
            old_id = entry.get("id")
            if isinstance(old_id, str) and old_id:
                mapping[make_detached_editor_id(old_id)] = tab.panel_id

        logger.info(f"[Editors] Restored {len(self._tabs)} tabs ({len(mapping)} detached)")
        return mapping
