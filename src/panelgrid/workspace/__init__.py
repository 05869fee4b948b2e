"""工作区协作方：editor tab、终端 session、已保存的 workspace session"""

from .editors import EditorTab, EditorTabs
from .sessions import SessionError, WorkspaceSession, WorkspaceSessionManager
from .terminals import TerminalSession, TerminalSessions

__all__ = [
    "EditorTab",
    "EditorTabs",
    "SessionError",
    "TerminalSession",
    "TerminalSessions",
    "WorkspaceSession",
    "WorkspaceSessionManager",
]
