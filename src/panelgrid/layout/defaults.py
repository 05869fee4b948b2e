"""首次启动和重置后使用的内置布局

    +---------+---------------------+---------+
    |         |  editor | preview   |         |
    |  files  |---------------------|  chat   |
    |         |  terminal           |         |
    +---------+---------------------+---------+
       25                50              25
"""

from .types import GroupNode, Orientation, PanelNode

DEFAULT_LAYOUT = GroupNode(
    id="root",
    orientation=Orientation.HORIZONTAL,
    sizes=(25.0, 50.0, 25.0),
    children=(
        PanelNode(id="node-files", panel_ids=("files",)),
        GroupNode(
            id="group-center",
            orientation=Orientation.VERTICAL,
            sizes=(65.0, 35.0),
            children=(
                PanelNode(id="node-editor", panel_ids=("editor", "preview")),
                PanelNode(id="node-terminal", panel_ids=("terminal",)),
            ),
        ),
        PanelNode(id="node-chat", panel_ids=("chat",)),
    ),
)

DEFAULT_VISIBILITY: dict[str, bool] = {
    "chat": True,
    "files": True,
    "editor": True,
    "preview": False,
    "terminal": True,
}

DEFAULT_MOBILE_PANELS: tuple[str, ...] = ("chat",)


def default_visibility() -> dict[str, bool]:
    """默认可见性的新副本"""
    return dict(DEFAULT_VISIBILITY)
