"""用 Rich 渲染布局树

布局树的调试视图：group 显示方向和子节点尺寸，pane 显示其 tab，
活动 tab 高亮，隐藏 tab 变暗。

    panelgrid-show [data_dir]
"""

import io
import sys
from collections.abc import Mapping
from pathlib import Path

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from ..config import DATA_DIR, LAYOUT_STORAGE_KEY
from ..layout.persistence import load_snapshot
from ..layout.storage import FileStorage
from ..layout.types import GroupNode, LayoutNode, Orientation, PanelId, PanelNode
from ..layout.visibility import is_visible

_ORIENTATION_GLYPH = {
    Orientation.HORIZONTAL: "↔",
    Orientation.VERTICAL: "↕",
}


def _group_label(node: GroupNode) -> Text:
    sizes = " / ".join(f"{s:.1f}" for s in node.sizes)
    label = Text()
    label.append(f"{_ORIENTATION_GLYPH[node.orientation]} {node.orientation.value}", style="bold cyan")
    label.append(f" [{sizes}]", style="yellow")
    label.append(f"  {node.id}", style="dim")
    return label


def _pane_label(node: PanelNode, visibility: Mapping[PanelId, bool] | None) -> Text:
    label = Text()
    for i, panel_id in enumerate(node.panel_ids):
        if i:
            label.append(" | ")
        style = "bold green" if i == node.active_index else ""
        if visibility is not None and not is_visible(visibility, panel_id):
            style = "dim strike"
        label.append(panel_id, style=style)
    label.append(f"  {node.id}", style="dim")
    return label


def build_tree(
    node: LayoutNode,
    visibility: Mapping[PanelId, bool] | None = None,
    tree: Tree | None = None,
) -> Tree:
    """为布局树构建 rich Tree

    Args:
        node: 布局根节点
        visibility: 可选的可见性表，隐藏的 panel 变暗
        tree: 要挂载到的父 Tree（内部使用）
    """
    if isinstance(node, PanelNode):
        label = _pane_label(node, visibility)
    else:
        label = _group_label(node)

    branch = Tree(label) if tree is None else tree.add(label)
    if isinstance(node, GroupNode):
        for child in node.children:
            build_tree(child, visibility, branch)
    return branch


def render_text(
    node: LayoutNode,
    visibility: Mapping[PanelId, bool] | None = None,
    width: int = 100,
) -> str:
    """纯文本形式的布局树（无颜色）"""
    buffer = io.StringIO()
    console = Console(file=buffer, width=width, color_system=None)
    console.print(build_tree(node, visibility))
    return buffer.getvalue()


def main():
    """打印已存储的布局"""
    data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else DATA_DIR
    snapshot = load_snapshot(FileStorage(data_dir), LAYOUT_STORAGE_KEY)
    console = Console()
    console.print(build_tree(snapshot.tree, snapshot.visibility))
    console.print(f"small screen: {', '.join(snapshot.mobile_panels)}", style="dim")
