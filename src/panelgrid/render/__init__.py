"""布局调试渲染"""

from .tree_view import build_tree, render_text

__all__ = ["build_tree", "render_text"]
