"""小屏 panel 顺序

窄屏上网格被单列取代，最多上下显示两个 panel。顺序随布局快照一起持久化。
"""

from collections.abc import Mapping, Sequence

from ..config import MOBILE_MAX_PANELS, STATIC_PANELS
from .types import PanelId


def open_mobile_panel(
    order: Sequence[PanelId], panel_id: PanelId, position: str
) -> tuple[PanelId, ...]:
    """在上方或下方位置显示 panel

    重新打开已显示的 panel：两个位置都有 panel 时交换，否则不变。

    Args:
        order: 当前顺序（上方在前）
        panel_id: 要显示的 panel
        position: "top" 或 "bottom"
    """
    current = list(order)
    if panel_id in current:
        if len(current) == MOBILE_MAX_PANELS:
            return tuple(reversed(current))
        return tuple(current)

    if len(current) < MOBILE_MAX_PANELS:
        if position == "top":
            return (panel_id, *current)
        return (*current, panel_id)

    current[0 if position == "top" else -1] = panel_id
    return tuple(current)


def close_mobile_panel(
    order: Sequence[PanelId], panel_id: PanelId, visibility: Mapping[PanelId, bool]
) -> tuple[tuple[PanelId, ...], dict[PanelId, bool]]:
    """从单列中移除 panel 并隐藏

    单列将为空时由第一个可见的静态 panel 顶替，都没有则退回 chat（并设为可见）。

    Returns:
        (新顺序, 新可见性)
    """
    new_visibility = dict(visibility)
    new_visibility[panel_id] = False
    remaining = tuple(p for p in order if p != panel_id)
    if remaining:
        return remaining, new_visibility

    first_visible = next(
        (p for p in STATIC_PANELS if p != panel_id and new_visibility.get(p)), None
    )
    if first_visible is None:
        new_visibility["chat"] = True
        return ("chat",), new_visibility
    return (first_visible,), new_visibility
