"""布局持久化编解码

以带版本的 JSON 保存 {树, 可见性表, 小屏顺序}：
- 版本检查：其他 schema 版本写入（或缺少版本）的快照被丢弃
- sha256 校验和：损坏的快照被丢弃
- 缺失字段使用默认值
- 恢复时重映射/裁剪动态 panel id
- 写入尽力而为：失败只记录日志和计数，不抛出
"""

import hashlib
import json
from collections.abc import Callable, Mapping
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any

from ..config import LAYOUT_SCHEMA_VERSION, LAYOUT_STORAGE_KEY
from ..core.ids import is_dynamic, is_static
from ..telemetry import get_logger, metrics
from .defaults import DEFAULT_LAYOUT, DEFAULT_MOBILE_PANELS, default_visibility
from .storage import Storage
from .tree import (
    dedupe_panels,
    filter_panels,
    get_all_panel_ids,
    normalize_tree,
    remap_panel_ids,
)
from .types import LayoutDecodeError, LayoutNode, PanelId, node_from_dict, node_to_dict

logger = get_logger(__name__)

LivePredicate = Callable[[PanelId], bool]


@dataclass(frozen=True)
class LayoutSnapshot:
    """布局状态的持久化单元"""
    tree: LayoutNode = DEFAULT_LAYOUT
    visibility: dict[PanelId, bool] = field(default_factory=default_visibility)
    mobile_panels: tuple[PanelId, ...] = DEFAULT_MOBILE_PANELS


def default_snapshot() -> LayoutSnapshot:
    """内置布局的快照"""
    return LayoutSnapshot()


def _checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _dump(data: dict) -> bytes:
    return json.dumps(data, ensure_ascii=False, sort_keys=True).encode("utf-8")


# === 编码 ===

def serialize(snapshot: LayoutSnapshot, version: int = LAYOUT_SCHEMA_VERSION) -> dict[str, Any]:
    """快照的结构化副本（JSON 兼容数据）"""
    return {
        "version": version,
        "layout": node_to_dict(snapshot.tree),
        "visibility": dict(snapshot.visibility),
        "mobilePanels": list(snapshot.mobile_panels),
    }


def encode(snapshot: LayoutSnapshot, version: int = LAYOUT_SCHEMA_VERSION) -> bytes:
    """序列化为带校验和的 bytes"""
    data = serialize(snapshot, version)
    data["checksum"] = _checksum(_dump(data))
    return _dump(data)


def decode(raw: bytes | str | None) -> dict[str, Any] | None:
    """解析编码数据并校验

    Returns:
        快照数据；缺失、非 JSON 或已损坏时返回 None
    """
    if raw is None:
        return None
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"[Persist] Invalid JSON: {e}")
        metrics.inc("persist.error", {"op": "load", "reason": "json"})
        return None

    if not isinstance(data, dict):
        logger.warning("[Persist] Snapshot is not an object")
        metrics.inc("persist.error", {"op": "load", "reason": "shape"})
        return None

    stored_checksum = data.pop("checksum", None)
    if stored_checksum and _checksum(_dump(data)) != stored_checksum:
        logger.warning("[Persist] Checksum mismatch")
        metrics.inc("persist.error", {"op": "load", "reason": "checksum"})
        return None
    return data


# === 恢复 ===

def restore(
    data: Mapping[str, Any] | None,
    live: LivePredicate | None = None,
    panel_id_mapping: Mapping[PanelId, PanelId] | None = None,
    version: int = LAYOUT_SCHEMA_VERSION,
) -> LayoutSnapshot:
    """从序列化数据重建快照

    不会抛出，无法使用的数据都退回内置布局。

    Args:
        data: serialize()/decode() 的输出，可以为 None 或不完整
        live: 判断动态 panel id 是否仍有所有者，被拒绝的动态 id 会被裁剪。None 保留所有 id。
        panel_id_mapping: 旧动态 id -> 新创建的 id，在裁剪前作用于树、可见性和顺序
        version: 期望的 schema 版本

    Returns:
        可渲染的 LayoutSnapshot
    """
    if not data:
        return default_snapshot()

    file_version = data.get("version")
    if file_version != version:
        logger.warning(f"[Persist] Version mismatch: snapshot={file_version}, expected={version}")
        metrics.inc("persist.error", {"op": "restore", "reason": "version"})
        return default_snapshot()

    mapping = dict(panel_id_mapping or {})

    try:
        tree = _restore_tree(data.get("layout"), mapping, live)
    except (LayoutDecodeError, RecursionError) as e:
        logger.warning(f"[Persist] Malformed layout, using default: {e}")
        metrics.inc("persist.error", {"op": "restore", "reason": "layout"})
        return default_snapshot()

    present = set(get_all_panel_ids(tree))
    visibility = _restore_visibility(data.get("visibility"), mapping, present)
    mobile_panels = _restore_mobile_panels(data.get("mobilePanels"), mapping, present)
    return LayoutSnapshot(tree=tree, visibility=visibility, mobile_panels=mobile_panels)


def _restore_tree(
    raw: Any, mapping: Mapping[PanelId, PanelId], live: LivePredicate | None
) -> LayoutNode:
    if raw is None:
        return DEFAULT_LAYOUT

    tree = normalize_tree(node_from_dict(raw))
    tree = remap_panel_ids(tree, mapping)
    deduped = dedupe_panels(tree)
    if deduped is None:
        raise LayoutDecodeError("layout has no panels")
    tree = deduped

    if live is not None:
        def keep(panel_id: PanelId) -> bool:
            return not is_dynamic(panel_id) or live(panel_id)

        pruned = filter_panels(tree, keep)
        if pruned is None:
            raise LayoutDecodeError("no live panels left after pruning")
        dropped = len(get_all_panel_ids(tree)) - len(get_all_panel_ids(pruned))
        if dropped:
            logger.info(f"[Persist] Pruned {dropped} panels without a live owner")
        tree = pruned
    return tree


def _restore_visibility(
    raw: Any, mapping: Mapping[PanelId, PanelId], present: set[PanelId]
) -> dict[PanelId, bool]:
    visibility = default_visibility()
    if not isinstance(raw, dict):
        return visibility
    for panel_id, visible in raw.items():
        if not isinstance(visible, bool):
            continue
        panel_id = mapping.get(panel_id, panel_id)
        if is_static(panel_id) or panel_id in present:
            visibility[panel_id] = visible
    return visibility


def _restore_mobile_panels(
    raw: Any, mapping: Mapping[PanelId, PanelId], present: set[PanelId]
) -> tuple[PanelId, ...]:
    if not isinstance(raw, list):
        return DEFAULT_MOBILE_PANELS
    panels: list[PanelId] = []
    for panel_id in raw:
        if not isinstance(panel_id, str):
            continue
        panel_id = mapping.get(panel_id, panel_id)
        if panel_id in present and panel_id not in panels:
            panels.append(panel_id)
    return tuple(panels) or DEFAULT_MOBILE_PANELS


# === 存储 ===

def save_snapshot(
    storage: Storage,
    snapshot: LayoutSnapshot,
    key: str = LAYOUT_STORAGE_KEY,
) -> bool:
    """把快照写入存储

    Returns:
        是否写入成功
    """
    try:
        storage.set(key, encode(snapshot))
        logger.debug(f"[Persist] Saved layout ({len(get_all_panel_ids(snapshot.tree))} panels)")
        return True
    except Exception as e:
        logger.error(f"[Persist] Save failed: {e}")
        metrics.inc("persist.error", {"op": "save"})
        return False


def load_snapshot(
    storage: Storage,
    key: str = LAYOUT_STORAGE_KEY,
    live: LivePredicate | None = None,
    panel_id_mapping: Mapping[PanelId, PanelId] | None = None,
) -> LayoutSnapshot:
    """从存储读取快照，失败时退回内置布局"""
    try:
        raw = storage.get(key)
    except Exception as e:
        logger.error(f"[Persist] Load failed: {e}")
        metrics.inc("persist.error", {"op": "load", "reason": "storage"})
        return default_snapshot()

    data = decode(raw)
    if data is None:
        return default_snapshot()
    snapshot = restore(data, live=live, panel_id_mapping=panel_id_mapping)
    logger.info(f"[Persist] Loaded layout ({len(get_all_panel_ids(snapshot.tree))} panels)")
    return snapshot


class SnapshotWriter:
    """发出即忘的快照写入

    有 executor 时在调用线程之外写入，没有时直接写入。
    失败都不会向上抛出（由 save_snapshot 记录），内存中的布局不会回滚。
    """

    def __init__(
        self,
        storage: Storage,
        key: str = LAYOUT_STORAGE_KEY,
        executor: Executor | None = None,
    ):
        self.storage = storage
        self.key = key
        self._executor = executor

    def write(self, snapshot: LayoutSnapshot) -> None:
        if self._executor is None:
            save_snapshot(self.storage, snapshot, self.key)
            return
        try:
            self._executor.submit(save_snapshot, self.storage, snapshot, self.key)
        except RuntimeError as e:
            # executor 已关闭
            logger.warning(f"[Persist] Write skipped: {e}")
            metrics.inc("persist.error", {"op": "save", "reason": "executor"})
