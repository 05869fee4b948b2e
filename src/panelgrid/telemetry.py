"""Telemetry - 统一日志和指标入口

提供统一的日志工厂和指标 facade，各组件以相同方式上报。

日志格式: [Component] msg，节点相关的行为 [Component:node[:12]] msg
指标示例: persist.error, drop.noop, layout.mutation, remove.refused
"""

import logging

from .config import LOG_LEVEL, METRICS_ENABLED
from .core.ids import short_id

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """获取模块 logger

    Args:
        name: 模块名（通常使用 __name__）

    Returns:
        Logger 实例
    """
    logger = logging.getLogger(name)
    return logger


def setup_logging(level: str | None = None) -> None:
    """为命令行入口配置 root 日志"""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=_LOG_FORMAT)


def format_node_log(component: str, node_id: str, msg: str) -> str:
    """格式化带布局节点的日志消息

    Args:
        component: 组件名
        node_id: 节点或 panel 标识
        msg: 日志消息

    Returns:
        格式化的消息: [component:node_id[:12]] msg
    """
    node_short = short_id(node_id) if node_id else "unknown"
    return f"[{component}:{node_short}] {msg}"


class Metrics:
    """指标收集 facade

    提供简单的计数器和 gauge，保存在内存中。
    """

    def __init__(self, enabled: bool = METRICS_ENABLED):
        self.enabled = enabled
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """递增计数器

        Args:
            name: 指标名（如 "persist.error"）
            labels: 可选标签（如 {"op": "save"}）
            value: 递增值，默认 1
        """
        if not self.enabled:
            return
        key = self._make_key(name, labels)
        self._counters[key] = self._counters.get(key, 0) + value

    def gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """设置 gauge 值"""
        if not self.enabled:
            return
        key = self._make_key(name, labels)
        self._gauges[key] = value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """获取计数器值（用于测试）"""
        return self._counters.get(self._make_key(name, labels), 0)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        """获取 gauge 值（用于测试）"""
        return self._gauges.get(self._make_key(name, labels), 0.0)

    def reset(self) -> None:
        """重置所有指标（用于测试）"""
        self._counters.clear()
        self._gauges.clear()

    def _make_key(self, name: str, labels: dict[str, str] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def get_all_counters(self) -> dict[str, int]:
        """所有计数器（用于调试）"""
        return dict(self._counters)


# 全局指标实例
metrics = Metrics()
