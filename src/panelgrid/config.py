"""panelgrid 配置

配置分为以下几类：
- 布局几何：尺寸下限、拆分比例
- Panel id：静态 panel、动态 id 前缀
- 持久化：schema 版本、存储 key、数据目录
- 拖放：panel 放置行为
- Web：监听地址
- 日志与指标
"""

import os
from pathlib import Path

# === 布局几何配置 ===
TOTAL_SIZE = 100.0  # 同级尺寸之和
MIN_SIZE = 5.0  # pane 在 group 内的最小占比（百分比）
NEW_SPLIT_SIZE = 25.0  # 插入 group 的新兄弟节点占比
EDGE_SPLIT_SIZE = 25.0  # 窗口边缘新列/新行的占比
SIZE_EPSILON = 1e-6  # 尺寸比较容差

# === Panel id 配置 ===
STATIC_PANELS = ("chat", "files", "editor", "terminal", "preview")
DETACHED_EDITOR_PREFIX = "editor:"  # editor:<tabId>
DETACHED_TERMINAL_PREFIX = "terminal:"  # terminal:<instanceId>

# === 持久化配置 ===
LAYOUT_SCHEMA_VERSION = 6
LAYOUT_STORAGE_KEY = f"panelgrid-layout-v{LAYOUT_SCHEMA_VERSION}"
SESSIONS_STORAGE_KEY = "panelgrid-workspace-sessions"
ACTIVE_SESSION_KEY = "panelgrid-active-workspace"
DATA_DIR = Path(os.environ.get("PANELGRID_DATA_DIR", Path.home() / ".panelgrid"))

# === 拖放配置 ===
# "merge"：放到 panel-<id> 上时作为该 pane 的 tab 加入
# "swap"：放到 panel-<id> 上时交换两个 panel（单 tab 布局）
PANEL_DROP_MODE = "merge"

# === 小屏布局配置 ===
MOBILE_MAX_PANELS = 2  # 单列布局中堆叠的 panel 数

# === Workspace session 配置 ===
DEFAULT_SESSION_NAME = "New Workspace"
DEFAULT_DEVICE_TAG = "Desktop"
SESSION_NAME_MAX_LENGTH = 100

# === Web 配置 ===
HOST = os.environ.get("PANELGRID_HOST", "0.0.0.0")
PORT = int(os.environ.get("PANELGRID_PORT", "8766"))

# === 日志配置 ===
LOG_LEVEL = os.environ.get("PANELGRID_LOG_LEVEL", "INFO")  # 日志级别

# === 指标配置 ===
METRICS_ENABLED = True  # 收集内存指标
