"""存储后端

Storage 是存放编码后快照的尽力而为 key/value 存储：
- get(key) -> bytes | None
- set(key, bytes)

FileStorage 原子写入（临时文件 + rename），崩溃时不会留下写了一半的快照。
"""

import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from ..telemetry import get_logger

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class Storage(Protocol):
    """持久化编解码使用的 key/value 存储"""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class MemoryStorage:
    """进程内存储（测试、临时布局）"""

    def __init__(self, initial: dict[str, bytes] | None = None):
        self._data: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class FileStorage:
    """目录中每个 key 一个文件

    Args:
        directory: 存放文件的目录（首次写入时创建）
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            logger.debug(f"[Storage] File not found: {path}")
            return None
        with open(path, "rb") as f:
            return f.read()

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        self.directory.mkdir(parents=True, exist_ok=True)

        # 原子写入：先写临时文件，再 rename
        fd, temp_path = tempfile.mkstemp(prefix="panelgrid_", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            os.unlink(path)
            logger.info(f"[Storage] Deleted: {path}")
