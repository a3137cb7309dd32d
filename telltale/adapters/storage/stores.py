"""User storage adapters.

- EnvironmentStorage: process environment variables (persistent store
  for deployments that inject the acting user)
- JsonFileStorage: a JSON object on disk shared with other processes
- MemoryStorage: per-process session store
"""

import json
import logging
import os
import threading
from pathlib import Path

from telltale.core.ports import UserStoragePort

logger = logging.getLogger(__name__)


class MemoryStorage(UserStoragePort):
    """Session-scoped storage that lives as long as the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        super().__init__()
        self._items: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value
        self._notify(key)

    def remove_item(self, key: str) -> None:
        with self._lock:
            removed = self._items.pop(key, None) is not None
        if removed:
            self._notify(key)


class EnvironmentStorage(UserStoragePort):
    """Reads keys from environment variables named ``{prefix}{KEY}``."""

    def __init__(self, prefix: str = "TELLTALE_"):
        super().__init__()
        self.prefix = prefix

    def _variable(self, key: str) -> str:
        return f"{self.prefix}{key.upper()}"

    def get_item(self, key: str) -> str | None:
        return os.environ.get(self._variable(key))

    def set_item(self, key: str, value: str) -> None:
        os.environ[self._variable(key)] = value
        self._notify(key)


class JsonFileStorage(UserStoragePort):
    """A flat JSON object of string values stored in one file.

    Other processes may rewrite the file; ``poll()`` notices by
    modification time and notifies listeners for every key.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self._lock = threading.Lock()
        self._mtime = self._current_mtime()

    def _current_mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable user storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"User storage file {self.path} does not hold an object")
            return {}
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            self._mtime = self._current_mtime()
        self._notify(key)

    def poll(self) -> bool:
        """Notify listeners if the file changed behind our back."""
        mtime = self._current_mtime()
        if mtime == self._mtime:
            return False
        self._mtime = mtime
        with self._lock:
            keys = list(self._read())
        for key in keys or [""]:
            self._notify(key)
        return True
