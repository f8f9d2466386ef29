"""Key-value persistence for local state (job history, model catalogs, preferences).

Every operation returns a StoreResult instead of raising, so callers decide
whether a failure matters. A missing key loads as ``ok=True, value=None``.
"""

import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a key-value operation."""
    ok: bool
    value: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[str] = None) -> "StoreResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "StoreResult":
        return cls(ok=False, error=error)


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def load(self, key: str) -> StoreResult:
        """Read the value stored under key (None when absent)."""
        ...

    @abstractmethod
    def save(self, key: str, value: str) -> StoreResult:
        """Replace the value stored under key."""
        ...

    @abstractmethod
    def delete(self, key: str) -> StoreResult:
        """Remove key. Deleting an absent key succeeds."""
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Used by tests and ephemeral runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> StoreResult:
        return StoreResult.success(self._data.get(key))

    def save(self, key: str, value: str) -> StoreResult:
        self._data[key] = value
        return StoreResult.success(value)

    def delete(self, key: str) -> StoreResult:
        self._data.pop(key, None)
        return StoreResult.success()


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileKeyValueStore(KeyValueStore):
    """One JSON file per key under base_dir, replaced atomically on save."""

    def __init__(self, base_dir: str):
        self._base_dir = base_dir
        os.makedirs(self._base_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self._base_dir, _UNSAFE_CHARS.sub("_", key) + ".json")

    def load(self, key: str) -> StoreResult:
        path = self._path(key)
        if not os.path.exists(path):
            return StoreResult.success(None)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return StoreResult.success(f.read())
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            return StoreResult.failure(str(e))

    def save(self, key: str, value: str) -> StoreResult:
        path = self._path(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self._base_dir, suffix=".tmp")
        except OSError as e:
            logger.warning("Failed to write %s: %s", path, e)
            return StoreResult.failure(str(e))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except (OSError, UnicodeEncodeError) as e:
            logger.warning("Failed to write %s: %s", path, e)
            self._discard(tmp_path)
            return StoreResult.failure(str(e))
        return StoreResult.success(value)

    @staticmethod
    def _discard(tmp_path: str) -> None:
        try:
            os.remove(tmp_path)
        except OSError as e:
            logger.warning("Could not remove temp file %s: %s", tmp_path, e)

    def delete(self, key: str) -> StoreResult:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            return StoreResult.failure(str(e))
        return StoreResult.success()
