"""Key/value storage backends for history and learning data.

Backends store JSON-serializable values. ``JsonFileStore`` keeps one file per
key under a data directory with atomic writes and an overall byte quota, in
the spirit of browser local storage.
"""
from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from ..core.exceptions import PersistenceError, StorageCapacityError

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """Interface the stores are injected with."""

    def get(self, key: str) -> Optional[Any]:
        """Stored value, None when absent. Raises PersistenceError if unreadable."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store ``value``. Raises PersistenceError / StorageCapacityError."""
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStore:
    """Process-local backend, used for tests and ephemeral sessions."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt value for '{key}': {e}") from e

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        if self.quota_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(raw.encode("utf-8")) > self.quota_bytes:
                raise StorageCapacityError(f"Storage quota of {self.quota_bytes} bytes exceeded")
        self._data[key] = raw

    def set_raw(self, key: str, raw: str) -> None:
        """Store an unvalidated string (simulates externally corrupted data)."""
        self._data[key] = raw

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """One JSON file per key inside ``data_dir``."""

    def __init__(self, data_dir: str = "data/storage", quota_bytes: Optional[int] = 5 * 1024 * 1024):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        if not safe:
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{safe}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt storage file '{path}': {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read '{path}': {e}") from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        payload = json.dumps(value, indent=2, ensure_ascii=False)
        size = len(payload.encode("utf-8"))

        if self.quota_bytes is not None:
            used = self._used_bytes(exclude=path)
            if used + size > self.quota_bytes:
                raise StorageCapacityError(
                    f"Storage quota exceeded: {used + size} > {self.quota_bytes} bytes"
                )

        self._write_atomic(path, payload)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to delete '{path}': {e}") from e

    def _used_bytes(self, exclude: Optional[Path] = None) -> int:
        total = 0
        for p in self.data_dir.glob("*.json"):
            if exclude is not None and p == exclude:
                continue
            try:
                total += p.stat().st_size
            except OSError:
                continue
        return total

    def _write_atomic(self, target_path: Path, payload: str) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        start_time = time.time()
        temp_path = target_path.parent / f".{target_path.name}.tmp.{int(time.time() * 1000000)}"
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(temp_path, target_path)
        except OSError as e:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass
            raise PersistenceError(f"Atomic write to '{target_path}' failed: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(f"Atomic write of {target_path.name} completed in {duration_ms:.1f}ms")
