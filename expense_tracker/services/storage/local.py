"""
Local Storage Implementations

Two backends for the key-value surface:
- InMemoryStorage: process-lifetime dict, used by tests and previews
- JsonFileStorage: one `<key>.json` file per blob in a data directory

Both enforce an optional total capacity, mirroring the quota of the
device storage the tracker was designed for. A write that would exceed
it is refused and reported as False, never partially applied.

TRADEOFFS:
- No locking; a single writer is assumed
- Files are replaced atomically, so a crash leaves the old blob intact
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from expense_tracker.services.storage.interface import KeyValueStorage


logger = structlog.get_logger(__name__)

_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


def _blob_size(value: str) -> int:
    return len(value.encode("utf-8"))


class InMemoryStorage(KeyValueStorage):
    """Dict-backed storage."""

    def __init__(self, capacity_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self._capacity = capacity_bytes

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        if self._capacity is not None:
            used = sum(
                _blob_size(blob)
                for existing_key, blob in self._data.items()
                if existing_key != key
            )
            if used + _blob_size(value) > self._capacity:
                logger.error("storage_capacity_exceeded", key=key)
                return False
        self._data[key] = value
        return True

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage(KeyValueStorage):
    """
    File-backed storage.

    Each key maps to `<directory>/<key>.json`. The directory is created on
    first write.
    """

    def __init__(
        self,
        directory: Path,
        capacity_bytes: Optional[int] = None,
    ):
        self._directory = Path(directory)
        self._capacity = capacity_bytes

    def _path_for(self, key: str) -> Path:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"

    def _used_bytes(self, excluding: Path) -> int:
        if not self._directory.exists():
            return 0
        return sum(
            path.stat().st_size
            for path in self._directory.glob("*.json")
            if path != excluding
        )

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("storage_read_failed", key=key, error=str(e))
            return None

    def set(self, key: str, value: str) -> bool:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            if self._capacity is not None:
                if self._used_bytes(path) + _blob_size(value) > self._capacity:
                    logger.error("storage_capacity_exceeded", key=key)
                    return False

            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory,
                prefix=f".{key}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            return True
        except OSError as e:
            logger.error("storage_write_failed", key=key, error=str(e))
            return False

    def remove(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
