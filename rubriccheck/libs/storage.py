"""Durable key/value stores backing the analysis cache and saved drafts."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Optional, Protocol

from .errors import StorageWriteFailure

LOG = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _check_key(key: str) -> None:
    if not KEY_PATTERN.match(key):
        raise ValueError(f"Invalid storage key: {key!r}")


def _check_size(key: str, value: str, max_value_bytes: Optional[int]) -> None:
    if max_value_bytes is None:
        return
    size = len(value.encode("utf-8"))
    if size > max_value_bytes:
        raise StorageWriteFailure(
            f"Value for {key} is {size} bytes, over the {max_value_bytes} byte quota"
        )


class MemoryStore:
    """Process-local store, used when no cache directory is configured."""

    def __init__(self, max_value_bytes: Optional[int] = None) -> None:
        self.max_value_bytes = max_value_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        _check_key(key)
        _check_size(key, value, self.max_value_bytes)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    One file per key inside a directory on the user's machine.

    Entries never expire. ``max_value_bytes`` mimics the quota of a browser's local
    storage: oversized values are refused with StorageWriteFailure.
    """

    def __init__(self, directory: Path, max_value_bytes: Optional[int] = None) -> None:
        self.directory = Path(directory)
        self.max_value_bytes = max_value_bytes
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        _check_key(key)
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            LOG.warning("Failed to read %s: %s", path, exc)
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        _check_size(key, value, self.max_value_bytes)
        tmp_path = path.with_suffix(".tmp")
        try:
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StorageWriteFailure(f"Could not write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
