"""Durable key/value storage for board snapshots, metadata and search state."""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from ..errors import StorageError

__all__ = [
    "StorageBackend",
    "JsonFileStorage",
    "MemoryStorage",
    "board_key",
    "board_meta_key",
    "search_params_key",
    "BOARD_INDEX_KEY",
]

LOGGER = logging.getLogger(__name__)

_DEFAULT_STORAGE_DIR = Path.home() / ".tierboard" / "storage"
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_FILE_SUFFIX = ".json"

BOARD_INDEX_KEY = "board-index"


def board_key(board_id: str) -> str:
    return f"board:{board_id}"


def board_meta_key(board_id: str) -> str:
    return f"board-meta:{board_id}"


def search_params_key(context: str, media_type: str) -> str:
    return f"search-params:{context}:{media_type}"


@runtime_checkable
class StorageBackend(Protocol):
    """Minimal synchronous key/value interface; async callers offload to a thread."""

    def read(self, key: str) -> Any | None:
        """Return the stored value or ``None`` when absent."""
        ...

    def write(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...


class MemoryStorage:
    """In-process backend; values are deep-copied on the way in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})
        self.writes: list[str] = []

    def read(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def write(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.writes.append(key)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage:
    """One JSON document per key under ``root``, written atomically."""

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root).expanduser() if root else _DEFAULT_STORAGE_DIR

    @property
    def root(self) -> Path:
        return self._root

    def read(self, key: str) -> Any | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(key, f"Unable to read {path}: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Storage record %s is not valid JSON: %s", path, exc)
            return None
        if isinstance(payload, dict) and "key" in payload and "value" in payload:
            return payload["value"]
        LOGGER.warning("Storage record %s has an unexpected layout; ignoring", path)
        return None

    def write(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        body = json.dumps({"key": key, "value": value}, indent=2, sort_keys=True)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise StorageError(key, f"Unable to write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(key, f"Unable to delete {path}: {exc}") from exc

    def keys(self) -> list[str]:
        if not self._root.exists():
            return []
        found: list[str] = []
        for path in sorted(self._root.glob(f"*{_FILE_SUFFIX}")):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                continue
            if isinstance(payload, dict) and isinstance(payload.get("key"), str):
                found.append(payload["key"])
        return found

    def _path_for(self, key: str) -> Path:
        if not key:
            raise StorageError(key, "Storage key must be a non-empty string")
        return self._root / f"{_UNSAFE_KEY_CHARS.sub('_', key)}{_FILE_SUFFIX}"
