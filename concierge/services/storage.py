from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .errors import StorageError


class KeyValueStorage(ABC):
    """String key/value area modelled after the browser Storage interface."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...


class InMemoryStorage(KeyValueStorage):
    """Process-local storage; survives widget re-creation but not restarts."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileStorage(KeyValueStorage):
    """Directory-backed storage writing one file per key atomically."""

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, key: str) -> Path:
        return self._data_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        file_path = self._get_file_path(key)
        if not file_path.exists():
            return None
        try:
            return file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Could not read {file_path}", reason="storage_read_failed") from exc

    def set_item(self, key: str, value: str) -> None:
        file_path = self._get_file_path(key)
        temp_path = file_path.with_suffix(".json.tmp")
        try:
            temp_path.write_text(value, encoding="utf-8")
            temp_path.replace(file_path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Could not write {file_path}", reason="storage_write_failed") from exc

    def remove_item(self, key: str) -> None:
        try:
            self._get_file_path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not remove {key}", reason="storage_remove_failed") from exc
