"""Key-value storage adapters.

Every adapter stores JSON-compatible values under string keys:

- ``MemoryStore``: process memory (session storage, tests).
- ``JsonFileStore``: one pretty-printed JSON file per key (local storage).
- ``SqlKeyValueStore``: the ``kv_entries`` table (server side).

``save`` raises ``StorageError`` when the value cannot be written; reads
fall back to the default instead of raising.
"""
from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from onetask.models.kv_entry import KVEntry

logger = logging.getLogger("onetask.storage")


class StorageError(Exception):
    """A value could not be saved."""


class KeyValueStore:
    def load(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def save(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        return self.load(key) is not None


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._values: Dict[str, Any] = {}

    def load(self, key: str, default: Any = None) -> Any:
        if key not in self._values:
            return default
        return copy.deepcopy(self._values[key])

    def save(self, key: str, value: Any) -> None:
        try:
            # same constraint as the other adapters: JSON only
            self._values[key] = json.loads(json.dumps(value))
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Could not save {key!r}") from exc

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStore(KeyValueStore):
    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE.sub('_', key)}.json"

    def load(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            logger.warning("store_read_failed", extra={"key": key}, exc_info=True)
            return default

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=4)
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not save {key!r}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Could not delete {key!r}") from exc


class SqlKeyValueStore(KeyValueStore):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self, key: str, default: Any = None) -> Any:
        try:
            with self._session_factory() as db:
                entry = db.get(KVEntry, key)
                if entry is None or entry.value is None:
                    return default
                return entry.value
        except SQLAlchemyError:
            logger.error("store_read_failed", extra={"key": key}, exc_info=True)
            return default

    def save(self, key: str, value: Any) -> None:
        try:
            with self._session_factory() as db:
                entry = db.get(KVEntry, key)
                if entry is None:
                    db.add(KVEntry(key=key, value=value))
                else:
                    entry.value = value
                db.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not save {key!r}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                entry: Optional[KVEntry] = db.get(KVEntry, key)
                if entry is not None:
                    db.delete(entry)
                    db.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not delete {key!r}") from exc
