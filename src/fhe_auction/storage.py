"""Persistent key-value storage for auction addresses and known bidders.

Every value is a JSON array of strings, stored under a namespaced key.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from sqlitedict import SqliteDict

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path("data") / "fhe_auction_state.sqlite"


class KeyValueStore(Protocol):
    def get_list(self, key: str) -> list[str]: ...

    def set_list(self, key: str, values: list[str]) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, used by tests and throwaway sessions."""

    def __init__(self, initial: dict[str, list[str]] | None = None) -> None:
        self._data: dict[str, list[str]] = {k: list(v) for k, v in (initial or {}).items()}

    def get_list(self, key: str) -> list[str]:
        return list(self._data.get(key, []))

    def set_list(self, key: str, values: list[str]) -> None:
        self._data[key] = list(values)


class SqliteKeyValueStore:
    """sqlitedict-backed store; lists are JSON-encoded so the file stays inspectable."""

    def __init__(self, path: str | Path = DEFAULT_STORE_PATH) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _open(self) -> Iterator[SqliteDict]:
        with self._lock:
            db = SqliteDict(
                str(self._path),
                autocommit=True,
                encode=json.dumps,
                decode=json.loads,
            )
            try:
                yield db
            finally:
                db.close()

    def get_list(self, key: str) -> list[str]:
        with self._open() as db:
            raw = db.get(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Ignoring non-list value stored under %s", key)
            return []
        return [item for item in raw if isinstance(item, str)]

    def set_list(self, key: str, values: list[str]) -> None:
        with self._open() as db:
            db[key] = list(values)
