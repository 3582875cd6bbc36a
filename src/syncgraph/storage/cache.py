"""Key/value stores for cached ``{version, root}`` snapshots.

A snapshot lets a client resume a document: it reconnects with the cached
version and only receives the changes made since.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from syncgraph.core.protocol import cache_key
from syncgraph.storage.fs import atomic_write
from syncgraph.storage.locks import store_lock

logger = logging.getLogger(__name__)


class MemoryStore:
    """In-process store, lost when the process exits."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class FileStore:
    """One file per key under *directory*, written atomically under a lock."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.locks_dir = directory / ".locks"
        self.locks_dir.mkdir(exist_ok=True)

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        with store_lock(self.locks_dir, quote(key, safe="")):
            atomic_write(self._path(key), value)

    def remove_item(self, key: str) -> None:
        with store_lock(self.locks_dir, quote(key, safe="")):
            path = self._path(key)
            if path.exists():
                path.unlink()

    def keys(self) -> list[str]:
        return sorted(unquote(path.stem) for path in self.directory.glob("*.json"))

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"


def load_snapshot(store: Any, doc_id: str) -> tuple[int, Any] | None:
    """Return the cached ``(version, root)`` of *doc_id*, or ``None``.

    An unreadable snapshot is logged and treated as missing, so the caller
    falls back to a full join.
    """
    text = store.get_item(cache_key(doc_id))
    if text is None:
        return None
    try:
        snapshot = json.loads(text)
        return int(snapshot["version"]), snapshot["root"]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("ignoring unreadable snapshot for %s: %s", doc_id, exc)
        return None
