"""Wire messages exchanged between a client context and its peer."""

from __future__ import annotations

import json
from typing import Any, TypedDict

CACHE_KEY_PREFIX = "syncgraph:sync:"


class Change(TypedDict, total=False):
    target: str
    value: Any


class ClientUpdate(TypedDict):
    version: int
    changes: list[Change]


class ServerUpdate(TypedDict, total=False):
    version: int
    changes: list[Change]


class ServerHandshake(ServerUpdate, total=False):
    id: str


class Snapshot(TypedDict):
    version: int
    root: Any


def stringify(message: Any) -> str:
    """Serialize a message or snapshot for the wire."""
    return json.dumps(message, separators=(",", ":"))


def decode(text: str | bytes) -> dict:
    """Decode one wire message.

    Raises:
        ValueError: If *text* is not a JSON object.
    """
    message = json.loads(text)
    if not isinstance(message, dict):
        raise ValueError(f"Expected a JSON object, got {type(message).__name__}")
    return message


def is_broadcast(message: ServerUpdate) -> bool:
    """A broadcast carries a change list; an acknowledgment does not."""
    return message.get("changes") is not None


def cache_key(doc_id: str) -> str:
    """Persistence key under which the snapshot of *doc_id* is cached."""
    return f"{CACHE_KEY_PREFIX}{doc_id}"
