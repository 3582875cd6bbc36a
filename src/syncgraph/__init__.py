"""syncgraph: keep a local, mutable object graph in step with a remote peer.

Writes made through the observed tree apply locally at once, are sent to
the peer in one batch per event-loop tick and are reconciled against the
peer's authoritative updates.
"""

from __future__ import annotations

from syncgraph.core import (
    Collection,
    DuplicateAdapter,
    ListenerTracker,
    MalformedPointer,
    PathNotFound,
    ProtocolViolation,
    SyncContext,
    SyncError,
    Tracker,
    UnknownAdapter,
    make_ref,
)
from syncgraph.engine import SyncSession, connect_loopback, create_memory_engine, join, join_new

__version__ = "0.1.0"

__all__ = [
    "Collection",
    "DuplicateAdapter",
    "ListenerTracker",
    "MalformedPointer",
    "PathNotFound",
    "ProtocolViolation",
    "SyncContext",
    "SyncError",
    "SyncSession",
    "Tracker",
    "UnknownAdapter",
    "connect_loopback",
    "create_memory_engine",
    "join",
    "join_new",
    "make_ref",
]
