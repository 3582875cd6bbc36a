"""Synchronization engine: paths, observation, references and protocol."""

from __future__ import annotations

from syncgraph.core.adapters import Adapter, AdapterRegistry, default_registry, make_ref
from syncgraph.core.collection import Collection
from syncgraph.core.context import Context, DeferredCalls, SyncContext
from syncgraph.core.errors import (
    DuplicateAdapter,
    MalformedPointer,
    PathNotFound,
    ProtocolViolation,
    SyncError,
    UnknownAdapter,
)
from syncgraph.core.tracking import ChangeKind, ListenerTracker, ReadKind, Tracker

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ChangeKind",
    "Collection",
    "Context",
    "DeferredCalls",
    "DuplicateAdapter",
    "ListenerTracker",
    "MalformedPointer",
    "PathNotFound",
    "ProtocolViolation",
    "ReadKind",
    "SyncContext",
    "SyncError",
    "Tracker",
    "UnknownAdapter",
    "default_registry",
    "make_ref",
]
