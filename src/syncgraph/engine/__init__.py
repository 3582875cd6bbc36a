"""Ways of connecting a synchronized tree to its peer."""

from __future__ import annotations

from syncgraph.engine.loopback import connect_loopback
from syncgraph.engine.memory import create_memory_engine
from syncgraph.engine.ws import SyncSession, join, join_new

__all__ = [
    "SyncSession",
    "connect_loopback",
    "create_memory_engine",
    "join",
    "join_new",
]
