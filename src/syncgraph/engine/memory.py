"""Local-only engine: writes apply immediately and go nowhere."""

from __future__ import annotations

from typing import Any

from syncgraph.core.adapters import AdapterRegistry
from syncgraph.core.context import Context
from syncgraph.core.tracking import Tracker


class MemoryContext(Context):
    """Context without a peer, version bookkeeping or speculation."""

    def create_change(self, target: str, value: Any) -> None:
        self.apply_change(target, value)


def create_memory_engine(
    initial: Any = None,
    *,
    tracker: Tracker | None = None,
    registry: AdapterRegistry | None = None,
) -> Any:
    """Return an observed root backed only by local memory."""
    return MemoryContext(initial, tracker=tracker, registry=registry).data
