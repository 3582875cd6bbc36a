"""Dependency-tracking hooks called by the observation layer.

The engine only *reports* reads and changes; deciding who to re-run is
left to whatever reactive layer sits on top.  :class:`Tracker` is the
no-op default.  :class:`ListenerTracker` fans reports out to registered
callbacks.

Listeners are fire-and-forget: failures are logged but never interrupt
the read or write that triggered them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ReadKind(str, Enum):
    GET = "get"
    HAS = "has"
    ITERATE = "iterate"


class ChangeKind(str, Enum):
    SET = "set"
    ADD = "add"
    DELETE = "delete"


# Key reported for iteration dependence (len, iter, keys).
ITERATE_KEY = "__iterate__"


class Tracker:
    """No-op dependency tracker."""

    def record_read(self, node: Any, key: Any, kind: ReadKind) -> None:
        """Called when *key* of raw *node* is read."""

    def notify_change(self, node: Any, key: Any, kind: ChangeKind) -> None:
        """Called after *key* of raw *node* was set, added or deleted."""


ReadListener = Callable[[Any, Any, ReadKind], None]
ChangeListener = Callable[[Any, Any, ChangeKind], None]


class ListenerTracker(Tracker):
    """Tracker that forwards every report to registered listeners."""

    def __init__(self) -> None:
        self._read_listeners: list[ReadListener] = []
        self._change_listeners: list[ChangeListener] = []

    def on_read(self, fn: ReadListener) -> None:
        self._read_listeners.append(fn)

    def on_change(self, fn: ChangeListener) -> None:
        self._change_listeners.append(fn)

    def remove(self, fn: Callable[..., None]) -> None:
        """Remove *fn* from whichever listener list holds it."""
        for listeners in (self._read_listeners, self._change_listeners):
            try:
                listeners.remove(fn)
            except ValueError:
                pass

    def record_read(self, node: Any, key: Any, kind: ReadKind) -> None:
        for fn in list(self._read_listeners):
            try:
                fn(node, key, kind)
            except Exception as exc:
                logger.warning("read listener error for %r: %s", key, exc)

    def notify_change(self, node: Any, key: Any, kind: ChangeKind) -> None:
        for fn in list(self._change_listeners):
            try:
                fn(node, key, kind)
            except Exception as exc:
                logger.warning("change listener error for %r: %s", key, exc)
