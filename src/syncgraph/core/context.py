"""Synchronization contexts: the owners of a synchronized tree.

:class:`Context` holds the root, hands out observing wrappers and turns
writes into change records.  Subclasses decide what happens to a change:
:class:`SyncContext` applies it eagerly, batches it per event-loop tick and
reconciles with the peer using ``version`` and ``speculation``.

Protocol states, by ``(pending, speculation)``:

- idle: nothing pending.
- accumulating: writes pending, one flush scheduled for the end of the tick.
- speculative: batches sent, ``speculation`` of them not yet acknowledged.

A broadcast from the peer may only arrive while nothing is speculative; an
acknowledgment only while something is.  Anything else is a
:class:`~syncgraph.core.errors.ProtocolViolation`.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol

import syncgraph.core.collection as _collection  # noqa: F401  (registers "collection")
from syncgraph.core.adapters import AdapterRegistry, default_registry, is_record, ref_record
from syncgraph.core.changes import UNSET, apply_change, change_value, make_change
from syncgraph.core.errors import PathNotFound, ProtocolViolation
from syncgraph.core.nodes import RawDict, RawList, adopt, is_container, to_plain, to_raw, wrap
from syncgraph.core.path import ROOT, join, parse, resolve
from syncgraph.core.protocol import Change, ServerUpdate, cache_key, decode, is_broadcast, stringify
from syncgraph.core.tracking import Tracker

logger = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], None]], Any]

JSON_SCALARS = (str, int, float, bool, type(None))


class Transport(Protocol):
    def send(self, text: str) -> None: ...


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def asyncio_scheduler(callback: Callable[[], None]) -> None:
    """Run *callback* at the end of the current tick of the running loop."""
    asyncio.get_running_loop().call_soon(callback)


class DeferredCalls:
    """Scheduler that holds callbacks until :meth:`run` is called.

    Stands in for the event loop where there is none (tests, embedding in
    a synchronous host).
    """

    def __init__(self) -> None:
        self._queue: deque[Callable[[], None]] = deque()

    def __call__(self, callback: Callable[[], None]) -> None:
        self._queue.append(callback)

    def __len__(self) -> int:
        return len(self._queue)

    def run(self) -> int:
        """Run queued callbacks, including ones they schedule.  Returns the count."""
        count = 0
        while self._queue:
            self._queue.popleft()()
            count += 1
        return count


class Context:
    """Owner of a synchronized tree."""

    def __init__(
        self,
        root: Any = None,
        *,
        version: int = 0,
        tracker: Tracker | None = None,
        registry: AdapterRegistry | None = None,
    ) -> None:
        root = adopt({} if root is None else root)
        if not isinstance(root, (RawDict, RawList)):
            raise TypeError(f"Root must be an object or array, got {type(root).__name__}")
        self.root = root
        self.version = version
        self.tracker = tracker or Tracker()
        self.registry = registry or default_registry

    @property
    def data(self) -> Any:
        """The observed root."""
        return self.create_value(ROOT, self.root)

    def create_value(self, path: str, raw: Any) -> Any:
        """Return the live object for raw node *raw* reached at *path*.

        A node already homed elsewhere resolves to its wrapper at home.  A
        cached wrapper is reused.  Otherwise the node is annotated with
        *path* as its home and wrapped, or handed to its adapter if it is a
        tagged record.
        """
        if raw.home is not None and raw.context is self and raw.home != path:
            return self.create_value(raw.home, raw)

        cached = raw._proxy() if raw._proxy is not None else None
        if cached is not None:
            return cached

        raw.home = path
        raw.context = self

        if is_record(raw):
            value = self.registry.load(self, raw)
            if not self.registry.is_cached(raw[0]):
                return value
        else:
            value = wrap(self, raw)

        raw._proxy = weakref.ref(value)
        return value

    def prepare(self, target: str, value: Any, seen: dict[int, str] | None = None) -> Any:
        """Turn *value* into what gets stored at *target*.

        Tracked nodes still living at a different home become reference
        records.  Plain structures, and nodes detached from their home, are
        copied into raw nodes; a sub-object met twice is stored once and
        referenced after that.

        Raises:
            TypeError: If *value* holds something JSON cannot represent.
        """
        raw = to_raw(value)
        if isinstance(raw, tuple):
            raw = list(raw)
        if not is_container(raw):
            if not isinstance(raw, JSON_SCALARS):
                raise TypeError(f"Cannot synchronize a value of type {type(raw).__name__}")
            return raw

        home = getattr(raw, "home", None)
        if home is not None and raw.context is self and self._is_attached(raw):
            return raw if home == target else ref_record(home)

        if seen is None:
            seen = {}
        if id(raw) in seen:
            return ref_record(seen[id(raw)])
        seen[id(raw)] = target

        if isinstance(raw, dict):
            return RawDict(
                (str(k), self.prepare(join(target, k), v, seen)) for k, v in raw.items()
            )
        return RawList(self.prepare(join(target, i), v, seen) for i, v in enumerate(raw))

    def _is_attached(self, raw: Any) -> bool:
        """Return ``True`` if *raw* still lives at its home."""
        try:
            return resolve(self.root, parse(raw.home) if raw.home != ROOT else []) is raw
        except PathNotFound:
            return False

    def update(self, target: str, value: Any = UNSET) -> None:
        """Set (or, without *value*, delete) the property at *target*."""
        if value is not UNSET:
            value = self.prepare(target, value)
        self.create_change(target, value)

    def create_change(self, target: str, value: Any) -> None:
        raise NotImplementedError

    def apply_change(self, target: str, value: Any = UNSET) -> None:
        """Mutate the raw tree and report the change to the tracker."""
        receiver, key, kind = apply_change(self.root, target, value)
        self.tracker.notify_change(receiver, key, kind)

    def snapshot(self) -> dict:
        return {"version": self.version, "root": self.root}


class SyncContext(Context):
    """Context kept in step with a remote peer."""

    def __init__(
        self,
        transport: Transport | None = None,
        root: Any = None,
        *,
        version: int = 0,
        cache_key: str = "",
        store: KeyValueStore | None = None,
        scheduler: Scheduler | None = None,
        tracker: Tracker | None = None,
        registry: AdapterRegistry | None = None,
    ) -> None:
        super().__init__(root, version=version, tracker=tracker, registry=registry)
        self.transport = transport
        self.speculation = 0
        self.pending: list[Change] = []
        self.cache_key = cache_key
        self.store = store
        self.schedule = scheduler if scheduler is not None else asyncio_scheduler
        self.session_id: str | None = None

    def create_change(self, target: str, value: Any) -> None:
        if not self.pending:
            self.schedule(self.flush)
        self.apply_change(target, value)
        # Copied now: later writes must not rewrite a queued change
        self.pending.append(make_change(target, to_plain(value)))

    def flush(self) -> None:
        """Send pending changes as one speculative batch."""
        if not self.pending:
            return
        if self.transport is None:
            raise RuntimeError("SyncContext has no transport to flush to")

        # Encode before touching state so a failure leaves the batch pending
        text = stringify({"version": self.version + 1, "changes": self.pending})
        count = len(self.pending)

        self.version += 1
        self.speculation += 1
        self.pending = []

        logger.debug(
            "flush: version=%d changes=%d speculation=%d", self.version, count, self.speculation
        )
        self.transport.send(text)

    def receive(self, text: str | bytes) -> dict:
        """Handle one message from the peer and return it decoded."""
        message = decode(text)
        if "id" in message:
            self.session_id = message["id"]
            self.cache_key = cache_key(message["id"])
            logger.info("handshake: document %s at version %s", message["id"], message.get("version"))
        self.apply_update(message)
        return message

    def apply_update(self, message: ServerUpdate) -> None:
        """Apply a broadcast or acknowledgment, then persist.

        Raises:
            ProtocolViolation: If the message type does not match the
                speculation state.
        """
        if is_broadcast(message):
            if self.speculation != 0:
                raise ProtocolViolation(
                    f"Broadcast received with {self.speculation} unacknowledged batch(es) in flight"
                )
            for change in message["changes"]:
                self.apply_change(change["target"], adopt(change_value(change)))
            self.version = message["version"]
            logger.debug("broadcast: version=%d changes=%d", self.version, len(message["changes"]))
        else:
            if self.speculation <= 0:
                raise ProtocolViolation("Acknowledgment received with no batch in flight")
            self.speculation -= 1
            logger.debug("ack: speculation=%d", self.speculation)

        self.persist()

    def persist(self) -> None:
        """Cache ``{version, root}`` under ``cache_key``."""
        if self.store is None or not self.cache_key:
            return
        self.store.set_item(self.cache_key, stringify(self.snapshot()))
