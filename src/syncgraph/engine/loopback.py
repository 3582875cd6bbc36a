"""In-process engine: a context wired straight to a local document hub.

Messages in both directions travel through the scheduler, so batching,
acknowledgment and broadcast happen exactly as they would over a socket,
only without one.
"""

from __future__ import annotations

from typing import Any

from syncgraph.core.adapters import AdapterRegistry
from syncgraph.core.context import KeyValueStore, Scheduler, SyncContext, asyncio_scheduler
from syncgraph.core.protocol import cache_key, decode, stringify
from syncgraph.core.tracking import Tracker
from syncgraph.server.hub import Document, DocumentHub
from syncgraph.storage.cache import load_snapshot


class LoopbackTransport:
    """Transport between one context and a document of an in-process hub."""

    def __init__(self, hub: DocumentHub, doc: Document, schedule: Scheduler) -> None:
        self.hub = hub
        self.doc = doc
        self._schedule = schedule
        self._client_id: int | None = None

    def bind(self, context: SyncContext) -> None:
        """Attach *context* to the document so it receives acks and broadcasts."""
        self._client_id = self.doc.attach(
            lambda text: self._schedule(lambda: context.receive(text))
        )

    def send(self, text: str) -> None:
        update = decode(text)
        self._schedule(lambda: self.hub.apply(self.doc, update, sender=self._client_id))

    def close(self) -> None:
        if self._client_id is not None:
            self.doc.detach(self._client_id)
            self._client_id = None


def connect_loopback(
    hub: DocumentHub,
    doc_id: str | None = None,
    *,
    scheduler: Scheduler | None = None,
    store: KeyValueStore | None = None,
    tracker: Tracker | None = None,
    registry: AdapterRegistry | None = None,
) -> SyncContext:
    """Join (or, without *doc_id*, create) a document on *hub*.

    The handshake is processed before returning, so ``context.data`` is
    ready to use.
    """
    schedule = scheduler if scheduler is not None else asyncio_scheduler

    version, root = 0, None
    if doc_id is not None and store is not None:
        snapshot = load_snapshot(store, doc_id)
        if snapshot is not None:
            version, root = snapshot

    doc = hub.get(doc_id) if doc_id is not None else hub.create()
    transport = LoopbackTransport(hub, doc, schedule)
    context = SyncContext(
        transport,
        root,
        version=version,
        cache_key=cache_key(doc.id),
        store=store,
        scheduler=schedule,
        tracker=tracker,
        registry=registry,
    )
    transport.bind(context)
    context.receive(stringify(hub.handshake(doc, version)))
    return context
