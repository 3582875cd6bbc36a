"""WebSocket engine: join a document hosted by a syncgraph server.

Usage::

    async with await join_new("ws://127.0.0.1:9800") as session:
        session.data.todos = Collection.create()
        session.data.todos.insert({"title": "write docs"})

Writes are flushed at the end of the event-loop tick in which they were
made; incoming messages are applied by a background reader task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

from syncgraph.core.adapters import AdapterRegistry
from syncgraph.core.context import KeyValueStore, SyncContext
from syncgraph.core.errors import ProtocolViolation, SyncError
from syncgraph.core.protocol import cache_key
from syncgraph.core.tracking import Tracker
from syncgraph.storage.cache import load_snapshot

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Queue outgoing batches and write them to the socket in order."""

    def __init__(self, websocket: Any) -> None:
        self._ws = websocket
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain())

    def send(self, text: str) -> None:
        self._outbox.put_nowait(text)

    async def _drain(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await self._ws.send(text)
            except Exception as exc:
                logger.warning(
                    "syncgraph: send failed, dropping %d batch(es): %s",
                    self._outbox.qsize() + 1,
                    exc,
                )
                self._discard()
                return
            finally:
                self._outbox.task_done()

    def _discard(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()

    async def close(self, timeout: float = 5.0) -> None:
        """Send what is queued, then close the socket."""
        if self._writer is not None and not self._writer.done():
            try:
                await asyncio.wait_for(self._outbox.join(), timeout)
            except asyncio.TimeoutError:
                logger.warning("syncgraph: %d batch(es) unsent at close", self._outbox.qsize())
            self._writer.cancel()
        await self._ws.close()


class SyncSession:
    """A joined document: its observed ``data`` plus the connection behind it."""

    def __init__(self, context: SyncContext, transport: WebSocketTransport, websocket: Any) -> None:
        self.context = context
        self._transport = transport
        self._ws = websocket
        self._reader = asyncio.create_task(self._read())

    @property
    def data(self) -> Any:
        return self.context.data

    @property
    def id(self) -> str | None:
        return self.context.session_id

    async def _read(self) -> None:
        try:
            async for message in self._ws:
                self.context.receive(message)
        except SyncError as exc:
            logger.error("syncgraph: closing %s: %s", self.id, exc)
            await self._ws.close()
            raise

    async def wait_closed(self) -> None:
        """Wait for the peer to close the connection.

        Raises:
            SyncError: If an incoming message broke the protocol.
        """
        await self._reader

    async def close(self) -> None:
        """Flush pending writes and close the connection."""
        self.context.flush()
        await self._transport.close()
        if not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> SyncSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def join(
    host: str,
    doc_id: str | None = None,
    *,
    store: KeyValueStore | None = None,
    tracker: Tracker | None = None,
    registry: AdapterRegistry | None = None,
) -> SyncSession:
    """Join document *doc_id* on the server at *host*.

    A cached snapshot in *store* is used as the starting point, so only
    the changes made since it are transferred.  Without *doc_id* a new
    document is created.

    Raises:
        ConnectionError: If the server cannot be reached or refuses the
            document.
        ProtocolViolation: If the first message is not a handshake.
    """
    import websockets

    version, root = 0, None
    if doc_id is not None:
        if store is not None:
            snapshot = load_snapshot(store, doc_id)
            if snapshot is not None:
                version, root = snapshot
        url = f"{host.rstrip('/')}/join?{urlencode({'id': doc_id, 'version': version})}"
    else:
        url = f"{host.rstrip('/')}/new"

    try:
        websocket = await websockets.connect(url)
    except Exception as e:
        raise ConnectionError(f"Failed to connect to sync server: {e}") from e

    try:
        first = await websocket.recv()
    except Exception as e:
        await websocket.close()
        raise ConnectionError(f"Sync server closed before the handshake: {e}") from e

    transport = WebSocketTransport(websocket)
    context = SyncContext(
        transport,
        root,
        version=version,
        cache_key=cache_key(doc_id) if doc_id is not None else "",
        store=store,
        tracker=tracker,
        registry=registry,
    )
    message = context.receive(first)
    if "id" not in message:
        await websocket.close()
        raise ProtocolViolation("Expected a handshake as the first message")

    transport.start()
    logger.info("syncgraph: joined %s at version %d", context.session_id, context.version)
    return SyncSession(context, transport, websocket)


async def join_new(
    host: str,
    *,
    store: KeyValueStore | None = None,
    tracker: Tracker | None = None,
    registry: AdapterRegistry | None = None,
) -> SyncSession:
    """Create a new document on *host* and join it."""
    return await join(host, None, store=store, tracker=tracker, registry=registry)
