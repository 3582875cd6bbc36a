"""WebSocket front end for a :class:`~syncgraph.server.hub.DocumentHub`.

Routes:

- ``/new``: create a document and attach to it.
- ``/join?id=<doc_id>&version=<v>``: attach to an existing document,
  receiving every change made after version *v*.

The first message on every connection is the handshake
``{"id", "version", "changes"}``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import parse_qs, urlparse

from syncgraph.core.errors import SyncError
from syncgraph.core.protocol import decode, stringify
from syncgraph.server.hub import Document, DocumentHub, UnknownDocument

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9800

# RFC 6455 close code for a policy violation
CLOSE_POLICY = 1008


class SyncServer:
    """Serve a document hub over WebSocket."""

    def __init__(
        self,
        hub: DocumentHub,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
    ) -> None:
        self.hub = hub
        self.host = host
        self.port = port
        self._server: Any = None

    async def start(self) -> None:
        """Start listening.  ``port=0`` picks a free port."""
        import websockets

        self._server = await websockets.serve(self._handle_peer, self.host, self.port)
        sockets = getattr(self._server, "sockets", None)
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("syncgraph server: listening on ws://%s:%d", self.host, self.port)

    async def run_forever(self) -> None:
        """Start and run until cancelled."""
        await self.start()
        await asyncio.Future()  # block forever

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _handle_peer(self, websocket: Any, path: Any = None) -> None:
        route = urlparse(path or _request_path(websocket))
        query = parse_qs(route.query)

        try:
            if route.path.rstrip("/").endswith("/new"):
                doc = self.hub.create()
                head = 0
            elif route.path.rstrip("/").endswith("/join"):
                doc = self.hub.get(query.get("id", [""])[0])
                head = int(query.get("version", ["0"])[0])
            else:
                await websocket.close(CLOSE_POLICY, "unknown route")
                return
        except (UnknownDocument, ValueError) as exc:
            logger.warning("syncgraph server: rejected %s: %s", route.path, exc)
            await websocket.close(CLOSE_POLICY, "unknown document")
            return

        await self._serve(doc, websocket, head)

    async def _serve(self, doc: Document, websocket: Any, head: int) -> None:
        # Handshake queued and client attached with no await in between, so
        # no broadcast can fall between them
        outbox: asyncio.Queue[str] = asyncio.Queue()
        outbox.put_nowait(stringify(self.hub.handshake(doc, head)))
        client_id = doc.attach(outbox.put_nowait)
        writer = asyncio.create_task(_drain(outbox, websocket))
        logger.info("syncgraph server: client %d attached to %s", client_id, doc.id)

        try:
            async for message in websocket:
                try:
                    update = decode(message)
                    self.hub.apply(doc, update, sender=client_id)
                except (SyncError, ValueError, KeyError, TypeError) as exc:
                    logger.warning("syncgraph server: bad update on %s: %s", doc.id, exc)
                    await websocket.close(CLOSE_POLICY, "bad update")
                    break
        finally:
            doc.detach(client_id)
            writer.cancel()
            logger.info("syncgraph server: client %d detached from %s", client_id, doc.id)


async def _drain(outbox: asyncio.Queue[str], websocket: Any) -> None:
    """Send queued messages in order until cancelled."""
    while True:
        message = await outbox.get()
        try:
            await websocket.send(message)
        except Exception as exc:
            logger.debug("syncgraph server: send failed: %s", exc)
            return


def _request_path(websocket: Any) -> str:
    request = getattr(websocket, "request", None)
    if request is not None:
        return request.path
    return getattr(websocket, "path", "/")
