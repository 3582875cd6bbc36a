"""Round trips through a real WebSocket server on a free local port."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from syncgraph.core.collection import Collection
from syncgraph.engine.ws import WebSocketTransport, join, join_new
from syncgraph.server.hub import DocumentHub
from syncgraph.server.ws import SyncServer
from syncgraph.storage.cache import MemoryStore


async def until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


def run_with_server(scenario: Callable[[str, DocumentHub], Awaitable[None]]) -> None:
    async def main() -> None:
        hub = DocumentHub()
        server = SyncServer(hub, "127.0.0.1", 0)
        await server.start()
        try:
            await scenario(f"ws://127.0.0.1:{server.port}", hub)
        finally:
            await server.stop()

    asyncio.run(main())


class TestRoundTrip:
    def test_write_reaches_other_client(self) -> None:
        async def scenario(host: str, hub: DocumentHub) -> None:
            async with await join_new(host) as a, await join(host, a.id) as b:
                a.data.test = "hello"
                await until(lambda: "test" in b.data and a.context.speculation == 0)
                assert b.data.test == "hello"

        run_with_server(scenario)

    def test_cycle_and_collection(self) -> None:
        async def scenario(host: str, hub: DocumentHub) -> None:
            async with await join_new(host) as a, await join(host, a.id) as b:
                a.data.x = {}
                a.data.x.y = a.data.x
                a.data.todos = Collection.create()
                a.data.todos.insert({"value": 5})
                await until(lambda: "todos" in b.data)

                assert b.data.x.y is b.data.x
                assert b.data.todos.get(0).value == 5
                assert hub.get(a.id).version == 1

        run_with_server(scenario)

    def test_handshake_sets_id(self) -> None:
        async def scenario(host: str, hub: DocumentHub) -> None:
            async with await join_new(host) as session:
                assert session.id is not None
                assert hub.has(session.id)
                assert session.context.cache_key == f"syncgraph:sync:{session.id}"

        run_with_server(scenario)

    def test_close_flushes_pending(self) -> None:
        async def scenario(host: str, hub: DocumentHub) -> None:
            session = await join_new(host)
            session.data.last = "word"
            await session.close()
            await until(lambda: hub.get(session.id).data == {"last": "word"})

        run_with_server(scenario)

    def test_resume_from_store(self) -> None:
        async def scenario(host: str, hub: DocumentHub) -> None:
            store = MemoryStore()
            async with await join_new(host, store=store) as a:
                a.data.n = 1
                await until(lambda: a.context.version == 1 and a.context.speculation == 0)
                doc_id = a.id

            async with await join(host, doc_id, store=store) as resumed:
                assert resumed.context.version == 1
                assert resumed.data.n == 1

        run_with_server(scenario)


class TestFailures:
    def test_unknown_document(self) -> None:
        async def scenario(host: str, hub: DocumentHub) -> None:
            with pytest.raises(ConnectionError):
                await join(host, "doc_01ARZ3NDEKTSV4RRFFQ69G5FAV")

        run_with_server(scenario)

    def test_unreachable_server(self) -> None:
        async def scenario() -> None:
            with pytest.raises(ConnectionError, match="Failed to connect"):
                await join_new("ws://127.0.0.1:1")

        asyncio.run(scenario())


class BrokenSocket:
    """Socket whose every send fails."""

    def __init__(self) -> None:
        self.closed = False

    async def send(self, text: str) -> None:
        raise ConnectionResetError("peer went away")

    async def close(self) -> None:
        self.closed = True


class TestTransport:
    def test_send_failure_does_not_stall_close(self, caplog: pytest.LogCaptureFixture) -> None:
        async def scenario() -> None:
            socket = BrokenSocket()
            transport = WebSocketTransport(socket)
            transport.start()
            transport.send('{"version":1,"changes":[]}')
            transport.send('{"version":2,"changes":[]}')
            await asyncio.sleep(0)
            await asyncio.wait_for(transport.close(timeout=5.0), 1.0)
            assert socket.closed

        asyncio.run(scenario())
        assert "send failed" in caplog.text
