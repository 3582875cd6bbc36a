"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from syncgraph.core.context import DeferredCalls, SyncContext
from syncgraph.core.tracking import ListenerTracker
from syncgraph.engine.loopback import connect_loopback
from syncgraph.server.hub import DocumentHub


class FakeTransport:
    """Transport that records every message sent through it."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    def send(self, text: str) -> None:
        self.sent.append(text)

    @property
    def messages(self) -> list[dict]:
        return [json.loads(text) for text in self.sent]


@pytest.fixture()
def calls() -> DeferredCalls:
    """Scheduler standing in for the event loop."""
    return DeferredCalls()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def context(transport: FakeTransport, calls: DeferredCalls) -> SyncContext:
    """A SyncContext wired to a recording transport."""
    return SyncContext(transport, scheduler=calls)


@pytest.fixture()
def tracker() -> ListenerTracker:
    return ListenerTracker()


@pytest.fixture()
def hub() -> DocumentHub:
    return DocumentHub()


@pytest.fixture()
def connect(hub: DocumentHub, calls: DeferredCalls):
    """Return a helper that joins (or creates) a document on the in-process hub.

    Usage::

        ctx = connect()            # new document
        other = connect(ctx.session_id)
    """

    def _connect(doc_id: str | None = None, **kwargs) -> SyncContext:
        return connect_loopback(hub, doc_id, scheduler=calls, **kwargs)

    return _connect


@pytest.fixture()
def syncgraph_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point SYNCGRAPH_HOME at a temporary directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("SYNCGRAPH_HOME", str(home))
    return home


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def invoke(cli_runner: CliRunner, syncgraph_home: Path):
    """Return a helper that invokes CLI commands against a temporary home.

    Usage::

        result = invoke("cache", "list", "--json")
    """
    from syncgraph.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), **kwargs)

    return _invoke
