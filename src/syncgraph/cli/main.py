"""CLI entry point and commands."""

from __future__ import annotations

import asyncio
import logging

import click

from syncgraph.config import (
    CONFIG_FILE,
    default_config,
    docs_dir,
    load_config,
    save_config,
    syncgraph_home,
)
from syncgraph.cli.helpers import json_envelope


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
def cli(verbose: bool) -> None:
    """syncgraph: keep a local object graph in step with a remote peer."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


@cli.command()
def init() -> None:
    """Write a default config.json to the syncgraph home directory."""
    home = syncgraph_home()
    if (home / CONFIG_FILE).exists():
        click.echo(f"syncgraph already initialized in {home}")
        return
    save_config(default_config(), home)
    click.echo(f"Initialized syncgraph in {home}")


@cli.command()
@click.option("--host", default=None, help="Bind address (default from config).")
@click.option("--port", type=int, default=None, help="Listen port (default from config).")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for document change logs (default: <home>/docs).",
)
def serve(host: str | None, port: int | None, data_dir: str | None) -> None:
    """Run the authoritative sync server."""
    from pathlib import Path

    from syncgraph.server.hub import DocumentHub
    from syncgraph.server.ws import SyncServer

    config = load_config()
    hub = DocumentHub(Path(data_dir) if data_dir else docs_dir())
    server = SyncServer(
        hub,
        host=host or config["listen"]["host"],
        port=port if port is not None else config["listen"]["port"],
    )

    try:
        asyncio.run(server.run_forever())
    except KeyboardInterrupt:
        click.echo("\nsyncgraph server: stopped.")


@cli.command("docs")
@click.option("--data-dir", type=click.Path(file_okay=False), default=None)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_docs(data_dir: str | None, as_json: bool) -> None:
    """List documents hosted from the server data directory."""
    from pathlib import Path

    from syncgraph.server.hub import DocumentHub

    hub = DocumentHub(Path(data_dir) if data_dir else docs_dir())
    ids = hub.list_document_ids()

    if as_json:
        click.echo(json_envelope(True, data=ids))
        return
    if not ids:
        click.echo("No documents.")
        return
    for doc_id in ids:
        click.echo(doc_id)


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from syncgraph.cli import cache_cmds as _cache_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()
