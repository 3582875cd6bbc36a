"""CLI commands for the local snapshot cache."""

from __future__ import annotations

import json

import click

from syncgraph.cli.helpers import json_envelope, output_error
from syncgraph.cli.main import cli
from syncgraph.config import cache_dir
from syncgraph.core.protocol import CACHE_KEY_PREFIX, cache_key
from syncgraph.storage.cache import FileStore, load_snapshot


@cli.group()
def cache() -> None:
    """Inspect cached document snapshots."""


@cache.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def cache_list(as_json: bool) -> None:
    """List cached documents and their versions."""
    store = FileStore(cache_dir())
    entries = []
    for key in store.keys():
        if not key.startswith(CACHE_KEY_PREFIX):
            continue
        doc_id = key[len(CACHE_KEY_PREFIX):]
        snapshot = load_snapshot(store, doc_id)
        entries.append({"id": doc_id, "version": snapshot[0] if snapshot else None})

    if as_json:
        click.echo(json_envelope(True, data=entries))
        return
    if not entries:
        click.echo("No cached documents.")
        return
    for entry in entries:
        version = entry["version"] if entry["version"] is not None else "unreadable"
        click.echo(f"{entry['id']}  v{version}")


@cache.command("show")
@click.argument("doc_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def cache_show(doc_id: str, as_json: bool) -> None:
    """Print the cached snapshot of DOC_ID."""
    snapshot = load_snapshot(FileStore(cache_dir()), doc_id)
    if snapshot is None:
        output_error(f"No cached snapshot for {doc_id}", "NOT_FOUND", as_json)

    version, root = snapshot
    if as_json:
        click.echo(json_envelope(True, data={"id": doc_id, "version": version, "root": root}))
        return
    click.echo(f"{doc_id} (version {version})")
    click.echo(json.dumps(root, sort_keys=True, indent=2))


@cache.command("clear")
@click.argument("doc_id")
def cache_clear(doc_id: str) -> None:
    """Drop the cached snapshot of DOC_ID."""
    store = FileStore(cache_dir())
    if store.get_item(cache_key(doc_id)) is None:
        output_error(f"No cached snapshot for {doc_id}", "NOT_FOUND", False)
    store.remove_item(cache_key(doc_id))
    click.echo(f"Cleared cached snapshot for {doc_id}")
