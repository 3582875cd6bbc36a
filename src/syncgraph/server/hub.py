"""Authoritative document host.

The hub keeps every document's current tree, version and change history.
A client update is applied, gets the next version, is acknowledged to its
sender and broadcast to every other client attached to the document.

With a ``docs_dir`` each document is backed by an append-only JSONL log
(``<doc_id>.jsonl``, one ``{"version", "changes"}`` record per line) and
is rebuilt by replaying it.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from syncgraph.core.changes import UNSET, apply_change, change_value
from syncgraph.core.ids import generate_document_id, validate_document_id
from syncgraph.core.protocol import Change, ClientUpdate, ServerHandshake, stringify
from syncgraph.storage.fs import jsonl_append

logger = logging.getLogger(__name__)

SendFn = Callable[[str], Any]


class UnknownDocument(KeyError):
    """Raised when a client asks for a document the hub does not have."""


class Document:
    """One synchronized document and the clients attached to it."""

    def __init__(self, doc_id: str, version: int = 0, data: Any = None) -> None:
        self.id = doc_id
        self.version = version
        self.data: Any = {} if data is None else data
        self.history: list[dict] = []
        self.clients: dict[int, SendFn] = {}
        self._next_client = 0

    def changes_since(self, version: int) -> list[Change]:
        """Return, in order, every change made after *version*."""
        changes: list[Change] = []
        for entry in self.history:
            if entry["version"] > version:
                changes.extend(entry["changes"])
        return changes

    def attach(self, send: SendFn) -> int:
        client_id = self._next_client
        self._next_client += 1
        self.clients[client_id] = send
        return client_id

    def detach(self, client_id: int) -> None:
        self.clients.pop(client_id, None)


class DocumentHub:
    """Creates, loads and updates documents."""

    def __init__(self, docs_dir: Path | None = None) -> None:
        self.docs_dir = docs_dir
        if docs_dir is not None:
            docs_dir.mkdir(parents=True, exist_ok=True)
        self._docs: dict[str, Document] = {}

    def create(self) -> Document:
        """Create an empty document with a fresh ID."""
        doc = Document(generate_document_id())
        self._docs[doc.id] = doc
        if self.docs_dir is not None:
            self._log_path(doc.id).touch()
        logger.info("created document %s", doc.id)
        return doc

    def has(self, doc_id: str) -> bool:
        if doc_id in self._docs:
            return True
        return (
            self.docs_dir is not None
            and validate_document_id(doc_id)
            and self._log_path(doc_id).exists()
        )

    def get(self, doc_id: str) -> Document:
        """Return a loaded document, replaying its log on first access.

        Raises:
            UnknownDocument: If *doc_id* is not known.
        """
        if doc_id in self._docs:
            return self._docs[doc_id]
        if not self.has(doc_id):
            raise UnknownDocument(doc_id)

        doc = self._replay(doc_id)
        self._docs[doc_id] = doc
        return doc

    def list_document_ids(self) -> list[str]:
        ids = set(self._docs)
        if self.docs_dir is not None:
            ids.update(path.stem for path in self.docs_dir.glob("*.jsonl"))
        return sorted(ids)

    def handshake(self, doc: Document, head: int = 0) -> ServerHandshake:
        """Build the first message for a client that has seen *head*."""
        return {
            "id": doc.id,
            "version": doc.version,
            "changes": doc.changes_since(head),
        }

    def apply(self, doc: Document, update: ClientUpdate, sender: int | None = None) -> int:
        """Apply a client batch, acknowledge it and broadcast it.

        The batch applies as a whole: if any change fails, the document is
        left untouched.  Returns the document's new version.

        Raises:
            PathNotFound: If a change targets a missing parent.
            MalformedPointer: If a change target is not a pointer.
        """
        changes = update["changes"]
        data = copy.deepcopy(doc.data)
        for change in changes:
            _apply(data, change)
        doc.data = data

        doc.version += 1
        if update.get("version") != doc.version:
            logger.warning(
                "document %s: client sent version %s, now at %d",
                doc.id,
                update.get("version"),
                doc.version,
            )

        entry = {"version": doc.version, "changes": changes}
        doc.history.append(entry)
        if self.docs_dir is not None:
            jsonl_append(self._log_path(doc.id), json.dumps(entry, sort_keys=True) + "\n")

        ack = stringify({"version": doc.version})
        broadcast = stringify(entry)
        for client_id, send in list(doc.clients.items()):
            send(ack if client_id == sender else broadcast)

        return doc.version

    def _replay(self, doc_id: str) -> Document:
        doc = Document(doc_id)
        with open(self._log_path(doc_id), encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, 1):
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    # Torn final write from a crash
                    logger.warning("document %s: skipping unreadable line %d", doc_id, line_no)
                    continue
                for change in entry["changes"]:
                    _apply(doc.data, change)
                doc.version = entry["version"]
                doc.history.append(entry)
        logger.info("loaded document %s: %d updates", doc_id, len(doc.history))
        return doc

    def _log_path(self, doc_id: str) -> Path:
        assert self.docs_dir is not None
        return self.docs_dir / f"{doc_id}.jsonl"


def _apply(data: Any, change: Change) -> None:
    # Copy so later changes to the tree never rewrite recorded history
    value = change_value(change)
    if value is not UNSET:
        value = copy.deepcopy(value)
    apply_change(data, change["target"], value)
