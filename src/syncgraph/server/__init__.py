"""Authoritative peer: document hub and its websocket front end."""

from __future__ import annotations

from syncgraph.server.hub import Document, DocumentHub, UnknownDocument

__all__ = ["Document", "DocumentHub", "UnknownDocument"]
