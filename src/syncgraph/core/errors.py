"""Error taxonomy for the synchronization engine.

Every error here means an invariant of the synchronized graph has already
been broken, so none of them are recovered from locally.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all syncgraph errors."""


class MalformedPointer(SyncError, ValueError):
    """Raised when a pointer does not start with ``/``."""


class PathNotFound(SyncError, LookupError):
    """Raised when resolving a pointer hits a missing intermediate key."""


class ProtocolViolation(SyncError):
    """Raised when a peer message is inconsistent with the speculation state."""


class DuplicateAdapter(SyncError):
    """Raised when an adapter tag is registered twice."""


class UnknownAdapter(SyncError, LookupError):
    """Raised when wire data carries a tag with no registered loader."""
