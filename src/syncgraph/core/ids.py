"""Document ID generation and validation."""

from __future__ import annotations

import re

from ulid import ULID

# Crockford Base32 alphabet: 0-9 A-Z excluding I, L, O, U
_CROCKFORD_B32_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)

DOC_PREFIX = "doc"


def generate_document_id() -> str:
    """Generate a new document ID with the doc_ prefix."""
    return f"{DOC_PREFIX}_{ULID()}"


def validate_document_id(id_str: str) -> bool:
    """Validate a ``doc_<ulid>`` identifier.

    The ULID portion must be exactly 26 characters of valid Crockford
    Base32 (0-9, A-Z excluding I, L, O, U -- case insensitive).
    """
    if not isinstance(id_str, str):
        return False

    parts = id_str.split("_", maxsplit=1)
    if len(parts) != 2:
        return False

    prefix, ulid_part = parts
    if prefix != DOC_PREFIX:
        return False

    return bool(_CROCKFORD_B32_RE.match(ulid_part))
