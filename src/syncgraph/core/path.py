"""Pointer encoding and resolution over the synchronized tree.

A pointer is an escaped string form of a sequence of property names,
e.g. ``/todos/3/title``.  Inside a segment ``~0`` stands for ``~`` and
``~1`` for ``/``.  The root of the tree is addressed by the empty
pointer ``""``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from syncgraph.core.errors import MalformedPointer, PathNotFound

ROOT = ""


def parse(pointer: str) -> list[str]:
    """Split *pointer* into its unescaped segments.

    Raises:
        MalformedPointer: If *pointer* does not start with ``/``.
    """
    if not pointer.startswith("/"):
        raise MalformedPointer(f"Pointer must start with '/': {pointer!r}")

    # ~1 before ~0 so that "~01" decodes to "~1", not "/"
    return [part.replace("~1", "/").replace("~0", "~") for part in pointer[1:].split("/")]


def to_string(names: Sequence[str]) -> str:
    """Encode *names* as a pointer.  Inverse of :func:`parse`."""
    return "/" + "/".join(str(n).replace("~", "~0").replace("/", "~1") for n in names)


def join(pointer: str, key: str | int) -> str:
    """Return the pointer of child *key* under *pointer*."""
    return pointer + to_string([str(key)])


def resolve(root: Any, names: Sequence[str]) -> Any:
    """Walk *root* through *names* and return the node found.

    Observation wrappers are unwrapped at every step so lookups always run
    against raw nodes.  List segments are integer indices.

    Raises:
        PathNotFound: If any segment is missing.
    """
    from syncgraph.core.nodes import to_raw

    node = to_raw(root)
    walked: list[str] = []
    for name in names:
        walked.append(name)
        if isinstance(node, dict):
            if name not in node:
                raise PathNotFound(f"No node at {to_string(walked)}")
            node = node[name]
        elif isinstance(node, list):
            try:
                index = int(name)
            except ValueError:
                raise PathNotFound(f"Invalid list index at {to_string(walked)}") from None
            if not 0 <= index < len(node):
                raise PathNotFound(f"No node at {to_string(walked)}")
            node = node[index]
        else:
            raise PathNotFound(f"Cannot descend into scalar at {to_string(walked[:-1])}")
        node = to_raw(node)
    return node
