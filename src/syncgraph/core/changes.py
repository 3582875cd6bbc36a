"""Applying change records to a JSON tree.

Shared by the client context (which layers tracker notifications on top)
and the in-process peer (which applies to plain decoded JSON).
"""

from __future__ import annotations

from typing import Any

from syncgraph.core.errors import PathNotFound
from syncgraph.core.path import parse, resolve
from syncgraph.core.tracking import ChangeKind


class _Unset:
    """Marks a change without a value, i.e. a deletion."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def make_change(target: str, value: Any = UNSET) -> dict:
    """Build a wire change record.  Deletions carry no ``value`` key."""
    if value is UNSET:
        return {"target": target}
    return {"target": target, "value": value}


def change_value(change: dict) -> Any:
    return change["value"] if "value" in change else UNSET


def apply_change(root: Any, target: str, value: Any = UNSET) -> tuple[Any, Any, ChangeKind]:
    """Set or delete the property named by *target* under *root*.

    Returns ``(receiver, key, kind)`` so callers can report the change.
    A list index equal to the list length appends; deleting a missing
    object key is a no-op.

    Raises:
        MalformedPointer: If *target* is not a pointer.
        PathNotFound: If the parent of *target* does not exist.
    """
    names = parse(target)
    receiver = resolve(root, names[:-1])
    key: Any = names[-1]

    if isinstance(receiver, list):
        try:
            key = int(key)
        except ValueError:
            raise PathNotFound(f"Invalid list index in {target}") from None
        if not 0 <= key <= len(receiver) or (value is UNSET and key == len(receiver)):
            raise PathNotFound(f"List index out of range in {target}")

        if value is UNSET:
            del receiver[key]
            return receiver, key, ChangeKind.DELETE
        if key == len(receiver):
            receiver.append(value)
            return receiver, key, ChangeKind.ADD
        receiver[key] = value
        return receiver, key, ChangeKind.SET

    if not isinstance(receiver, dict):
        raise PathNotFound(f"Parent of {target} is not a container")

    if value is UNSET:
        receiver.pop(key, None)
        return receiver, key, ChangeKind.DELETE

    kind = ChangeKind.SET if key in receiver else ChangeKind.ADD
    receiver[key] = value
    return receiver, key, kind
