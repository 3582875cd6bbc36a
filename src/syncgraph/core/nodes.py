"""Raw nodes and the observing wrappers placed in front of them.

Raw nodes (:class:`RawDict`, :class:`RawList`) are the plain storage of the
synchronized tree.  Callers never see them directly: every container read
through the tree comes back as an :class:`ObservedDict` or
:class:`ObservedList`, which report reads to the context's tracker and turn
writes into protocol operations instead of mutating in place.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator, Mapping, MutableMapping, MutableSequence, Sequence
from typing import Any

from syncgraph.core.path import join
from syncgraph.core.tracking import ITERATE_KEY, ReadKind


class RawDict(dict):
    """A JSON object in the synchronized tree."""

    home: str | None = None
    context: Any = None
    _proxy: weakref.ref | None = None


class RawList(list):
    """A JSON array in the synchronized tree."""

    home: str | None = None
    context: Any = None
    _proxy: weakref.ref | None = None


def is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def adopt(value: Any) -> Any:
    """Convert decoded JSON into raw nodes, recursively.

    Existing raw nodes are kept as they are.
    """
    if isinstance(value, (RawDict, RawList)):
        return value
    if isinstance(value, dict):
        return RawDict((str(k), adopt(v)) for k, v in value.items())
    if isinstance(value, list):
        return RawList(adopt(v) for v in value)
    return value


def to_plain(value: Any) -> Any:
    """Copy raw nodes into plain dicts and lists, dropping annotations."""
    value = to_raw(value)
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value


def to_raw(value: Any) -> Any:
    """Return the raw node behind an observed value, or *value* itself."""
    if isinstance(value, Observed):
        return value._raw
    return value


class Observed:
    """Base for every object that stands in front of a raw node."""

    _raw: Any
    _context: Any

    def __init__(self, context: Any, raw: Any) -> None:
        object.__setattr__(self, "_context", context)
        object.__setattr__(self, "_raw", raw)

    @property
    def _home(self) -> str:
        return self._raw.home

    def _child(self, key: str | int, value: Any) -> Any:
        if is_container(value):
            return self._context.create_value(join(self._home, key), value)
        return value


class ObservedDict(Observed, MutableMapping):
    """Observed view of a :class:`RawDict`.

    Supports both item and attribute access: ``node["x"]`` and ``node.x``
    are the same key.  Attribute names starting with ``_`` belong to the
    wrapper itself and never reach the synchronized data.  Keys named like
    mapping methods (``items``, ``keys``, ``get``...) are only reachable
    with item access.
    """

    def __getitem__(self, key: str) -> Any:
        key = str(key)
        self._context.tracker.record_read(self._raw, key, ReadKind.GET)
        return self._child(key, self._raw[key])

    def __setitem__(self, key: str, value: Any) -> None:
        self._context.update(join(self._home, str(key)), value)

    def __delitem__(self, key: str) -> None:
        key = str(key)
        if key not in self._raw:
            raise KeyError(key)
        self._context.update(join(self._home, key))

    def __contains__(self, key: object) -> bool:
        key = str(key)
        self._context.tracker.record_read(self._raw, key, ReadKind.HAS)
        return key in self._raw

    def __iter__(self) -> Iterator[str]:
        self._context.tracker.record_read(self._raw, ITERATE_KEY, ReadKind.ITERATE)
        return iter(list(self._raw))

    def __len__(self) -> int:
        self._context.tracker.record_read(self._raw, ITERATE_KEY, ReadKind.ITERATE)
        return len(self._raw)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self[name] = value

    def __delattr__(self, name: str) -> None:
        if name.startswith("_"):
            object.__delattr__(self, name)
            return
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __repr__(self) -> str:
        return f"<ObservedDict {self._home!r} {dict.__repr__(self._raw)}>"


class ObservedList(Observed, MutableSequence):
    """Observed view of a :class:`RawList`.

    Items can be replaced and appended, and the last item removed.
    Inserting or deleting before the end would shift the home path of every
    later node, so both are refused.
    """

    def _index(self, index: int) -> int:
        size = len(self._raw)
        if index < 0:
            index += size
        if not 0 <= index < size:
            raise IndexError("list index out of range")
        return index

    def __getitem__(self, index: int | slice) -> Any:
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self._raw)))]
        index = self._index(index)
        self._context.tracker.record_read(self._raw, index, ReadKind.GET)
        return self._child(index, self._raw[index])

    def __setitem__(self, index: int | slice, value: Any) -> None:
        if isinstance(index, slice):
            raise TypeError("slice assignment is not supported on observed lists")
        self._context.update(join(self._home, self._index(index)), value)

    def __delitem__(self, index: int | slice) -> None:
        if isinstance(index, slice):
            raise TypeError("slice deletion is not supported on observed lists")
        index = self._index(index)
        if index != len(self._raw) - 1:
            raise ValueError("observed lists only support deleting the last item")
        self._context.update(join(self._home, index))

    def __len__(self) -> int:
        self._context.tracker.record_read(self._raw, ITERATE_KEY, ReadKind.ITERATE)
        return len(self._raw)

    def __iter__(self) -> Iterator[Any]:
        self._context.tracker.record_read(self._raw, ITERATE_KEY, ReadKind.ITERATE)
        for index in range(len(self._raw)):
            yield self[index]

    def insert(self, index: int, value: Any) -> None:
        size = len(self._raw)
        if index < 0:
            index += size
        if index != size:
            raise ValueError("observed lists only support inserting at the end")
        self._context.update(join(self._home, size), value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Sequence) and not isinstance(other, (str, bytes)):
            return list(self) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<ObservedList {self._home!r} {list.__repr__(self._raw)}>"


def wrap(context: Any, raw: Any) -> Observed:
    """Create the plain observing wrapper for *raw*."""
    if isinstance(raw, Mapping):
        return ObservedDict(context, raw)
    return ObservedList(context, raw)
