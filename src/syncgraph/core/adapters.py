"""Tagged wire records: references and the adapter registry.

A 2-element list ``[tag, payload]`` in the synchronized tree is not plain
data.  ``["ref", pointer]`` stands for the node whose home is *pointer*;
any other tag is looked up in an :class:`AdapterRegistry` whose loader
builds an accessor object (e.g. :class:`~syncgraph.core.collection.Collection`)
in front of the record.

The process-wide :data:`default_registry` is populated once at import
time and only read afterwards.  Contexts that need a different vocabulary
take their own registry.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from syncgraph.core.errors import DuplicateAdapter, UnknownAdapter
from syncgraph.core.nodes import Observed, RawList, is_container, to_raw
from syncgraph.core.path import ROOT, join, parse, resolve

REF_TAG = "ref"

Loader = Callable[[Any, RawList], Any]


def is_record(value: Any) -> bool:
    """Return ``True`` if *value* has the shape of a tagged record."""
    if not isinstance(value, list) or len(value) != 2 or not isinstance(value[0], str):
        return False
    tag, payload = value
    return isinstance(payload, dict) or (tag == REF_TAG and isinstance(payload, str))


def ref_record(pointer: str) -> RawList:
    return RawList([REF_TAG, pointer])


def make_ref(value: Any) -> RawList:
    """Build a reference record pointing at the home of tracked *value*.

    Raises:
        ValueError: If *value* has never been observed.
    """
    home = getattr(to_raw(value), "home", None)
    if home is None:
        raise ValueError("Cannot reference a value that is not part of a synchronized tree")
    return ref_record(home)


def load_ref(context: Any, record: RawList) -> Any:
    """Resolve a reference record to the live node it points at."""
    pointer = record[1]
    target = resolve(context.root, parse(pointer) if pointer != ROOT else [])
    if is_container(target):
        return context.create_value(pointer, target)
    return target


class AdapterRegistry:
    """Maps record tags to loaders."""

    def __init__(self) -> None:
        self._loaders: dict[str, Loader] = {}
        self._uncached: set[str] = set()

    def register(self, tag: str, loader: Loader, *, cache: bool = True) -> None:
        """Register *loader* for *tag*.

        With ``cache=False`` the loader runs on every read instead of its
        result being kept as the record's wrapper.

        Raises:
            DuplicateAdapter: If *tag* is already registered.
        """
        if tag in self._loaders:
            raise DuplicateAdapter(f"Duplicate adapter definition: {tag!r}")
        self._loaders[tag] = loader
        if not cache:
            self._uncached.add(tag)

    def __contains__(self, tag: object) -> bool:
        return tag in self._loaders

    def is_cached(self, tag: str) -> bool:
        return tag not in self._uncached

    def load(self, context: Any, record: RawList) -> Any:
        """Build the accessor for *record*.

        Raises:
            UnknownAdapter: If the record's tag has no loader.
        """
        tag = record[0]
        loader = self._loaders.get(tag)
        if loader is None:
            raise UnknownAdapter(f"No adapter registered for tag {tag!r}")
        return loader(context, record)

    def copy(self) -> AdapterRegistry:
        clone = AdapterRegistry()
        clone._loaders = dict(self._loaders)
        clone._uncached = set(self._uncached)
        return clone


class Adapter(Observed):
    """Accessor object built in front of an adapter record.

    ``self.value`` is the observed payload, so every mutation an adapter
    makes travels the normal write path.
    """

    tag: str = ""

    def __init__(self, context: Any, record: RawList) -> None:
        super().__init__(context, record)
        self.value = context.create_value(join(record.home, 1), record[1])

    @classmethod
    def register(cls, tag: str, registry: AdapterRegistry | None = None) -> None:
        """Register this class as the loader for *tag*."""
        cls.tag = tag
        (registry or default_registry).register(tag, cls)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._home!r}>"


default_registry = AdapterRegistry()
default_registry.register(REF_TAG, load_ref, cache=False)
