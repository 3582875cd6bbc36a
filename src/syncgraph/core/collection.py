"""Collection: an auto-incrementing keyed map over synchronized storage.

On the wire a collection is ``["collection", {"nextId": n, "0": ..., "1": ...}]``.
``nextId`` is always greater than every id present.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from syncgraph.core.adapters import Adapter
from syncgraph.core.nodes import Observed

COLLECTION_TAG = "collection"
NEXT_ID = "nextId"


class Collection(Adapter):
    """Accessor for a collection record."""

    @staticmethod
    def create() -> list:
        """Return an empty collection, ready to be assigned into the tree."""
        return [COLLECTION_TAG, {NEXT_ID: 0}]

    @property
    def next_id(self) -> int:
        return self.value[NEXT_ID]

    def get(self, id: int) -> Any:
        """Return the entry with *id*, or ``None``."""
        return self.value.get(str(id))

    def array(self) -> list:
        """Return every entry, in no particular order."""
        return [self.value[key] for key in self.value if key != NEXT_ID]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.array())

    def __len__(self) -> int:
        return sum(1 for key in self.value if key != NEXT_ID)

    def __contains__(self, id: object) -> bool:
        return str(id) != NEXT_ID and str(id) in self.value

    def insert(self, value: Any) -> Any:
        """Insert *value* and return the stored entry.

        An integer ``id`` already on *value* is kept and ``nextId`` moves past
        it; otherwise ``nextId`` is allocated and written into the entry.
        A tracked node is stored by reference, so later changes made through
        its original path show up in the collection.

        Raises:
            ValueError: If *value* is not an object or carries a non-integer id.
        """
        if not isinstance(value, Mapping):
            raise ValueError("Collection entries must be objects")

        if "id" in value:
            entry_id = value["id"]
            if not isinstance(entry_id, int) or isinstance(entry_id, bool):
                raise ValueError(f"Invalid collection id: {entry_id!r}")
            if entry_id >= self.next_id:
                self.value[NEXT_ID] = entry_id + 1
        else:
            entry_id = self.next_id
            self.value[NEXT_ID] = entry_id + 1
            if isinstance(value, Observed):
                value["id"] = entry_id
            else:
                value = {"id": entry_id, **value}

        self.value[str(entry_id)] = value
        return self.get(entry_id)

    def remove(self, id: int) -> None:
        """Delete the entry with *id*.

        Raises:
            KeyError: If no such entry exists.
        """
        del self.value[str(id)]


Collection.register(COLLECTION_TAG)
