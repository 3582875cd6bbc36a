"""Tests for the built-in collection adapter."""

from __future__ import annotations

import pytest

from syncgraph.core.collection import Collection
from syncgraph.engine.memory import create_memory_engine


@pytest.fixture()
def data():
    data = create_memory_engine()
    data.todos = Collection.create()
    return data


class TestCreate:
    def test_create_record(self) -> None:
        assert Collection.create() == ["collection", {"nextId": 0}]

    def test_read_back_as_collection(self, data) -> None:
        todos = data.todos
        assert isinstance(todos, Collection)
        assert todos.next_id == 0
        assert len(todos) == 0
        assert todos.array() == []

    def test_identity(self, data) -> None:
        assert data.todos is data.todos


class TestInsert:
    def test_allocates_ids(self, data) -> None:
        first = data.todos.insert({"title": "a"})
        second = data.todos.insert({"title": "b"})
        assert first.id == 0
        assert second.id == 1
        assert data.todos.next_id == 2

    def test_returns_stored_entry(self, data) -> None:
        entry = data.todos.insert({"title": "a"})
        assert entry is data.todos.get(0)
        entry.title = "changed"
        assert data.todos.get(0).title == "changed"

    def test_does_not_mutate_plain_input(self, data) -> None:
        value = {"title": "a"}
        data.todos.insert(value)
        assert value == {"title": "a"}

    def test_caller_id_advances_next_id(self, data) -> None:
        data.todos.insert({"id": 5, "title": "five"})
        assert data.todos.next_id == 6
        assert data.todos.get(5).title == "five"
        assert data.todos.insert({"title": "six"}).id == 6

    def test_caller_id_below_next_id(self, data) -> None:
        data.todos.insert({"title": "a"})
        data.todos.insert({"title": "b"})
        data.todos.insert({"id": 0, "title": "replaced"})
        assert data.todos.next_id == 2
        assert data.todos.get(0).title == "replaced"

    def test_rejects_non_integer_id(self, data) -> None:
        with pytest.raises(ValueError, match="Invalid collection id"):
            data.todos.insert({"id": "x"})
        with pytest.raises(ValueError, match="Invalid collection id"):
            data.todos.insert({"id": True})

    def test_rejects_non_object(self, data) -> None:
        with pytest.raises(ValueError, match="must be objects"):
            data.todos.insert(5)

    def test_tracked_node_stored_by_reference(self, data) -> None:
        data.item = {"title": "shared"}
        entry = data.todos.insert(data.item)
        assert entry is data.item
        assert data.item.id == 0
        assert data._context.root["todos"][1]["0"] == ["ref", "/item"]

        data.item.title = "renamed"
        assert data.todos.get(0).title == "renamed"


class TestQueries:
    def test_get_missing(self, data) -> None:
        assert data.todos.get(42) is None

    def test_contains(self, data) -> None:
        data.todos.insert({"title": "a"})
        assert 0 in data.todos
        assert 1 not in data.todos
        assert "nextId" not in data.todos

    def test_array_and_iter_skip_next_id(self, data) -> None:
        data.todos.insert({"title": "a"})
        data.todos.insert({"title": "b"})
        assert sorted(entry.title for entry in data.todos.array()) == ["a", "b"]
        assert sorted(entry.id for entry in data.todos) == [0, 1]
        assert len(data.todos) == 2


class TestRemove:
    def test_remove(self, data) -> None:
        data.todos.insert({"title": "a"})
        data.todos.remove(0)
        assert data.todos.get(0) is None
        assert len(data.todos) == 0
        assert data.todos.next_id == 1

    def test_remove_missing(self, data) -> None:
        with pytest.raises(KeyError):
            data.todos.remove(3)


class TestNesting:
    def test_collection_reached_through_ref(self, data) -> None:
        data.alias = data.todos
        assert data.alias is data.todos
        data.alias.insert({"title": "via alias"})
        assert data.todos.get(0).title == "via alias"

    def test_collection_inside_entry(self, data) -> None:
        entry = data.todos.insert({"title": "parent", "children": Collection.create()})
        child = entry.children.insert({"title": "child"})
        assert child.id == 0
        assert data.todos.get(0).children.get(0).title == "child"
