"""Tests for reference records and the adapter registry."""

from __future__ import annotations

import pytest

from syncgraph.core.adapters import (
    Adapter,
    AdapterRegistry,
    default_registry,
    is_record,
    make_ref,
)
from syncgraph.core.errors import DuplicateAdapter, PathNotFound, UnknownAdapter
from syncgraph.core.nodes import ObservedList
from syncgraph.engine.memory import create_memory_engine


class Counter(Adapter):
    """Test adapter: a counter stored as ``["counter", {"n": int}]``."""

    def increment(self) -> int:
        self.value["n"] = self.value.get("n", 0) + 1
        return self.value["n"]


@pytest.fixture()
def registry() -> AdapterRegistry:
    registry = default_registry.copy()
    Counter.register("counter", registry)
    return registry


class TestIsRecord:
    @pytest.mark.parametrize(
        "value",
        [
            ["ref", "/a"],
            ["ref", ""],
            ["collection", {"nextId": 0}],
            ["anything", {}],
        ],
    )
    def test_records(self, value: list) -> None:
        assert is_record(value)

    @pytest.mark.parametrize(
        "value",
        [
            ["a", "b"],
            ["ref", 1],
            [1, {}],
            ["ref", "/a", "extra"],
            [],
            {"ref": "/a"},
            "ref",
        ],
    )
    def test_not_records(self, value: object) -> None:
        assert not is_record(value)

    def test_plain_pair_stays_a_list(self) -> None:
        data = create_memory_engine({"pair": ["a", "b"]})
        assert isinstance(data.pair, ObservedList)
        assert data.pair == ["a", "b"]


class TestRegistry:
    def test_default_tags(self) -> None:
        assert "ref" in default_registry
        assert "collection" in default_registry

    def test_duplicate_tag(self) -> None:
        registry = default_registry.copy()
        with pytest.raises(DuplicateAdapter, match="collection"):
            registry.register("collection", lambda context, record: None)

    def test_copy_is_independent(self, registry: AdapterRegistry) -> None:
        assert "counter" in registry
        assert "counter" not in default_registry

    def test_unknown_tag(self) -> None:
        data = create_memory_engine({"thing": ["mystery", {}]})
        with pytest.raises(UnknownAdapter, match="mystery"):
            data.thing  # noqa: B018

    def test_unknown_adapter_is_lookup_error(self) -> None:
        assert issubclass(UnknownAdapter, LookupError)

    def test_custom_adapter(self, registry: AdapterRegistry) -> None:
        data = create_memory_engine({"c": ["counter", {"n": 0}]}, registry=registry)
        counter = data.c
        assert isinstance(counter, Counter)
        assert counter.increment() == 1
        assert counter.increment() == 2
        assert data.c is counter
        assert data._context.root["c"] == ["counter", {"n": 2}]

    def test_adapter_created_by_assignment(self, registry: AdapterRegistry) -> None:
        data = create_memory_engine(registry=registry)
        data.c = ["counter", {}]
        assert data.c.increment() == 1


class TestRefs:
    def test_make_ref(self) -> None:
        data = create_memory_engine({"a": {"v": 1}})
        assert make_ref(data.a) == ["ref", "/a"]
        assert make_ref(data) == ["ref", ""]

    def test_make_ref_untracked(self) -> None:
        with pytest.raises(ValueError, match="not part of a synchronized tree"):
            make_ref({"v": 1})

    def test_stored_ref_resolves_to_target(self) -> None:
        data = create_memory_engine({"a": {"v": 1}})
        data.b = make_ref(data.a)
        assert data.b is data.a

    def test_assigning_node_stores_ref(self) -> None:
        data = create_memory_engine({"a": {"v": 1}})
        data.b = data.a
        assert data._context.root["b"] == ["ref", "/a"]

    def test_ref_follows_replacement(self) -> None:
        data = create_memory_engine({"a": {"v": 1}})
        data.b = data.a
        data.a = {"v": 9}
        assert data.b.v == 9

    def test_ref_to_scalar(self) -> None:
        data = create_memory_engine({"x": 5, "r": ["ref", "/x"]})
        assert data.r == 5

    def test_dangling_ref(self) -> None:
        data = create_memory_engine({"r": ["ref", "/gone"]})
        with pytest.raises(PathNotFound):
            data.r  # noqa: B018

    def test_self_reference(self) -> None:
        data = create_memory_engine()
        data.self = data
        assert data.self is data
        assert data.self.self.self is data

    def test_plain_cycle_is_stored_as_ref(self) -> None:
        data = create_memory_engine()
        node: dict = {"name": "loop"}
        node["me"] = node
        data.n = node
        assert data._context.root["n"]["me"] == ["ref", "/n"]
        assert data.n.me is data.n

    def test_shared_plain_subobject(self) -> None:
        data = create_memory_engine()
        shared = {"v": 1}
        data.pair = {"left": shared, "right": shared}
        assert data.pair.right is data.pair.left
        data.pair.right.v = 2
        assert data.pair.left.v == 2

    def test_detached_node_is_copied(self) -> None:
        data = create_memory_engine({"a": {"v": 1}})
        node = data.a
        del data.a
        data.b = node
        assert data._context.root["b"] == {"v": 1}
        assert data.b.v == 1
