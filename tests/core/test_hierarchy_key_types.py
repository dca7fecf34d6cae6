"""Hierarchy behaviour when native keys differ from their stored form.

Keys are stored as strings. Entities whose key type decodes back to a
different Python value (unregistered classes, str-keyed adapters, key-mapped
attributes) must still compare equal to the refs read from the table.
"""

from dataclasses import dataclass

import pytest
from structlog.testing import capture_logs

from ancestry.contracts.errors import CircularReferenceError
from ancestry.core.config import AncestrySettings
from ancestry.core.hierarchy import HierarchyEngine
from ancestry.core.registry import ModelRegistry
from ancestry.core.snapshot import SnapshotEngine
from ancestry.core.store.database import AncestryDB
from tests.fixtures.entities import Order, User, path_tuples


@dataclass(frozen=True)
class Node:
    id: int
    code: int = 0


def _default_key_type() -> ModelRegistry:
    registry = ModelRegistry()
    registry.register(Node, "node")
    return registry


def _unregistered() -> ModelRegistry:
    return ModelRegistry()


def _key_mapped() -> ModelRegistry:
    registry = ModelRegistry()
    registry.register(Node, "node", key_type=int)
    registry.key_map({"node": "code"})
    return registry


@pytest.fixture(
    params=[_default_key_type, _unregistered, _key_mapped],
    ids=["default_key_type", "unregistered", "key_mapped"],
)
def node_registry(request: pytest.FixtureRequest) -> ModelRegistry:
    registry: ModelRegistry = request.param()
    return registry


@pytest.fixture
def node_engine(db: AncestryDB, node_registry: ModelRegistry) -> HierarchyEngine:
    return HierarchyEngine(db, AncestrySettings(), registry=node_registry)


def _nodes(count: int) -> list[Node]:
    return [Node(id=i, code=100 + i) for i in range(1, count + 1)]


class TestCycleRejection:
    def test_attach_ancestor_under_descendant(self, node_engine: HierarchyEngine) -> None:
        a, b, c = _nodes(3)
        node_engine.add_to_ancestry(b, "tree", parent=a)
        node_engine.add_to_ancestry(c, "tree", parent=b)
        before = path_tuples(node_engine, "tree")

        with pytest.raises(CircularReferenceError):
            node_engine.attach_to_parent(a, c, "tree")

        assert path_tuples(node_engine, "tree") == before

    def test_move_ancestor_under_descendant(self, node_engine: HierarchyEngine) -> None:
        a, b = _nodes(2)
        node_engine.add_to_ancestry(b, "tree", parent=a)
        before = path_tuples(node_engine, "tree")

        with pytest.raises(CircularReferenceError):
            node_engine.move_to_parent(a, b, "tree")

        assert path_tuples(node_engine, "tree") == before

    def test_attach_to_self(self, node_engine: HierarchyEngine) -> None:
        (a,) = _nodes(1)
        node_engine.add_to_ancestry(a, "tree")

        with pytest.raises(CircularReferenceError):
            node_engine.attach_to_parent(a, a, "tree")

    def test_non_strict_skips_and_logs(self, db: AncestryDB, node_registry: ModelRegistry) -> None:
        engine = HierarchyEngine(db, AncestrySettings(strict=False), registry=node_registry)
        a, b = _nodes(2)
        engine.add_to_ancestry(b, "tree", parent=a)
        before = path_tuples(engine, "tree")

        with capture_logs() as logs:
            engine.attach_to_parent(a, b, "tree")

        assert path_tuples(engine, "tree") == before
        assert [entry["event"] for entry in logs if entry["log_level"] == "warning"] == ["hierarchy_validation_skipped"]


class TestRefComparisons:
    def test_root_siblings_exclude_self(self, node_engine: HierarchyEngine, node_registry: ModelRegistry) -> None:
        a, b = _nodes(2)
        node_engine.add_to_ancestry(a, "tree")
        node_engine.add_to_ancestry(b, "tree")

        assert node_engine.get_siblings(a, "tree") == [node_registry.ref_for(b)]
        assert len(node_engine.get_siblings(a, "tree", include_self=True)) == 2

    def test_child_siblings_exclude_self(self, node_engine: HierarchyEngine, node_registry: ModelRegistry) -> None:
        a, b, c = _nodes(3)
        node_engine.add_to_ancestry(b, "tree", parent=a)
        node_engine.add_to_ancestry(c, "tree", parent=a)

        assert node_engine.get_siblings(b, "tree") == [node_registry.ref_for(c)]

    def test_queries_return_canonical_refs(self, node_engine: HierarchyEngine, node_registry: ModelRegistry) -> None:
        a, b, c = _nodes(3)
        node_engine.add_to_ancestry(b, "tree", parent=a)
        node_engine.add_to_ancestry(c, "tree", parent=b)
        ref_a, ref_b, ref_c = (node_registry.ref_for(n) for n in (a, b, c))

        assert node_engine.get_path(c, "tree") == [ref_a, ref_b, ref_c]
        assert node_engine.get_direct_parent(c, "tree") == ref_b
        assert node_engine.get_roots(c, "tree") == [ref_a]
        assert node_engine.is_ancestor_of(a, c, "tree")

    def test_tree_has_each_node_once(self, node_engine: HierarchyEngine, node_registry: ModelRegistry) -> None:
        a, b, c = _nodes(3)
        node_engine.add_to_ancestry(b, "tree", parent=a)
        node_engine.add_to_ancestry(c, "tree", parent=b)

        tree = node_engine.build_tree(a, "tree")

        assert tree.entity == node_registry.ref_for(a)
        assert [child.entity for child in tree.children] == [node_registry.ref_for(b)]
        assert [child.entity for child in tree.children[0].children] == [node_registry.ref_for(c)]


class TestTypedAdapterWithKeyMap:
    """An int-keyed adapter whose key map points at a string attribute."""

    @pytest.fixture
    def mapped_registry(self) -> ModelRegistry:
        registry = ModelRegistry()
        registry.register(User, "user", key_type=int)
        registry.register(Order, "order")
        registry.key_map({"user": "name"})
        return registry

    def test_attach_and_query(self, db: AncestryDB, mapped_registry: ModelRegistry) -> None:
        engine = HierarchyEngine(db, AncestrySettings(), registry=mapped_registry)
        alice, bob = User(id=1, name="alice"), User(id=2, name="bob")

        engine.add_to_ancestry(alice, "org")
        engine.add_to_ancestry(bob, "org", parent=alice)

        assert engine.get_path(bob, "org") == [mapped_registry.ref_for(alice), mapped_registry.ref_for(bob)]
        with pytest.raises(CircularReferenceError):
            engine.attach_to_parent(alice, bob, "org")

    def test_snapshot_keys_use_mapped_attribute(self, db: AncestryDB, mapped_registry: ModelRegistry) -> None:
        engine = HierarchyEngine(db, AncestrySettings(), registry=mapped_registry)
        snapshots = SnapshotEngine(db, AncestrySettings(), engine)
        alice, bob = User(id=1, name="alice"), User(id=2, name="bob")
        order = Order(id="ord-1")
        engine.add_to_ancestry(bob, "org", parent=alice)

        snapshots.snapshot_ancestry(order, bob, "org")

        assert snapshots.get_ancestry_snapshot_ancestor_keys(order, "org") == ["bob", "alice"]
