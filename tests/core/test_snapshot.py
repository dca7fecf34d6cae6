"""Tests for SnapshotEngine."""

from collections.abc import Callable
from typing import Any

import pytest

from ancestry.contracts.events import SnapshotCleared, SnapshotCreated
from ancestry.contracts.refs import EntityRef
from ancestry.core.config import AncestrySettings, EventSettings, SnapshotSettings
from ancestry.core.events import EventBus
from ancestry.core.hierarchy import HierarchyEngine
from ancestry.core.registry import ModelRegistry
from ancestry.core.snapshot import SnapshotEngine
from ancestry.core.store.database import AncestryDB
from tests.fixtures.entities import Order, User

UserFactory = Callable[..., User]
OrderFactory = Callable[..., Order]
ChainFactory = Callable[..., list[User]]


class TestSnapshotAncestry:
    def test_captures_self_and_ancestors(
        self,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
    ) -> None:
        grandparent, parent, seller = create_chain(3)
        order = make_order()

        created = snapshot_engine.snapshot_ancestry(order, seller, "org")

        assert [s.depth for s in created] == [0, 1, 2]
        assert [s.ancestor_key for s in created] == [seller.id, parent.id, grandparent.id]
        assert all(s.context == EntityRef("order", order.id) for s in created)
        assert all(s.ancestor_type == "user" for s in created)

    def test_round_trip_ordering(
        self,
        engine: HierarchyEngine,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
    ) -> None:
        chain = create_chain(5)
        order = make_order()
        depth_at_capture = engine.get_depth(chain[-1], "org")

        snapshot_engine.snapshot_ancestry(order, chain[-1], "org")
        stored = snapshot_engine.get_ancestry_snapshots(order, "org")

        assert [s.depth for s in stored] == list(range(depth_at_capture + 1))
        assert [s.ancestor for s in stored] == [EntityRef("user", u.id) for u in reversed(chain)]

    def test_immutable_after_move(
        self,
        engine: HierarchyEngine,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_user: UserFactory,
        make_order: OrderFactory,
    ) -> None:
        original_parent, child = create_chain(2)
        new_parent = make_user()
        order = make_order()
        snapshot_engine.snapshot_ancestry(order, child, "org")

        engine.move_to_parent(child, new_parent, "org")
        engine.remove_from_ancestry(original_parent, "org")

        keys = snapshot_engine.get_ancestry_snapshot_ancestor_keys(order, "org")
        assert keys == [child.id, original_parent.id]

    def test_replace_not_accumulate(
        self,
        engine: HierarchyEngine,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
    ) -> None:
        u1, u2, u3 = create_chain(3)
        order = make_order()
        snapshot_engine.snapshot_ancestry(order, u3, "org")

        engine.detach_from_parent(u2, "org")
        snapshot_engine.snapshot_ancestry(order, u3, "org")

        stored = snapshot_engine.get_ancestry_snapshots(order, "org")
        assert [s.ancestor_key for s in stored] == [u3.id, u2.id]

    def test_keyed_by_context_and_type(
        self,
        engine: HierarchyEngine,
        snapshot_engine: SnapshotEngine,
        make_user: UserFactory,
        make_order: OrderFactory,
    ) -> None:
        boss, seller = make_user(), make_user()
        engine.add_to_ancestry(seller, "org", parent=boss)
        engine.add_to_ancestry(seller, "geo")
        first, second = make_order(), make_order()

        snapshot_engine.snapshot_ancestry(first, seller, "org")
        snapshot_engine.snapshot_ancestry(first, seller, "geo")
        snapshot_engine.snapshot_ancestry(second, boss, "org")

        assert len(snapshot_engine.get_ancestry_snapshots(first, "org")) == 2
        assert len(snapshot_engine.get_ancestry_snapshots(first, "geo")) == 1
        assert len(snapshot_engine.get_ancestry_snapshots(second, "org")) == 1

    def test_absent_node_captures_nothing(
        self,
        snapshot_engine: SnapshotEngine,
        make_user: UserFactory,
        make_order: OrderFactory,
    ) -> None:
        order = make_order()

        assert snapshot_engine.snapshot_ancestry(order, make_user(), "org") == []
        assert not snapshot_engine.has_ancestry_snapshots(order, "org")

    def test_emits_created_event(
        self,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
        events: list[Any],
    ) -> None:
        _, seller = create_chain(2)
        order = make_order()
        events.clear()

        created = snapshot_engine.snapshot_ancestry(order, seller, "org")

        assert events == [SnapshotCreated(context=EntityRef("order", order.id), type="org", count=2, snapshots=tuple(created))]


class TestSnapshotDisabled:
    def test_noop_when_disabled(
        self,
        db: AncestryDB,
        engine: HierarchyEngine,
        registry: ModelRegistry,
        event_bus: EventBus,
        create_chain: ChainFactory,
        make_order: OrderFactory,
        events: list[Any],
    ) -> None:
        settings = AncestrySettings(snapshots=SnapshotSettings(enabled=False))
        disabled = SnapshotEngine(db, settings, engine, registry=registry, event_bus=event_bus)
        _, seller = create_chain(2)
        order = make_order()
        events.clear()

        assert disabled.snapshot_ancestry(order, seller, "org") == []
        assert not disabled.has_ancestry_snapshots(order, "org")
        assert events == []

    def test_events_disabled_still_captures(
        self,
        db: AncestryDB,
        engine: HierarchyEngine,
        registry: ModelRegistry,
        event_bus: EventBus,
        create_chain: ChainFactory,
        make_order: OrderFactory,
        events: list[Any],
    ) -> None:
        settings = AncestrySettings(events=EventSettings(enabled=False))
        quiet = SnapshotEngine(db, settings, engine, registry=registry, event_bus=event_bus)
        _, seller = create_chain(2)
        order = make_order()
        events.clear()

        quiet.snapshot_ancestry(order, seller, "org")
        quiet.clear_ancestry_snapshots(order, "org")

        assert events == []


class TestClearSnapshots:
    def test_clear_returns_count(
        self,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
    ) -> None:
        _, _, seller = create_chain(3)
        order = make_order()
        snapshot_engine.snapshot_ancestry(order, seller, "org")

        assert snapshot_engine.clear_ancestry_snapshots(order, "org") == 3
        assert not snapshot_engine.has_ancestry_snapshots(order, "org")

    def test_clear_emits_pre_deletion_count(
        self,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
        events: list[Any],
    ) -> None:
        _, seller = create_chain(2)
        order = make_order()
        snapshot_engine.snapshot_ancestry(order, seller, "org")
        events.clear()

        snapshot_engine.clear_ancestry_snapshots(order, "org")

        assert events == [SnapshotCleared(context=EntityRef("order", order.id), type="org", count=2)]

    def test_clear_nothing_emits_nothing(
        self,
        snapshot_engine: SnapshotEngine,
        make_order: OrderFactory,
        events: list[Any],
    ) -> None:
        assert snapshot_engine.clear_ancestry_snapshots(make_order(), "org") == 0
        assert events == []

    def test_clear_leaves_other_types(
        self,
        engine: HierarchyEngine,
        snapshot_engine: SnapshotEngine,
        make_user: UserFactory,
        make_order: OrderFactory,
    ) -> None:
        seller = make_user()
        engine.add_to_ancestry(seller, "org")
        engine.add_to_ancestry(seller, "geo")
        order = make_order()
        snapshot_engine.snapshot_ancestry(order, seller, "org")
        snapshot_engine.snapshot_ancestry(order, seller, "geo")

        snapshot_engine.clear_ancestry_snapshots(order, "org")

        assert snapshot_engine.has_ancestry_snapshots(order, "geo")


class TestSnapshotLookups:
    @pytest.fixture
    def captured(
        self,
        snapshot_engine: SnapshotEngine,
        create_chain: ChainFactory,
        make_order: OrderFactory,
    ) -> tuple[Order, list[User]]:
        chain = create_chain(3)
        order = make_order()
        snapshot_engine.snapshot_ancestry(order, chain[-1], "org")
        return order, chain

    def test_at_depth(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, chain = captured

        snapshot = snapshot_engine.get_ancestry_snapshot_at_depth(order, "org", 1)

        assert snapshot is not None
        assert snapshot.ancestor == EntityRef("user", chain[1].id)

    def test_at_missing_depth(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, _ = captured

        assert snapshot_engine.get_ancestry_snapshot_at_depth(order, "org", 7) is None

    def test_direct_snapshot_is_depth_zero(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, chain = captured

        direct = snapshot_engine.get_direct_ancestry_snapshot(order, "org")

        assert direct is not None
        assert direct.depth == 0
        assert direct.ancestor_key == chain[-1].id

    def test_ancestor_keys_restore_key_type(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, chain = captured

        assert snapshot_engine.get_ancestry_snapshot_ancestor_keys(order, "org") == [3, 2, 1]

    def test_refs(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, _ = captured

        assert snapshot_engine.get_ancestry_snapshot_refs(order, "org") == [EntityRef("user", k) for k in (3, 2, 1)]

    def test_export(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, _ = captured

        assert snapshot_engine.export_ancestry_snapshots(order, "org") == [
            {"ancestor_id": 3, "ancestor_type": "user", "depth": 0, "type": "org"},
            {"ancestor_id": 2, "ancestor_type": "user", "depth": 1, "type": "org"},
            {"ancestor_id": 1, "ancestor_type": "user", "depth": 2, "type": "org"},
        ]

    def test_loaded_rows_carry_timestamp(self, snapshot_engine: SnapshotEngine, captured: tuple[Order, list[User]]) -> None:
        order, _ = captured

        assert all(s.created_at is not None for s in snapshot_engine.get_ancestry_snapshots(order, "org"))
