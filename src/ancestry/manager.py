# src/ancestry/manager.py
"""AncestryManager: single entry point over the hierarchy and snapshot engines.

The manager owns no logic of its own. It wires one HierarchyEngine and one
SnapshotEngine to a shared database, registry and event bus, forwards
every operation to them unchanged, and hands out fluent conductors.

    settings = load_settings(Path("ancestry.yaml"))
    manager = AncestryManager.from_settings(settings)
    manager.registry.register(User, "user", key_type=int, loader=users.get)

    manager.for_(cto).type("org").attach_to(ceo)
    manager.of_type("org").roots()
"""

from __future__ import annotations

from typing import Any, Self

from ancestry.conductors import ForModelConductor, TypeConductor
from ancestry.contracts.records import AncestorSnapshot, ClosurePath, TreeNode
from ancestry.contracts.refs import EntityRef, HierarchyType, KeyValue
from ancestry.core.config import AncestrySettings
from ancestry.core.events import EventBusProtocol
from ancestry.core.hierarchy import HierarchyEngine
from ancestry.core.registry import ModelRegistry
from ancestry.core.snapshot import SnapshotEngine
from ancestry.core.store.database import AncestryDB


class AncestryManager:
    """Facade over HierarchyEngine and SnapshotEngine."""

    def __init__(
        self,
        db: AncestryDB,
        settings: AncestrySettings | None = None,
        *,
        registry: ModelRegistry | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        self._db = db
        self._settings = settings if settings is not None else AncestrySettings()
        self._registry = registry if registry is not None else ModelRegistry()
        self._hierarchy = HierarchyEngine(db, self._settings, registry=self._registry, event_bus=event_bus)
        self._snapshots = SnapshotEngine(
            db,
            self._settings,
            self._hierarchy,
            registry=self._registry,
            event_bus=event_bus,
        )

    @classmethod
    def from_settings(
        cls,
        settings: AncestrySettings,
        *,
        registry: ModelRegistry | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> Self:
        """Build database and registry from settings.

        Raises:
            ConflictingKeyMapsError: If both key_map and enforce_key_map are set
        """
        registry = registry if registry is not None else ModelRegistry()
        registry.configure(settings)
        return cls(AncestryDB.from_settings(settings), settings, registry=registry, event_bus=event_bus)

    @property
    def db(self) -> AncestryDB:
        return self._db

    @property
    def settings(self) -> AncestrySettings:
        return self._settings

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    @property
    def hierarchy(self) -> HierarchyEngine:
        return self._hierarchy

    @property
    def snapshots(self) -> SnapshotEngine:
        return self._snapshots

    def close(self) -> None:
        self._db.close()

    # === Conductors ===

    def for_(self, entity: Any, hierarchy_type: HierarchyType | None = None) -> ForModelConductor:
        """Fluent operations scoped to one entity."""
        return ForModelConductor(self, entity, hierarchy_type)

    def of_type(self, hierarchy_type: HierarchyType) -> TypeConductor:
        """Fluent operations scoped to one hierarchy type."""
        return TypeConductor(self, hierarchy_type)

    # === Hierarchy ===

    def add_to_ancestry(self, node: Any, hierarchy_type: HierarchyType, parent: Any | None = None) -> None:
        self._hierarchy.add_to_ancestry(node, hierarchy_type, parent)

    def attach_to_parent(self, node: Any, parent: Any, hierarchy_type: HierarchyType) -> None:
        self._hierarchy.attach_to_parent(node, parent, hierarchy_type)

    def detach_from_parent(self, node: Any, hierarchy_type: HierarchyType) -> None:
        self._hierarchy.detach_from_parent(node, hierarchy_type)

    def remove_from_ancestry(self, node: Any, hierarchy_type: HierarchyType) -> None:
        self._hierarchy.remove_from_ancestry(node, hierarchy_type)

    def move_to_parent(self, node: Any, new_parent: Any | None, hierarchy_type: HierarchyType) -> None:
        self._hierarchy.move_to_parent(node, new_parent, hierarchy_type)

    def get_ancestors(
        self,
        node: Any,
        hierarchy_type: HierarchyType,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> list[Any]:
        return self._hierarchy.get_ancestors(node, hierarchy_type, include_self, max_depth)

    def get_descendants(
        self,
        node: Any,
        hierarchy_type: HierarchyType,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> list[Any]:
        return self._hierarchy.get_descendants(node, hierarchy_type, include_self, max_depth)

    def get_direct_parent(self, node: Any, hierarchy_type: HierarchyType) -> Any | None:
        return self._hierarchy.get_direct_parent(node, hierarchy_type)

    def get_direct_children(self, node: Any, hierarchy_type: HierarchyType) -> list[Any]:
        return self._hierarchy.get_direct_children(node, hierarchy_type)

    def get_depth(self, node: Any, hierarchy_type: HierarchyType) -> int:
        return self._hierarchy.get_depth(node, hierarchy_type)

    def is_ancestor_of(self, ancestor: Any, descendant: Any, hierarchy_type: HierarchyType) -> bool:
        return self._hierarchy.is_ancestor_of(ancestor, descendant, hierarchy_type)

    def is_descendant_of(self, descendant: Any, ancestor: Any, hierarchy_type: HierarchyType) -> bool:
        return self._hierarchy.is_descendant_of(descendant, ancestor, hierarchy_type)

    def is_root(self, node: Any, hierarchy_type: HierarchyType) -> bool:
        return self._hierarchy.is_root(node, hierarchy_type)

    def is_leaf(self, node: Any, hierarchy_type: HierarchyType) -> bool:
        return self._hierarchy.is_leaf(node, hierarchy_type)

    def is_in_ancestry(self, node: Any, hierarchy_type: HierarchyType) -> bool:
        return self._hierarchy.is_in_ancestry(node, hierarchy_type)

    def get_siblings(self, node: Any, hierarchy_type: HierarchyType, include_self: bool = False) -> list[Any]:
        return self._hierarchy.get_siblings(node, hierarchy_type, include_self)

    def get_roots(self, node: Any, hierarchy_type: HierarchyType) -> list[Any]:
        return self._hierarchy.get_roots(node, hierarchy_type)

    def get_root_nodes(self, hierarchy_type: HierarchyType) -> list[Any]:
        return self._hierarchy.get_root_nodes(hierarchy_type)

    def get_path(self, node: Any, hierarchy_type: HierarchyType) -> list[Any]:
        return self._hierarchy.get_path(node, hierarchy_type)

    def get_paths(self, hierarchy_type: HierarchyType) -> list[ClosurePath]:
        return self._hierarchy.get_paths(hierarchy_type)

    def build_tree(self, node: Any, hierarchy_type: HierarchyType) -> TreeNode:
        return self._hierarchy.build_tree(node, hierarchy_type)

    # === Snapshots ===

    def snapshot_ancestry(self, context: Any, node: Any, hierarchy_type: HierarchyType) -> list[AncestorSnapshot]:
        return self._snapshots.snapshot_ancestry(context, node, hierarchy_type)

    def get_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> list[AncestorSnapshot]:
        return self._snapshots.get_ancestry_snapshots(context, hierarchy_type)

    def has_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> bool:
        return self._snapshots.has_ancestry_snapshots(context, hierarchy_type)

    def clear_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> int:
        return self._snapshots.clear_ancestry_snapshots(context, hierarchy_type)

    def get_ancestry_snapshot_at_depth(
        self,
        context: Any,
        hierarchy_type: HierarchyType,
        depth: int,
    ) -> AncestorSnapshot | None:
        return self._snapshots.get_ancestry_snapshot_at_depth(context, hierarchy_type, depth)

    def get_direct_ancestry_snapshot(self, context: Any, hierarchy_type: HierarchyType) -> AncestorSnapshot | None:
        return self._snapshots.get_direct_ancestry_snapshot(context, hierarchy_type)

    def get_ancestry_snapshot_ancestor_keys(self, context: Any, hierarchy_type: HierarchyType) -> list[KeyValue]:
        return self._snapshots.get_ancestry_snapshot_ancestor_keys(context, hierarchy_type)

    def get_ancestry_snapshot_refs(self, context: Any, hierarchy_type: HierarchyType) -> list[EntityRef]:
        return self._snapshots.get_ancestry_snapshot_refs(context, hierarchy_type)

    def export_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> list[dict[str, Any]]:
        return self._snapshots.export_ancestry_snapshots(context, hierarchy_type)
