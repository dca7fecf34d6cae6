"""SnapshotEngine for freezing ancestor chains against a context entity."""

from typing import Any

import structlog

from ancestry.contracts.events import SnapshotCleared, SnapshotCreated
from ancestry.contracts.records import AncestorSnapshot
from ancestry.contracts.refs import EntityRef, HierarchyType, KeyValue, normalize_type
from ancestry.core._helpers import now
from ancestry.core.config import AncestrySettings
from ancestry.core.events import EventBusProtocol, NullEventBus
from ancestry.core.hierarchy import HierarchyEngine
from ancestry.core.registry import ModelRegistry
from ancestry.core.store.database import AncestryDB
from ancestry.core.store.repositories import AncestorSnapshotRepository, ClosurePathRepository
from ancestry.core.store.snapshots import SnapshotStore

logger = structlog.get_logger(__name__)


class SnapshotEngine:
    """Captures and reads point-in-time ancestor chains.

    A snapshot for (context, type) is the node's chain at capture time:
    depth 0 is the node itself, depth 1 its parent, and so on. Snapshot
    rows are never touched by hierarchy mutations; only a new capture for
    the same (context, type) or an explicit clear changes them.
    """

    def __init__(
        self,
        db: AncestryDB,
        settings: AncestrySettings,
        hierarchy: HierarchyEngine,
        *,
        registry: ModelRegistry | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            db: Database holding the snapshot table
            settings: Engine configuration
            hierarchy: Engine whose closure table supplies the chains
            registry: Entity reference resolver (the hierarchy's when omitted)
            event_bus: Event delivery (NullEventBus when omitted)
        """
        self._db = db
        self._settings = settings
        self._hierarchy = hierarchy
        self._registry = registry if registry is not None else hierarchy.registry
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._store = SnapshotStore(db.schema.snapshots)
        self._snapshots = AncestorSnapshotRepository(self._registry)
        self._paths = ClosurePathRepository(self._registry)

    def _type(self, hierarchy_type: HierarchyType) -> str:
        return normalize_type(hierarchy_type, self._settings.types)

    def _emit(self, event: object) -> None:
        if self._settings.events.enabled:
            self._events.emit(event)

    def snapshot_ancestry(self, context: Any, node: Any, hierarchy_type: HierarchyType) -> list[AncestorSnapshot]:
        """Replace the (context, type) snapshot with node's current chain.

        The chain is read and the old rows replaced in one transaction, so
        the capture is consistent with a single state of the closure table.
        A node outside the hierarchy yields an empty capture.

        Returns:
            The snapshot rows written, ascending by depth ([] when disabled)
        """
        if not self._settings.snapshots.enabled:
            return []

        type_value = self._type(hierarchy_type)
        context_ref = self._registry.ref_for(context)
        node_ref = self._registry.ref_for(node)
        created_at = now()

        with self._db.connection() as conn:
            rows = self._hierarchy.store.ancestor_rows(conn, node_ref, type_value)
            # Re-index from the ordered chain rather than trusting stored depths.
            chain = [self._paths.ancestor_ref(row) for row in rows]
            replaced = self._store.delete_for(conn, context_ref, type_value)
            self._store.insert_snapshots(conn, context_ref, type_value, chain, created_at)

        snapshots = [
            AncestorSnapshot(
                context=context_ref,
                type=type_value,
                depth=depth,
                ancestor_key=ancestor.key,
                ancestor_type=ancestor.type_tag,
                created_at=created_at,
            )
            for depth, ancestor in enumerate(chain)
        ]
        logger.debug(
            "snapshot_created",
            type=type_value,
            context=str(context_ref),
            node=str(node_ref),
            count=len(snapshots),
            replaced=replaced,
        )
        self._emit(
            SnapshotCreated(context=context_ref, type=type_value, count=len(snapshots), snapshots=tuple(snapshots))
        )
        return snapshots

    def get_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> list[AncestorSnapshot]:
        """All snapshot rows for (context, type), ascending by depth."""
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            rows = self._store.select_for(conn, self._registry.ref_for(context), type_value)
        return [self._snapshots.load(row) for row in rows]

    def has_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> bool:
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            return self._store.exists_for(conn, self._registry.ref_for(context), type_value)

    def clear_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> int:
        """Delete the (context, type) snapshot.

        Returns:
            Number of rows deleted
        """
        type_value = self._type(hierarchy_type)
        context_ref = self._registry.ref_for(context)
        with self._db.connection() as conn:
            count = self._store.count_for(conn, context_ref, type_value)
            if count:
                self._store.delete_for(conn, context_ref, type_value)

        if count > 0:
            logger.debug("snapshot_cleared", type=type_value, context=str(context_ref), count=count)
            self._emit(SnapshotCleared(context=context_ref, type=type_value, count=count))
        return count

    def get_ancestry_snapshot_at_depth(
        self,
        context: Any,
        hierarchy_type: HierarchyType,
        depth: int,
    ) -> AncestorSnapshot | None:
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            row = self._store.select_at_depth(conn, self._registry.ref_for(context), type_value, depth)
        return None if row is None else self._snapshots.load(row)

    def get_direct_ancestry_snapshot(self, context: Any, hierarchy_type: HierarchyType) -> AncestorSnapshot | None:
        """The depth-0 entry: the node the snapshot was taken of."""
        return self.get_ancestry_snapshot_at_depth(context, hierarchy_type, 0)

    def get_ancestry_snapshot_ancestor_keys(self, context: Any, hierarchy_type: HierarchyType) -> list[KeyValue]:
        return [snapshot.ancestor_key for snapshot in self.get_ancestry_snapshots(context, hierarchy_type)]

    def get_ancestry_snapshot_refs(self, context: Any, hierarchy_type: HierarchyType) -> list[EntityRef]:
        return [snapshot.ancestor for snapshot in self.get_ancestry_snapshots(context, hierarchy_type)]

    def export_ancestry_snapshots(self, context: Any, hierarchy_type: HierarchyType) -> list[dict[str, Any]]:
        """Plain-dict export of the snapshot, ascending by depth."""
        return [snapshot.to_dict() for snapshot in self.get_ancestry_snapshots(context, hierarchy_type)]
