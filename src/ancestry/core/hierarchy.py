# src/ancestry/core/hierarchy.py
"""HierarchyEngine: closure table maintenance and traversal.

Every mutating operation follows the same shape inside ONE transaction:

    1. read everything the operation needs (ancestor chain of the new
       parent, the node's whole subtree, the node's current ancestors)
    2. validate against the state the operation would produce
    3. delete, then bulk insert
    4. commit, then emit the event

Reading before the first delete matters for moves: the detach phase
removes exactly the rows a lazily-computed attach phase would need.

Attaching node N under parent P inserts one row per pair in
chain(P) x subtree(N):

    depth(a, d) = depth_from_parent(a) + 1 + depth_from_node(d)

so N's existing descendants pick up all of P's ancestors in the same
statement that links N itself.

Concurrency: no locks are taken here. Two concurrent calls moving
overlapping subtrees of the same type rely on the database's isolation
level; callers needing strict consistency must serialise mutations per
type themselves.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.engine import Connection

from ancestry.contracts.errors import CircularReferenceError, MaxDepthExceededError
from ancestry.contracts.events import NodeAttached, NodeDetached, NodeMoved, NodeRemoved
from ancestry.contracts.records import ClosurePath, TreeNode
from ancestry.contracts.refs import EntityRef, HierarchyType, normalize_type
from ancestry.core._helpers import now
from ancestry.core.config import AncestrySettings
from ancestry.core.events import EventBusProtocol, NullEventBus
from ancestry.core.registry import ModelRegistry
from ancestry.core.store.closure import ClosureTableStore
from ancestry.core.store.database import AncestryDB
from ancestry.core.store.repositories import ClosurePathRepository

logger = structlog.get_logger(__name__)

# (ref, depth relative to the chain/subtree anchor)
Chain = list[tuple[EntityRef, int]]


@dataclass(frozen=True, slots=True)
class _RelinkPlan:
    """Everything a detach/attach/move needs, read before any write."""

    node: EntityRef
    new_parent: EntityRef | None
    node_present: bool
    parent_present: bool
    previous_parent: EntityRef | None
    strict_ancestors: list[EntityRef]
    subtree: Chain
    parent_chain: Chain

    def new_paths(self) -> list[tuple[EntityRef, EntityRef, int]]:
        return [
            (ancestor, descendant, up + 1 + down)
            for ancestor, up in self.parent_chain
            for descendant, down in self.subtree
        ]


class HierarchyEngine:
    """Closure table hierarchy operations for any number of hierarchy types.

    Example:
        db = AncestryDB.in_memory()
        engine = HierarchyEngine(db, AncestrySettings(max_depth=None))
        engine.add_to_ancestry(ceo, "org")
        engine.add_to_ancestry(cto, "org", parent=ceo)
        engine.get_path(cto, "org")  # [ceo, cto]
    """

    def __init__(
        self,
        db: AncestryDB,
        settings: AncestrySettings | None = None,
        *,
        registry: ModelRegistry | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            db: Database holding the closure table
            settings: Engine configuration (defaults apply when omitted)
            registry: Entity reference resolver (a fresh one when omitted)
            event_bus: Event delivery (NullEventBus when omitted)
        """
        self._db = db
        self._settings = settings if settings is not None else AncestrySettings()
        self._registry = registry if registry is not None else ModelRegistry()
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._store = ClosureTableStore(db.schema.ancestors)
        self._paths = ClosurePathRepository(self._registry)

    @property
    def settings(self) -> AncestrySettings:
        return self._settings

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    @property
    def store(self) -> ClosureTableStore:
        return self._store

    # === Helpers ===

    def _type(self, hierarchy_type: HierarchyType | None) -> str:
        return normalize_type(hierarchy_type, self._settings.types)

    def _ref(self, entity: Any) -> EntityRef:
        return self._registry.ref_for(entity)

    def _emit(self, event: object) -> None:
        if self._settings.events.enabled:
            self._events.emit(event)

    def _entities(self, refs: Sequence[EntityRef]) -> list[Any]:
        """Resolve refs to entities, dropping ones the loader cannot find."""
        resolved = (self._registry.resolve(ref) for ref in refs)
        return [entity for entity in resolved if entity is not None]

    def _chain(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> Chain:
        """Ancestors of ref including itself, with depth from ref."""
        rows = self._store.ancestor_rows(conn, ref, hierarchy_type)
        return [(self._paths.ancestor_ref(row), row.depth) for row in rows]

    def _subtree(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> Chain:
        """Descendants of ref including itself, with depth from ref."""
        rows = self._store.descendant_rows(conn, ref, hierarchy_type)
        return [(self._paths.descendant_ref(row), row.depth) for row in rows]

    def _parent_of(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> EntityRef | None:
        row = self._store.parent_row(conn, ref, hierarchy_type)
        return None if row is None else self._paths.ancestor_ref(row)

    def _plan(
        self,
        conn: Connection,
        node: EntityRef,
        new_parent: EntityRef | None,
        hierarchy_type: str,
    ) -> _RelinkPlan:
        """Read and validate a relink of node under new_parent (None = root).

        Raises:
            CircularReferenceError: If new_parent is node or one of its descendants
            MaxDepthExceededError: If the deepest resulting path exceeds max_depth
        """
        node_present = self._store.has_self_path(conn, node, hierarchy_type)
        if node_present:
            subtree = self._subtree(conn, node, hierarchy_type)
            strict_ancestors = [ref for ref, depth in self._chain(conn, node, hierarchy_type) if depth >= 1]
            previous_parent = self._parent_of(conn, node, hierarchy_type)
        else:
            subtree = [(node, 0)]
            strict_ancestors = []
            previous_parent = None

        parent_present = False
        parent_chain: Chain = []
        if new_parent is not None:
            if new_parent == node or any(ref == new_parent for ref, _ in subtree):
                raise CircularReferenceError(node, new_parent)
            parent_present = self._store.has_self_path(conn, new_parent, hierarchy_type)
            parent_chain = self._chain(conn, new_parent, hierarchy_type) if parent_present else [(new_parent, 0)]

            max_depth = self._settings.max_depth
            if max_depth is not None:
                deepest = max(up for _, up in parent_chain) + 1 + max(down for _, down in subtree)
                if deepest > max_depth:
                    raise MaxDepthExceededError(max_depth, deepest)

        return _RelinkPlan(
            node=node,
            new_parent=new_parent,
            node_present=node_present,
            parent_present=parent_present,
            previous_parent=previous_parent,
            strict_ancestors=strict_ancestors,
            subtree=subtree,
            parent_chain=parent_chain,
        )

    def _apply(self, conn: Connection, plan: _RelinkPlan, hierarchy_type: str) -> None:
        """Write a validated plan: self-paths, upward deletes, cross-product insert."""
        timestamp = now()
        self_paths = []
        if not plan.node_present:
            self_paths.append((plan.node, plan.node, 0))
        if plan.new_parent is not None and not plan.parent_present:
            self_paths.append((plan.new_parent, plan.new_parent, 0))
        self._store.insert_paths(conn, self_paths, hierarchy_type, timestamp)

        if plan.strict_ancestors:
            self._store.delete_pairs(conn, plan.strict_ancestors, [ref for ref, _ in plan.subtree], hierarchy_type)
        self._store.insert_paths(conn, plan.new_paths(), hierarchy_type, timestamp)

    def _relink(
        self,
        node: EntityRef,
        new_parent: EntityRef | None,
        hierarchy_type: str,
        operation: str,
    ) -> _RelinkPlan | None:
        """Plan and apply a relink in one transaction.

        Returns None when validation failed in non-strict mode (nothing written).
        """
        with self._db.connection() as conn:
            try:
                plan = self._plan(conn, node, new_parent, hierarchy_type)
            except (CircularReferenceError, MaxDepthExceededError) as e:
                if self._settings.strict:
                    raise
                logger.warning(
                    "hierarchy_validation_skipped",
                    operation=operation,
                    type=hierarchy_type,
                    node=str(node),
                    parent=str(new_parent) if new_parent is not None else None,
                    error=str(e),
                )
                return None
            self._apply(conn, plan, hierarchy_type)

        logger.debug(
            f"node_{operation}",
            type=hierarchy_type,
            node=str(node),
            previous_parent=str(plan.previous_parent) if plan.previous_parent is not None else None,
            parent=str(new_parent) if new_parent is not None else None,
            subtree_size=len(plan.subtree),
        )
        return plan

    # === Mutations ===

    def add_to_ancestry(self, node: Any, hierarchy_type: HierarchyType, parent: Any | None = None) -> None:
        """Add node to a hierarchy, optionally under parent.

        Without a parent this only ensures node's self-path (idempotent).
        With a parent it attaches node as attach_to_parent() does.

        Raises:
            CircularReferenceError: If parent is node or one of its descendants (strict mode)
            MaxDepthExceededError: If the attach would exceed max_depth (strict mode)
        """
        if parent is not None:
            self.attach_to_parent(node, parent, hierarchy_type)
            return

        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.connection() as conn:
            if self._store.has_self_path(conn, ref, type_value):
                return
            self._store.insert_paths(conn, [(ref, ref, 0)], type_value, now())
        logger.debug("node_added", type=type_value, node=str(ref))

    def attach_to_parent(self, node: Any, parent: Any, hierarchy_type: HierarchyType) -> None:
        """Attach node (and its whole subtree) under parent.

        Missing self-paths for node or parent are created first. A node that
        already has a parent is re-linked, so it never ends up with two.

        Raises:
            CircularReferenceError: If parent is node or one of its descendants (strict mode)
            MaxDepthExceededError: If the attach would exceed max_depth (strict mode)
        """
        type_value = self._type(hierarchy_type)
        node_ref = self._ref(node)
        parent_ref = self._ref(parent)
        plan = self._relink(node_ref, parent_ref, type_value, "attached")
        if plan is not None:
            self._emit(NodeAttached(node=node_ref, parent=parent_ref, type=type_value))

    def detach_from_parent(self, node: Any, hierarchy_type: HierarchyType) -> None:
        """Detach node from its parent; node and its subtree become a separate tree.

        No-op for roots and for nodes not in the hierarchy.
        """
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.connection() as conn:
            previous_parent = self._parent_of(conn, ref, type_value)
            if previous_parent is None:
                return
            strict_ancestors = [a for a, depth in self._chain(conn, ref, type_value) if depth >= 1]
            subtree = [d for d, _ in self._subtree(conn, ref, type_value)]
            deleted = self._store.delete_pairs(conn, strict_ancestors, subtree, type_value)

        logger.debug(
            "node_detached",
            type=type_value,
            node=str(ref),
            previous_parent=str(previous_parent),
            rows_deleted=deleted,
        )
        self._emit(NodeDetached(node=ref, previous_parent=previous_parent, type=type_value))

    def remove_from_ancestry(self, node: Any, hierarchy_type: HierarchyType) -> None:
        """Remove node from a hierarchy entirely.

        Deletes every row touching node, plus the rows linking node's
        descendants to node's ancestors. Descendants keep their self-paths
        and the paths among themselves; node's former children become roots.
        No-op if node is not in the hierarchy.
        """
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.connection() as conn:
            if not self._store.has_self_path(conn, ref, type_value):
                return
            strict_ancestors = [a for a, depth in self._chain(conn, ref, type_value) if depth >= 1]
            subtree = [d for d, _ in self._subtree(conn, ref, type_value)]
            deleted = 0
            if strict_ancestors:
                deleted += self._store.delete_pairs(conn, strict_ancestors, subtree, type_value)
            deleted += self._store.delete_touching(conn, ref, type_value)

        logger.debug("node_removed", type=type_value, node=str(ref), rows_deleted=deleted)
        self._emit(NodeRemoved(node=ref, type=type_value))

    def move_to_parent(self, node: Any, new_parent: Any | None, hierarchy_type: HierarchyType) -> None:
        """Move node (and its subtree) under new_parent, or make it a root.

        Equivalent to detach_from_parent() followed by attach_to_parent(),
        but read, validated and written as one transaction.

        Raises:
            CircularReferenceError: If new_parent is node or one of its descendants (strict mode)
            MaxDepthExceededError: If the move would exceed max_depth (strict mode)
        """
        type_value = self._type(hierarchy_type)
        node_ref = self._ref(node)
        parent_ref = self._ref(new_parent) if new_parent is not None else None
        plan = self._relink(node_ref, parent_ref, type_value, "moved")
        if plan is not None:
            self._emit(
                NodeMoved(
                    node=node_ref,
                    previous_parent=plan.previous_parent,
                    new_parent=parent_ref,
                    type=type_value,
                )
            )

    # === Queries ===

    def get_ancestor_refs(
        self,
        node: Any,
        hierarchy_type: HierarchyType,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> list[EntityRef]:
        """Ancestor refs ordered nearest first (self, parent, grandparent, ...)."""
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            rows = self._store.ancestor_rows(
                conn,
                ref,
                type_value,
                min_depth=0 if include_self else 1,
                max_depth=max_depth,
            )
        return [self._paths.ancestor_ref(row) for row in rows]

    def get_descendant_refs(
        self,
        node: Any,
        hierarchy_type: HierarchyType,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> list[EntityRef]:
        """Descendant refs ordered by depth (children, grandchildren, ...)."""
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            rows = self._store.descendant_rows(
                conn,
                ref,
                type_value,
                min_depth=0 if include_self else 1,
                max_depth=max_depth,
            )
        return [self._paths.descendant_ref(row) for row in rows]

    def get_ancestors(
        self,
        node: Any,
        hierarchy_type: HierarchyType,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> list[Any]:
        """Ancestors ordered nearest first; max_depth limits how far up to go."""
        return self._entities(self.get_ancestor_refs(node, hierarchy_type, include_self, max_depth))

    def get_descendants(
        self,
        node: Any,
        hierarchy_type: HierarchyType,
        include_self: bool = False,
        max_depth: int | None = None,
    ) -> list[Any]:
        """Descendants ordered by depth; max_depth limits how far down to go."""
        return self._entities(self.get_descendant_refs(node, hierarchy_type, include_self, max_depth))

    def get_direct_parent(self, node: Any, hierarchy_type: HierarchyType) -> Any | None:
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            parent = self._parent_of(conn, ref, type_value)
        return None if parent is None else self._registry.resolve(parent)

    def get_direct_children(self, node: Any, hierarchy_type: HierarchyType) -> list[Any]:
        return self.get_descendants(node, hierarchy_type, include_self=False, max_depth=1)

    def get_depth(self, node: Any, hierarchy_type: HierarchyType) -> int:
        """Number of ancestors above node; 0 for roots and absent nodes."""
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            depth = self._store.max_depth_of(conn, ref, type_value)
        return depth or 0

    def is_ancestor_of(self, ancestor: Any, descendant: Any, hierarchy_type: HierarchyType) -> bool:
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            return self._store.has_path(conn, self._ref(ancestor), self._ref(descendant), type_value)

    def is_descendant_of(self, descendant: Any, ancestor: Any, hierarchy_type: HierarchyType) -> bool:
        return self.is_ancestor_of(ancestor, descendant, hierarchy_type)

    def is_in_ancestry(self, node: Any, hierarchy_type: HierarchyType) -> bool:
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            return self._store.has_self_path(conn, self._ref(node), type_value)

    def is_root(self, node: Any, hierarchy_type: HierarchyType) -> bool:
        """True when node has no parent row (absent nodes included)."""
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            return self._store.parent_row(conn, self._ref(node), type_value) is None

    def is_leaf(self, node: Any, hierarchy_type: HierarchyType) -> bool:
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            return not self._store.has_children(conn, self._ref(node), type_value)

    def get_siblings(self, node: Any, hierarchy_type: HierarchyType, include_self: bool = False) -> list[Any]:
        """Nodes sharing node's parent.

        Roots are siblings of every other root of the same type. Nodes not in
        the hierarchy have no siblings.
        """
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            parent = self._parent_of(conn, ref, type_value)
            if parent is not None:
                refs = [self._paths.descendant_ref(row) for row in self._store.child_rows(conn, parent, type_value)]
            elif self._store.has_self_path(conn, ref, type_value):
                refs = [self._paths.descendant_ref(row) for row in self._store.root_rows(conn, type_value)]
            else:
                refs = []
        return self._entities([r for r in refs if include_self or r != ref])

    def get_roots(self, node: Any, hierarchy_type: HierarchyType) -> list[Any]:
        """Top of node's chain (node itself when it is a root).

        Returns a list: a consistent tree yields exactly one element, more
        than one means the closure table was modified outside the engine.
        """
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            rows = self._store.root_ancestor_rows(conn, ref, type_value)
        return self._entities([self._paths.ancestor_ref(row) for row in rows])

    def get_root_nodes(self, hierarchy_type: HierarchyType) -> list[Any]:
        """Every root of a hierarchy type."""
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            rows = self._store.root_rows(conn, type_value)
        return self._entities([self._paths.descendant_ref(row) for row in rows])

    def get_path(self, node: Any, hierarchy_type: HierarchyType) -> list[Any]:
        """Chain from the root down to node (node included)."""
        return list(reversed(self.get_ancestors(node, hierarchy_type, include_self=True)))

    def get_paths(self, hierarchy_type: HierarchyType) -> list[ClosurePath]:
        """Every closure row of a type, in a stable order."""
        type_value = self._type(hierarchy_type)
        with self._db.read_connection() as conn:
            rows = self._store.all_rows(conn, type_value)
        return [self._paths.load(row) for row in rows]

    def build_tree(self, node: Any, hierarchy_type: HierarchyType) -> TreeNode:
        """Nested tree rooted at node.

        All parent/child edges of the subtree are read in one query and
        assembled without recursion. A visited set and the configured
        max_depth bound the walk even if the table was corrupted externally.
        """
        type_value = self._type(hierarchy_type)
        ref = self._ref(node)
        with self._db.read_connection() as conn:
            edges = self._store.subtree_edges(conn, ref, type_value)

        children: dict[EntityRef, list[EntityRef]] = {}
        for row in edges:
            children.setdefault(self._paths.ancestor_ref(row), []).append(self._paths.descendant_ref(row))

        root = TreeNode(entity=self._tree_entity(ref))
        visited = {ref}
        stack: list[tuple[EntityRef, TreeNode, int]] = [(ref, root, 0)]
        limit = self._settings.max_depth
        while stack:
            current, tree_node, level = stack.pop()
            if limit is not None and level >= limit:
                continue
            for child in children.get(current, []):
                if child in visited:
                    logger.warning("tree_cycle_detected", type=type_value, node=str(child), parent=str(current))
                    continue
                visited.add(child)
                child_node = TreeNode(entity=self._tree_entity(child))
                tree_node.children.append(child_node)
                stack.append((child, child_node, level + 1))
        return root

    def _tree_entity(self, ref: EntityRef) -> Any:
        entity = self._registry.resolve(ref)
        return ref if entity is None else entity
