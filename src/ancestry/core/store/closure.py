"""Closure table primitives.

ClosureTableStore is the minimal CRUD surface the hierarchy engine needs:
bulk insert of path rows, bulk delete by filter, and filtered/ordered
selects. Every method takes the caller's Connection so that a whole
engine operation shares one transaction. Nothing here validates tree
invariants - that is the engine's job.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, Table, and_, delete, exists, false, func, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.engine import Row as SARow

from ancestry.contracts.refs import EntityRef

# Refs per IN-list; keeps a pairwise delete under SQLite's bind-parameter limit.
DELETE_CHUNK_SIZE = 250


def _chunks(refs: Sequence[EntityRef], size: int) -> Iterator[Sequence[EntityRef]]:
    for start in range(0, len(refs), size):
        yield refs[start : start + size]


class ClosureTableStore:
    """SQL primitives over the closure table."""

    def __init__(self, table: Table) -> None:
        self._t = table

    @property
    def table(self) -> Table:
        return self._t

    # === Predicates ===

    def _is_ancestor(self, ref: EntityRef) -> ColumnElement[bool]:
        return and_(self._t.c.ancestor_type == ref.type_tag, self._t.c.ancestor_id == ref.storage_key)

    def _is_descendant(self, ref: EntityRef) -> ColumnElement[bool]:
        return and_(self._t.c.descendant_type == ref.type_tag, self._t.c.descendant_id == ref.storage_key)

    @staticmethod
    def _ref_in(type_col: Any, id_col: Any, refs: Iterable[EntityRef]) -> ColumnElement[bool]:
        """Membership of (type_col, id_col) in refs, grouped by type tag."""
        by_tag: dict[str, list[str]] = defaultdict(list)
        for ref in refs:
            by_tag[ref.type_tag].append(ref.storage_key)
        if not by_tag:
            return false()
        return or_(*(and_(type_col == tag, id_col.in_(keys)) for tag, keys in by_tag.items()))

    # === Writes ===

    def insert_paths(
        self,
        conn: Connection,
        paths: Iterable[tuple[EntityRef, EntityRef, int]],
        hierarchy_type: str,
        created_at: datetime,
    ) -> int:
        """Bulk insert (ancestor, descendant, depth) rows in one statement.

        Returns:
            Number of rows inserted
        """
        values = [
            {
                "ancestor_type": ancestor.type_tag,
                "ancestor_id": ancestor.storage_key,
                "descendant_type": descendant.type_tag,
                "descendant_id": descendant.storage_key,
                "type": hierarchy_type,
                "depth": depth,
                "created_at": created_at,
            }
            for ancestor, descendant, depth in paths
        ]
        if not values:
            return 0
        conn.execute(self._t.insert(), values)
        return len(values)

    def delete_pairs(
        self,
        conn: Connection,
        ancestors: Sequence[EntityRef],
        descendants: Sequence[EntityRef],
        hierarchy_type: str,
    ) -> int:
        """Delete every row (a, d) with a in ancestors and d in descendants.

        Large sets are split into chunks; all chunks run on the caller's
        connection, so the delete stays atomic.

        Returns:
            Number of rows deleted
        """
        deleted = 0
        for ancestor_chunk in _chunks(ancestors, DELETE_CHUNK_SIZE):
            for descendant_chunk in _chunks(descendants, DELETE_CHUNK_SIZE):
                result = conn.execute(
                    delete(self._t).where(
                        self._t.c.type == hierarchy_type,
                        self._ref_in(self._t.c.ancestor_type, self._t.c.ancestor_id, ancestor_chunk),
                        self._ref_in(self._t.c.descendant_type, self._t.c.descendant_id, descendant_chunk),
                    )
                )
                deleted += result.rowcount
        return deleted

    def delete_touching(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> int:
        """Delete every row where ref is ancestor or descendant."""
        result = conn.execute(
            delete(self._t).where(
                self._t.c.type == hierarchy_type,
                or_(self._is_ancestor(ref), self._is_descendant(ref)),
            )
        )
        return result.rowcount

    # === Reads ===

    def ancestor_rows(
        self,
        conn: Connection,
        ref: EntityRef,
        hierarchy_type: str,
        *,
        min_depth: int = 0,
        max_depth: int | None = None,
    ) -> list[SARow[Any]]:
        """Rows with descendant = ref, ascending by depth (self first)."""
        query = select(self._t).where(
            self._t.c.type == hierarchy_type,
            self._is_descendant(ref),
            self._t.c.depth >= min_depth,
        )
        if max_depth is not None:
            query = query.where(self._t.c.depth <= max_depth)
        query = query.order_by(self._t.c.depth, self._t.c.ancestor_type, self._t.c.ancestor_id)
        return list(conn.execute(query).fetchall())

    def descendant_rows(
        self,
        conn: Connection,
        ref: EntityRef,
        hierarchy_type: str,
        *,
        min_depth: int = 0,
        max_depth: int | None = None,
    ) -> list[SARow[Any]]:
        """Rows with ancestor = ref, ascending by depth (self first)."""
        query = select(self._t).where(
            self._t.c.type == hierarchy_type,
            self._is_ancestor(ref),
            self._t.c.depth >= min_depth,
        )
        if max_depth is not None:
            query = query.where(self._t.c.depth <= max_depth)
        query = query.order_by(self._t.c.depth, self._t.c.descendant_type, self._t.c.descendant_id)
        return list(conn.execute(query).fetchall())

    def has_path(
        self,
        conn: Connection,
        ancestor: EntityRef,
        descendant: EntityRef,
        hierarchy_type: str,
        *,
        min_depth: int = 1,
    ) -> bool:
        query = select(
            exists().where(
                self._t.c.type == hierarchy_type,
                self._is_ancestor(ancestor),
                self._is_descendant(descendant),
                self._t.c.depth >= min_depth,
            )
        )
        return bool(conn.execute(query).scalar())

    def has_self_path(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> bool:
        return self.has_path(conn, ref, ref, hierarchy_type, min_depth=0)

    def parent_row(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> SARow[Any] | None:
        """The depth-1 row above ref, or None for roots and absent nodes."""
        query = select(self._t).where(
            self._t.c.type == hierarchy_type,
            self._is_descendant(ref),
            self._t.c.depth == 1,
        )
        return conn.execute(query).fetchone()

    def child_rows(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> list[SARow[Any]]:
        return self.descendant_rows(conn, ref, hierarchy_type, min_depth=1, max_depth=1)

    def has_children(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> bool:
        query = select(
            exists().where(
                self._t.c.type == hierarchy_type,
                self._is_ancestor(ref),
                self._t.c.depth == 1,
            )
        )
        return bool(conn.execute(query).scalar())

    def max_depth_of(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> int | None:
        """Deepest ancestor row above ref (its depth in the tree), None if absent."""
        query = select(func.max(self._t.c.depth)).where(
            self._t.c.type == hierarchy_type,
            self._is_descendant(ref),
        )
        result = conn.execute(query).scalar()
        return None if result is None else int(result)

    def _parentless(self, type_col: Any, id_col: Any, hierarchy_type: str) -> ColumnElement[bool]:
        """NOT EXISTS a depth-1 row above (type_col, id_col)."""
        parent = self._t.alias("parent")
        return ~exists().where(
            parent.c.type == hierarchy_type,
            parent.c.descendant_type == type_col,
            parent.c.descendant_id == id_col,
            parent.c.depth == 1,
        )

    def root_rows(self, conn: Connection, hierarchy_type: str) -> list[SARow[Any]]:
        """Self-path rows of every root in the type."""
        query = (
            select(self._t)
            .where(
                self._t.c.type == hierarchy_type,
                self._t.c.depth == 0,
                self._parentless(self._t.c.descendant_type, self._t.c.descendant_id, hierarchy_type),
            )
            .order_by(self._t.c.descendant_type, self._t.c.descendant_id)
        )
        return list(conn.execute(query).fetchall())

    def root_ancestor_rows(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> list[SARow[Any]]:
        """Rows above ref (self included) whose ancestor has no parent."""
        query = (
            select(self._t)
            .where(
                self._t.c.type == hierarchy_type,
                self._is_descendant(ref),
                self._parentless(self._t.c.ancestor_type, self._t.c.ancestor_id, hierarchy_type),
            )
            .order_by(self._t.c.depth.desc(), self._t.c.ancestor_type, self._t.c.ancestor_id)
        )
        return list(conn.execute(query).fetchall())

    def subtree_edges(self, conn: Connection, ref: EntityRef, hierarchy_type: str) -> list[SARow[Any]]:
        """Depth-1 rows for every strict descendant of ref.

        One query returns every parent/child edge inside the subtree,
        ordered so that children come out in a stable order per parent.
        """
        below = self._t.alias("below")
        edge = self._t.alias("edge")
        query = (
            select(edge)
            .join(
                below,
                and_(
                    below.c.descendant_type == edge.c.descendant_type,
                    below.c.descendant_id == edge.c.descendant_id,
                    below.c.type == edge.c.type,
                ),
            )
            .where(
                edge.c.type == hierarchy_type,
                edge.c.depth == 1,
                below.c.ancestor_type == ref.type_tag,
                below.c.ancestor_id == ref.storage_key,
                below.c.depth >= 1,
            )
            .order_by(below.c.depth, edge.c.descendant_type, edge.c.descendant_id)
        )
        return list(conn.execute(query).fetchall())

    def all_rows(self, conn: Connection, hierarchy_type: str | None = None) -> list[SARow[Any]]:
        """Every row (optionally of one type) in a stable order."""
        query = select(self._t)
        if hierarchy_type is not None:
            query = query.where(self._t.c.type == hierarchy_type)
        query = query.order_by(
            self._t.c.type,
            self._t.c.ancestor_type,
            self._t.c.ancestor_id,
            self._t.c.descendant_type,
            self._t.c.descendant_id,
        )
        return list(conn.execute(query).fetchall())

    def count_rows(self, conn: Connection, hierarchy_type: str | None = None) -> int:
        query = select(func.count()).select_from(self._t)
        if hierarchy_type is not None:
            query = query.where(self._t.c.type == hierarchy_type)
        return int(conn.execute(query).scalar_one())
