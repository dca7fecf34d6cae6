"""Snapshot table primitives.

Like ClosureTableStore, every method takes the caller's Connection.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, Table, and_, delete, exists, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.engine import Row as SARow

from ancestry.contracts.refs import EntityRef


class SnapshotStore:
    """SQL primitives over the snapshot table."""

    def __init__(self, table: Table) -> None:
        self._t = table

    @property
    def table(self) -> Table:
        return self._t

    def _for(self, context: EntityRef, hierarchy_type: str) -> ColumnElement[bool]:
        return and_(
            self._t.c.context_type == context.type_tag,
            self._t.c.context_id == context.storage_key,
            self._t.c.type == hierarchy_type,
        )

    def insert_snapshots(
        self,
        conn: Connection,
        context: EntityRef,
        hierarchy_type: str,
        ancestors: Sequence[EntityRef],
        created_at: datetime,
    ) -> int:
        """Insert one row per ancestor, depth = position in the sequence."""
        values = [
            {
                "context_type": context.type_tag,
                "context_id": context.storage_key,
                "type": hierarchy_type,
                "depth": depth,
                "ancestor_type": ancestor.type_tag,
                "ancestor_id": ancestor.storage_key,
                "created_at": created_at,
            }
            for depth, ancestor in enumerate(ancestors)
        ]
        if not values:
            return 0
        conn.execute(self._t.insert(), values)
        return len(values)

    def delete_for(self, conn: Connection, context: EntityRef, hierarchy_type: str) -> int:
        result = conn.execute(delete(self._t).where(self._for(context, hierarchy_type)))
        return result.rowcount

    def select_for(self, conn: Connection, context: EntityRef, hierarchy_type: str) -> list[SARow[Any]]:
        """All rows for (context, type), ascending by depth."""
        query = select(self._t).where(self._for(context, hierarchy_type)).order_by(self._t.c.depth)
        return list(conn.execute(query).fetchall())

    def select_at_depth(
        self,
        conn: Connection,
        context: EntityRef,
        hierarchy_type: str,
        depth: int,
    ) -> SARow[Any] | None:
        query = select(self._t).where(self._for(context, hierarchy_type), self._t.c.depth == depth)
        return conn.execute(query).fetchone()

    def count_for(self, conn: Connection, context: EntityRef, hierarchy_type: str) -> int:
        query = select(func.count()).select_from(self._t).where(self._for(context, hierarchy_type))
        return int(conn.execute(query).scalar_one())

    def exists_for(self, conn: Connection, context: EntityRef, hierarchy_type: str) -> bool:
        return bool(conn.execute(select(exists().where(self._for(context, hierarchy_type)))).scalar())
