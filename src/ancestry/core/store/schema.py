# src/ancestry/core/store/schema.py
"""SQLAlchemy table definitions for the closure table and snapshots.

Uses SQLAlchemy Core (not ORM) for explicit control over the bulk
insert/delete statements the engine issues.

Table names are configurable, so tables are built per name pair by
build_schema(). DEFAULT_SCHEMA covers the default names.
"""

from dataclasses import dataclass

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)

KEY_LENGTH = 64
TYPE_LENGTH = 128


@dataclass(frozen=True)
class AncestrySchema:
    """Metadata plus the two tables it holds."""

    metadata: MetaData
    ancestors: Table
    snapshots: Table


def build_schema(
    ancestors_table_name: str = "ancestors",
    snapshots_table_name: str = "ancestor_snapshots",
) -> AncestrySchema:
    """Build table definitions for the given table names."""
    metadata = MetaData()

    # === Closure paths ===
    # One row per (ancestor, descendant, type); depth 0 rows are self-paths.
    ancestors = Table(
        ancestors_table_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("ancestor_type", String(TYPE_LENGTH), nullable=False),
        Column("ancestor_id", String(KEY_LENGTH), nullable=False),
        Column("descendant_type", String(TYPE_LENGTH), nullable=False),
        Column("descendant_id", String(KEY_LENGTH), nullable=False),
        Column("type", String(TYPE_LENGTH), nullable=False),
        Column("depth", Integer, nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
        UniqueConstraint(
            "ancestor_type",
            "ancestor_id",
            "descendant_type",
            "descendant_id",
            "type",
            name=f"uq_{ancestors_table_name}_path",
        ),
        CheckConstraint("depth >= 0", name=f"ck_{ancestors_table_name}_depth"),
        Index(f"ix_{ancestors_table_name}_ancestor", "ancestor_type", "ancestor_id", "type"),
        Index(f"ix_{ancestors_table_name}_descendant", "descendant_type", "descendant_id", "type"),
        Index(f"ix_{ancestors_table_name}_type_depth", "type", "depth"),
    )

    # === Ancestor snapshots ===
    # Frozen chains keyed by (context, type, depth). Never joined to the
    # closure table, so hierarchy mutations cannot reach them.
    snapshots = Table(
        snapshots_table_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("context_type", String(TYPE_LENGTH), nullable=False),
        Column("context_id", String(KEY_LENGTH), nullable=False),
        Column("type", String(TYPE_LENGTH), nullable=False),
        Column("depth", Integer, nullable=False),
        Column("ancestor_type", String(TYPE_LENGTH), nullable=False),
        Column("ancestor_id", String(KEY_LENGTH), nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
        UniqueConstraint(
            "context_type",
            "context_id",
            "type",
            "depth",
            name=f"uq_{snapshots_table_name}_depth",
        ),
        CheckConstraint("depth >= 0", name=f"ck_{snapshots_table_name}_depth"),
        Index(f"ix_{snapshots_table_name}_context", "context_type", "context_id", "type"),
    )

    return AncestrySchema(metadata=metadata, ancestors=ancestors, snapshots=snapshots)


DEFAULT_SCHEMA = build_schema()
