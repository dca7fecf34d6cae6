# src/ancestry/core/store/__init__.py
"""Relational storage for closure paths and ancestor snapshots.

Primary API:
    AncestryDB - Database connection management
    ClosureTableStore - Closure table primitives
    SnapshotStore - Snapshot table primitives
"""

from ancestry.core.store.closure import ClosureTableStore
from ancestry.core.store.database import AncestryDB, SchemaCompatibilityError
from ancestry.core.store.repositories import AncestorSnapshotRepository, ClosurePathRepository
from ancestry.core.store.schema import DEFAULT_SCHEMA, AncestrySchema, build_schema
from ancestry.core.store.snapshots import SnapshotStore

__all__ = [
    "DEFAULT_SCHEMA",
    "AncestorSnapshotRepository",
    "AncestryDB",
    "AncestrySchema",
    "ClosurePathRepository",
    "ClosureTableStore",
    "SchemaCompatibilityError",
    "SnapshotStore",
    "build_schema",
]
