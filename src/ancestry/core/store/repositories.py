"""Repository layer between SQLAlchemy rows and contract records.

Keys are stored as strings; the registry restores each key to its native
type (int, UUID, ...) when a row is loaded. This is NOT a trust boundary:
rows that violate the record invariants crash on load.
"""

from typing import Any

from sqlalchemy.engine import Row as SARow

from ancestry.contracts.records import AncestorSnapshot, ClosurePath
from ancestry.contracts.refs import EntityRef
from ancestry.core.registry import ModelRegistry


class ClosurePathRepository:
    """Repository for closure table rows."""

    def __init__(self, registry: ModelRegistry) -> None:
        self._registry = registry

    def ancestor_ref(self, row: SARow[Any]) -> EntityRef:
        return self._registry.decode(row.ancestor_type, row.ancestor_id)

    def descendant_ref(self, row: SARow[Any]) -> EntityRef:
        return self._registry.decode(row.descendant_type, row.descendant_id)

    def load(self, row: SARow[Any]) -> ClosurePath:
        """Load ClosurePath from database row."""
        return ClosurePath(
            ancestor=self.ancestor_ref(row),
            descendant=self.descendant_ref(row),
            type=row.type,
            depth=row.depth,
            created_at=row.created_at,
        )


class AncestorSnapshotRepository:
    """Repository for snapshot rows."""

    def __init__(self, registry: ModelRegistry) -> None:
        self._registry = registry

    def load(self, row: SARow[Any]) -> AncestorSnapshot:
        """Load AncestorSnapshot from database row."""
        ancestor = self._registry.decode(row.ancestor_type, row.ancestor_id)
        return AncestorSnapshot(
            context=self._registry.decode(row.context_type, row.context_id),
            type=row.type,
            depth=row.depth,
            ancestor_key=ancestor.key,
            ancestor_type=ancestor.type_tag,
            created_at=row.created_at,
        )
