"""Row contracts for the closure table and the snapshot table.

The repository layer builds these from SQLAlchemy rows. They are plain
data: no database handles, no lazy loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ancestry.contracts.refs import EntityRef, KeyValue


@dataclass(frozen=True, slots=True)
class ClosurePath:
    """One ancestor/descendant pair of a hierarchy type.

    depth 0 is the self-path (ancestor == descendant) that marks
    membership; depth 1 is a direct parent/child link.
    """

    ancestor: EntityRef
    descendant: EntityRef
    type: str
    depth: int
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.depth < 0:
            raise ValueError(f"depth must be >= 0, got {self.depth}")
        if self.depth == 0 and self.ancestor != self.descendant:
            raise ValueError(f"depth 0 requires ancestor == descendant, got {self.ancestor} / {self.descendant}")

    @property
    def is_self_path(self) -> bool:
        return self.depth == 0


@dataclass(frozen=True, slots=True)
class AncestorSnapshot:
    """One frozen entry of an ancestor chain captured against a context entity.

    Example: an order placed through seller A, whose parent is B, whose
    parent is C, captures three entries for (order, "seller"):
        depth 0: A
        depth 1: B
        depth 2: C
    Later moves of A, B or C leave these entries untouched.
    """

    context: EntityRef
    type: str
    depth: int
    ancestor_key: KeyValue
    ancestor_type: str
    created_at: datetime | None = None

    @property
    def ancestor(self) -> EntityRef:
        """The captured ancestor as a reference."""
        return EntityRef(self.ancestor_type, self.ancestor_key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ancestor_id": self.ancestor_key,
            "ancestor_type": self.ancestor_type,
            "depth": self.depth,
            "type": self.type,
        }


@dataclass(slots=True)
class TreeNode:
    """Nested tree structure returned by build_tree()."""

    entity: Any
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "children": [child.to_dict() for child in self.children],
        }
