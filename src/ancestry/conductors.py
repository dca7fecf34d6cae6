# src/ancestry/conductors.py
"""Fluent wrappers over AncestryManager.

Conductors hold an entity and/or a hierarchy type and forward each call to
the manager unchanged. They contain no hierarchy logic.

    manager.for_(order).type("seller").add(parent=seller)
    manager.for_(order).type("seller").ancestors(include_self=True)
    manager.of_type("seller").roots()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from ancestry.contracts.errors import MissingAncestryTypeError
from ancestry.contracts.records import TreeNode
from ancestry.contracts.refs import HierarchyType

if TYPE_CHECKING:
    from ancestry.manager import AncestryManager


class ForModelConductor:
    """Operations scoped to one entity.

    Mutations return self so calls chain:
        manager.for_(user).type("org").add().attach_to(team)
    """

    def __init__(self, manager: AncestryManager, entity: Any, hierarchy_type: HierarchyType | None = None) -> None:
        self._manager = manager
        self._entity = entity
        self._type = hierarchy_type

    @property
    def entity(self) -> Any:
        return self._entity

    def type(self, hierarchy_type: HierarchyType) -> Self:
        """Set the hierarchy type for subsequent calls."""
        self._type = hierarchy_type
        return self

    def _require_type(self) -> HierarchyType:
        if self._type is None:
            raise MissingAncestryTypeError()
        return self._type

    # === Mutations ===

    def add(self, parent: Any | None = None) -> Self:
        self._manager.add_to_ancestry(self._entity, self._require_type(), parent)
        return self

    def attach_to(self, parent: Any) -> Self:
        self._manager.attach_to_parent(self._entity, parent, self._require_type())
        return self

    def detach(self) -> Self:
        self._manager.detach_from_parent(self._entity, self._require_type())
        return self

    def remove(self) -> Self:
        self._manager.remove_from_ancestry(self._entity, self._require_type())
        return self

    def move_to(self, parent: Any | None) -> Self:
        """Move under parent, or make a root when parent is None."""
        self._manager.move_to_parent(self._entity, parent, self._require_type())
        return self

    # === Queries ===

    def ancestors(self, include_self: bool = False, max_depth: int | None = None) -> list[Any]:
        return self._manager.get_ancestors(self._entity, self._require_type(), include_self, max_depth)

    def descendants(self, include_self: bool = False, max_depth: int | None = None) -> list[Any]:
        return self._manager.get_descendants(self._entity, self._require_type(), include_self, max_depth)

    def parent(self) -> Any | None:
        return self._manager.get_direct_parent(self._entity, self._require_type())

    def children(self) -> list[Any]:
        return self._manager.get_direct_children(self._entity, self._require_type())

    def siblings(self, include_self: bool = False) -> list[Any]:
        return self._manager.get_siblings(self._entity, self._require_type(), include_self)

    def is_ancestor_of(self, other: Any) -> bool:
        return self._manager.is_ancestor_of(self._entity, other, self._require_type())

    def is_descendant_of(self, other: Any) -> bool:
        return self._manager.is_descendant_of(self._entity, other, self._require_type())

    def depth(self) -> int:
        return self._manager.get_depth(self._entity, self._require_type())

    def roots(self) -> list[Any]:
        return self._manager.get_roots(self._entity, self._require_type())

    def tree(self) -> TreeNode:
        return self._manager.build_tree(self._entity, self._require_type())

    def path(self) -> list[Any]:
        return self._manager.get_path(self._entity, self._require_type())

    def is_in_ancestry(self) -> bool:
        return self._manager.is_in_ancestry(self._entity, self._require_type())

    def is_root(self) -> bool:
        return self._manager.is_root(self._entity, self._require_type())

    def is_leaf(self) -> bool:
        return self._manager.is_leaf(self._entity, self._require_type())


class TypeConductor:
    """Operations scoped to one hierarchy type."""

    def __init__(self, manager: AncestryManager, hierarchy_type: HierarchyType) -> None:
        self._manager = manager
        self._type = hierarchy_type

    def for_(self, entity: Any) -> ForModelConductor:
        return ForModelConductor(self._manager, entity, self._type)

    def roots(self) -> list[Any]:
        """Every root of this hierarchy type."""
        return self._manager.get_root_nodes(self._type)

    def add(self, entity: Any, parent: Any | None = None) -> ForModelConductor:
        conductor = self.for_(entity)
        conductor.add(parent)
        return conductor
