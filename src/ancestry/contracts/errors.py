"""Exception taxonomy for hierarchy operations.

Every exception raised by the engine derives from AncestryError so callers
can catch the whole family in one place while still matching individual
failures. Validation errors are always raised before any row is written.

Storage failures (sqlalchemy.exc.SQLAlchemyError) are NOT wrapped - they
propagate unchanged after the transaction rolls back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ancestry.contracts.refs import EntityRef


class AncestryError(Exception):
    """Base class for all ancestry exceptions."""


class CircularReferenceError(AncestryError):
    """Raised when an attach or move would make a node its own ancestor.

    Attributes:
        node: The node being attached or moved
        parent: The requested parent (a descendant of node, or node itself)
    """

    def __init__(self, node: EntityRef, parent: EntityRef) -> None:
        self.node = node
        self.parent = parent
        super().__init__(f"Cannot attach [{node}] to [{parent}] - this would create a circular reference.")


class MaxDepthExceededError(AncestryError):
    """Raised when an attach or move would push a node past the configured depth.

    Attributes:
        max_depth: The configured limit
        attempted_depth: Deepest depth the operation would have produced
    """

    def __init__(self, max_depth: int, attempted_depth: int | None = None) -> None:
        self.max_depth = max_depth
        self.attempted_depth = attempted_depth
        super().__init__(f"Maximum hierarchy depth ({max_depth} levels) exceeded.")


class MissingAncestryTypeError(AncestryError):
    """Raised when an operation runs without a hierarchy type."""

    def __init__(self, message: str = "No ancestry type specified. Call type() before performing operations.") -> None:
        super().__init__(message)


class UnknownAncestryTypeError(MissingAncestryTypeError):
    """Raised when a type whitelist is configured and the tag is not on it."""

    def __init__(self, hierarchy_type: str, known_types: list[str]) -> None:
        self.hierarchy_type = hierarchy_type
        self.known_types = known_types
        super().__init__(f"Unknown ancestry type '{hierarchy_type}'. Configured types: {', '.join(known_types)}")


class InvalidConfigurationError(AncestryError):
    """Base class for configuration errors."""


class ConflictingKeyMapsError(InvalidConfigurationError):
    """Raised when both key_map and enforce_key_map are configured."""

    def __init__(self) -> None:
        super().__init__('Cannot configure both "key_map" and "enforce_key_map". Choose one or the other.')


class MissingKeyMappingError(InvalidConfigurationError):
    """Raised when key mappings are enforced and an entity type has none."""

    def __init__(self, type_tag: str) -> None:
        self.type_tag = type_tag
        super().__init__(f"No key mapping registered for entity type '{type_tag}' and key mappings are enforced.")


class InvalidEntityError(AncestryError):
    """Raised when an entity cannot be turned into an EntityRef."""
