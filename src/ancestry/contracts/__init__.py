"""Shared contracts: references, row records, events and errors.

This package is a LEAF MODULE with no outbound dependencies to core.
Settings classes live in ancestry.core.config and are not re-exported here.

Import patterns:
    from ancestry.contracts import EntityRef, ClosurePath, NodeMoved
    from ancestry.core.config import AncestrySettings
"""

from ancestry.contracts.errors import (
    AncestryError,
    CircularReferenceError,
    ConflictingKeyMapsError,
    InvalidConfigurationError,
    InvalidEntityError,
    MaxDepthExceededError,
    MissingAncestryTypeError,
    MissingKeyMappingError,
    UnknownAncestryTypeError,
)
from ancestry.contracts.events import (
    HierarchyEvent,
    NodeAttached,
    NodeDetached,
    NodeMoved,
    NodeRemoved,
    SnapshotCleared,
    SnapshotCreated,
)
from ancestry.contracts.records import AncestorSnapshot, ClosurePath, TreeNode
from ancestry.contracts.refs import AncestryType, EntityRef, HierarchyType, KeyValue, normalize_type

__all__ = [
    "AncestorSnapshot",
    "AncestryError",
    "AncestryType",
    "CircularReferenceError",
    "ClosurePath",
    "ConflictingKeyMapsError",
    "EntityRef",
    "HierarchyEvent",
    "HierarchyType",
    "InvalidConfigurationError",
    "InvalidEntityError",
    "KeyValue",
    "MaxDepthExceededError",
    "MissingAncestryTypeError",
    "MissingKeyMappingError",
    "NodeAttached",
    "NodeDetached",
    "NodeMoved",
    "NodeRemoved",
    "SnapshotCleared",
    "SnapshotCreated",
    "TreeNode",
    "UnknownAncestryTypeError",
    "normalize_type",
]
