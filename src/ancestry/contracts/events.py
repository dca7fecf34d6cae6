"""Domain events emitted after successful hierarchy mutations.

Events are emitted once the transaction that produced them has committed,
and only when events are enabled in settings. Delivery is the job of the
injected event bus (see ancestry.core.events).

Payloads carry EntityRefs rather than live entities so that handlers never
trigger entity loading.
"""

from dataclasses import dataclass, field

from ancestry.contracts.records import AncestorSnapshot
from ancestry.contracts.refs import EntityRef


@dataclass(frozen=True, slots=True)
class NodeAttached:
    """Emitted when a node is attached under a parent.

    Also emitted by add_to_ancestry() when a parent is given.
    """

    node: EntityRef
    parent: EntityRef
    type: str


@dataclass(frozen=True, slots=True)
class NodeDetached:
    """Emitted when a node is detached from its parent and becomes a root."""

    node: EntityRef
    previous_parent: EntityRef
    type: str


@dataclass(frozen=True, slots=True)
class NodeMoved:
    """Emitted when a node changes parent.

    Attributes:
        node: The moved node
        previous_parent: Parent before the move, None if it was a root
        new_parent: Parent after the move, None if it became a root
        type: Hierarchy type
    """

    node: EntityRef
    previous_parent: EntityRef | None
    new_parent: EntityRef | None
    type: str


@dataclass(frozen=True, slots=True)
class NodeRemoved:
    """Emitted when a node is removed from a hierarchy type."""

    node: EntityRef
    type: str


@dataclass(frozen=True, slots=True)
class SnapshotCreated:
    """Emitted when an ancestor chain is captured for a context."""

    context: EntityRef
    type: str
    count: int
    snapshots: tuple[AncestorSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class SnapshotCleared:
    """Emitted when captured snapshots are cleared (only if any existed)."""

    context: EntityRef
    type: str
    count: int


HierarchyEvent = NodeAttached | NodeDetached | NodeMoved | NodeRemoved | SnapshotCreated | SnapshotCleared
