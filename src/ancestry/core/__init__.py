# src/ancestry/core/__init__.py
"""Core infrastructure: Hierarchy, Snapshots, Registry, Store, Configuration, Logging."""

from ancestry.core.config import (
    AncestrySettings,
    DatabaseSettings,
    EventSettings,
    SnapshotSettings,
    load_settings,
)
from ancestry.core.events import (
    EventBus,
    EventBusProtocol,
    NullEventBus,
)
from ancestry.core.hierarchy import HierarchyEngine
from ancestry.core.logging import (
    configure_logging,
    get_logger,
)
from ancestry.core.registry import EntityAdapter, ModelRegistry
from ancestry.core.snapshot import SnapshotEngine
from ancestry.core.store import AncestryDB, SchemaCompatibilityError

__all__ = [
    "AncestryDB",
    "AncestrySettings",
    "DatabaseSettings",
    "EntityAdapter",
    "EventBus",
    "EventBusProtocol",
    "EventSettings",
    "HierarchyEngine",
    "ModelRegistry",
    "NullEventBus",
    "SchemaCompatibilityError",
    "SnapshotEngine",
    "SnapshotSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
