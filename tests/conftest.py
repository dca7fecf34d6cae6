# tests/conftest.py
"""Shared test fixtures.

Every test gets a fresh in-memory AncestryDB, a ModelRegistry wired to
in-memory User/Order repositories (see tests/fixtures/entities.py), and an
EventBus whose emitted events are collected by the `events` fixture.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import itertools
import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from ancestry.core.config import AncestrySettings
from ancestry.core.events import EventBus
from ancestry.core.hierarchy import HierarchyEngine
from ancestry.core.registry import ModelRegistry
from ancestry.core.snapshot import SnapshotEngine
from ancestry.core.store.database import AncestryDB
from ancestry.manager import AncestryManager
from tests.fixtures.entities import InMemoryRepository, Order, User, build_registry

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def users() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def orders() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def registry(users: InMemoryRepository, orders: InMemoryRepository) -> ModelRegistry:
    return build_registry(users, orders)


@pytest.fixture
def make_user(users: InMemoryRepository) -> Callable[..., User]:
    """Factory creating persisted users with sequential ids."""
    counter = itertools.count(1)

    def _make(name: str | None = None) -> User:
        user_id = next(counter)
        return users.add(User(id=user_id, name=name or f"user-{user_id}"))

    return _make


@pytest.fixture
def make_order(orders: InMemoryRepository) -> Callable[..., Order]:
    counter = itertools.count(1)

    def _make(total: int = 0) -> Order:
        return orders.add(Order(id=f"ord-{next(counter)}", total=total))

    return _make


@pytest.fixture
def db() -> Iterator[AncestryDB]:
    """Function-scoped in-memory database (every test starts empty)."""
    database = AncestryDB.in_memory()
    yield database
    database.close()


@pytest.fixture
def ancestry_settings() -> AncestrySettings:
    return AncestrySettings()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(event_bus: EventBus) -> list[Any]:
    """Every event emitted on the shared bus, in order."""
    received: list[Any] = []
    event_bus.subscribe_all(received.append)
    return received


@pytest.fixture
def engine(
    db: AncestryDB,
    ancestry_settings: AncestrySettings,
    registry: ModelRegistry,
    event_bus: EventBus,
) -> HierarchyEngine:
    return HierarchyEngine(db, ancestry_settings, registry=registry, event_bus=event_bus)


@pytest.fixture
def snapshot_engine(
    db: AncestryDB,
    ancestry_settings: AncestrySettings,
    engine: HierarchyEngine,
    registry: ModelRegistry,
    event_bus: EventBus,
) -> SnapshotEngine:
    return SnapshotEngine(db, ancestry_settings, engine, registry=registry, event_bus=event_bus)


@pytest.fixture
def manager(
    db: AncestryDB,
    ancestry_settings: AncestrySettings,
    registry: ModelRegistry,
    event_bus: EventBus,
) -> AncestryManager:
    return AncestryManager(db, ancestry_settings, registry=registry, event_bus=event_bus)


@pytest.fixture
def create_chain(engine: HierarchyEngine, make_user: Callable[..., User]) -> Callable[..., list[User]]:
    """Factory building a linear chain root -> ... -> leaf of n users."""

    def _create(length: int, hierarchy_type: str = "org") -> list[User]:
        chain: list[User] = []
        for _ in range(length):
            user = make_user()
            engine.add_to_ancestry(user, hierarchy_type, parent=chain[-1] if chain else None)
            chain.append(user)
        return chain

    return _create


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
