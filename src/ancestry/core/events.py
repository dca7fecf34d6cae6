"""Event delivery for hierarchy mutations.

The engines never reach for a process-wide dispatcher. They emit event
values into whatever bus they were constructed with; the caller decides
where events go.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations.

    Allows both EventBus and NullEventBus to satisfy the interface
    without inheritance.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type."""
        ...

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers."""
        ...


class EventBus:
    """Synchronous in-process event bus.

    Handlers are keyed by exact event class. Handler exceptions propagate
    to the caller of the engine operation; by then the mutation has
    already committed.

    Example:
        bus = EventBus()
        bus.subscribe(NodeMoved, lambda e: print(f"{e.node} -> {e.new_parent}"))
        engine = HierarchyEngine(db, settings, event_bus=bus)
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}
        self._catch_all: list[Callable[[Any], None]] = []

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)

    def subscribe_all(self, handler: Callable[[Any], None]) -> None:
        """Subscribe a handler to every event, after type-specific handlers."""
        self._catch_all.append(handler)

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers in subscription order.

        Events with no subscribers are ignored.
        """
        for handler in self._subscribers.get(type(event), []):
            handler(event)
        for handler in self._catch_all:
            handler(event)


class NullEventBus:
    """No-op event bus, the default when no bus is injected.

    Does NOT inherit from EventBus: subscribing here never delivers
    anything, and inheritance would hide that from a caller expecting
    callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """No-op subscription - handler will never be called."""
        pass

    def emit(self, event: T) -> None:
        """No-op emission."""
        pass
