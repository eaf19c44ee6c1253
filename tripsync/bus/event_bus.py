"""In-process synchronous event bus.

Dispatch is synchronous and reentrant: a handler may emit, and the nested event
is fully processed (depth-first) before control returns to the outer emitter.
Only event types from the closed catalog in `tripsync.models.events` can be
subscribed to or emitted.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from tripsync.models.events import EVENT_TYPES, PlannerEventBase

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=PlannerEventBase)

Unsubscribe = Callable[[], None]


class EventBus:
    """Typed publish/subscribe channel shared by one planner session."""

    def __init__(self, raise_handler_errors: bool = False) -> None:
        """Initialize bus.

        Args:
            raise_handler_errors: Re-raise handler exceptions instead of logging them
        """
        self._handlers: dict[type[PlannerEventBase], list[Callable[[Any], None]]] = {
            event_type: [] for event_type in EVENT_TYPES
        }
        self._any_handlers: list[Callable[[PlannerEventBase], None]] = []
        self._raise_handler_errors = raise_handler_errors
        self._depth = 0

    def on(self, event_type: type[E], handler: Callable[[E], None]) -> Unsubscribe:
        """Subscribe to one event type.

        Returns:
            Callable that removes the subscription

        Raises:
            ValueError: If event_type is not in the catalog
        """
        self._handlers_for(event_type).append(handler)
        return lambda: self.off(event_type, handler)

    def off(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Remove a subscription (no-op if absent)."""
        handlers = self._handlers_for(event_type)
        if handler in handlers:
            handlers.remove(handler)

    def on_any(self, handler: Callable[[PlannerEventBase], None]) -> Unsubscribe:
        """Subscribe to every event (after type-specific handlers)."""
        self._any_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._any_handlers:
                self._any_handlers.remove(handler)

        return unsubscribe

    def emit(self, event: PlannerEventBase) -> None:
        """Dispatch an event to its subscribers, depth-first."""
        handlers = [*self._handlers_for(type(event)), *self._any_handlers]

        self._depth += 1
        try:
            logger.debug("emit %s depth=%d handlers=%d", event.name, self._depth, len(handlers))
            for handler in handlers:
                self._dispatch(handler, event)
        finally:
            self._depth -= 1

    def handler_count(self, event_type: type[PlannerEventBase]) -> int:
        """Number of type-specific subscribers."""
        return len(self._handlers_for(event_type))

    def _handlers_for(self, event_type: type[PlannerEventBase]) -> list[Callable[[Any], None]]:
        handlers = self._handlers.get(event_type)
        if handlers is None:
            raise ValueError(f"Unknown event type: {event_type.__name__}")
        return handlers

    def _dispatch(self, handler: Callable[[Any], None], event: PlannerEventBase) -> None:
        try:
            handler(event)
        except Exception:
            if self._raise_handler_errors:
                raise
            logger.exception(
                "Event handler failed",
                extra={"structured": {"event": event.name, "handler": repr(handler)}},
            )
