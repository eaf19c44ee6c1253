"""Widget interaction history - recent user selections as assistant context.

The log is observational only: nothing here is ever read back into trip
state.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from tripsync.bus.event_bus import EventBus, Unsubscribe
from tripsync.models.events import WidgetInteractionEvent
from tripsync.models.widgets import WidgetInteraction

logger = logging.getLogger(__name__)


class WidgetHistory:
    """Bounded, append-only log of widget interactions."""

    def __init__(self, bus: EventBus, limit: int = 50, context_size: int = 10) -> None:
        """Initialize history.

        Args:
            bus: Event bus carrying widget:interaction events
            limit: Maximum interactions kept (oldest dropped first)
            context_size: Interactions included in the assistant context

        Raises:
            ValueError: If limit is not positive
        """
        if limit < 1:
            raise ValueError(f"history limit must be positive, got {limit}")
        self._bus = bus
        self._limit = limit
        self._context_size = context_size
        self._interactions: list[WidgetInteraction] = []
        self._unsubscribe: Unsubscribe | None = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.on(WidgetInteractionEvent, self._on_interaction)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def interactions(self) -> list[WidgetInteraction]:
        return list(self._interactions)

    def record(
        self,
        widget_type: str,
        interaction_type: str,
        summary: str,
        data: dict[str, Any] | None = None,
    ) -> WidgetInteraction:
        """Append one interaction, dropping the oldest beyond the limit."""
        interaction = WidgetInteraction(
            timestamp=datetime.now(UTC),
            widget_type=widget_type,
            interaction_type=interaction_type,
            data=dict(data or {}),
            summary=summary,
        )
        self._interactions = [*self._interactions, interaction][-self._limit :]
        logger.debug("Widget interaction %s/%s", widget_type, interaction_type)
        return interaction

    def recent(self, count: int | None = None) -> list[WidgetInteraction]:
        count = self._context_size if count is None else count
        if count <= 0:
            return []
        return self._interactions[-count:]

    def context_for_llm(self) -> str:
        """Recent interactions formatted for the assistant prompt ("" if none)."""
        recent = self.recent()
        if not recent:
            return ""
        lines = [f"- {interaction.summary}" for interaction in recent]
        return "[USER INTERACTIONS]\n" + "\n".join(lines)

    def recent_summary(self, count: int = 5) -> str:
        return "; ".join(interaction.summary for interaction in self.recent(count))

    def clear(self) -> None:
        self._interactions = []

    def _on_interaction(self, event: WidgetInteractionEvent) -> None:
        self.record(event.widget_type, event.interaction_type, event.summary, event.data)
