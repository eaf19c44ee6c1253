"""Chat targeting - routes assistant instructions to the right entries.

Resolution rules:
    - target_city is a city: update that city's entry as a direct edit.
    - target_city is "all": update every live entry as an automated edit, so
      fields the user set by hand are kept.
    - target_city is absent: update the only entry, if there is exactly one;
      otherwise the instruction is ambiguous and nothing changes.

Nothing is ever written to the active entry as a fallback.
"""

import logging
from typing import Any

from tripsync.bus.event_bus import EventBus, Unsubscribe
from tripsync.models.common import Origin, SyncTarget
from tripsync.models.entries import ProtectedEntry
from tripsync.models.events import AccommodationUpdate, ActivityUpdate
from tripsync.models.instructions import (
    ChatInstruction,
    EntryChange,
    TargetingResult,
    TargetingStatus,
)
from tripsync.policy.conflict import PolicyDecision
from tripsync.stores.accommodation import AccommodationStore
from tripsync.stores.activity import ActivityStore
from tripsync.stores.base import DestinationScopedStore
from tripsync.utils.logging import sync_logger
from tripsync.utils.metrics import sync_metrics

logger = logging.getLogger(__name__)


class ChatTargetingResolver:
    """Resolves chat instructions against the destination-scoped stores."""

    def __init__(
        self,
        bus: EventBus,
        accommodation: AccommodationStore,
        activity: ActivityStore,
    ) -> None:
        self._bus = bus
        self._stores: dict[SyncTarget, DestinationScopedStore[Any, Any]] = {
            "accommodation": accommodation,
            "activity": activity,
        }
        self._subscriptions: list[Unsubscribe] = []

    def start(self) -> None:
        """Handle assistant-issued update events."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self._bus.on(AccommodationUpdate, self._on_accommodation_update),
            self._bus.on(ActivityUpdate, self._on_activity_update),
        ]

    def stop(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def resolve(self, instruction: ChatInstruction) -> TargetingResult:
        """Apply an instruction to its target entries.

        Args:
            instruction: Domain, target city and field updates

        Returns:
            TargetingResult; never raises for bad input
        """
        store = self._stores[instruction.domain]
        live = [entry for entry in store.entries if entry.city_key]
        available = [entry.city for entry in live]

        result = self._resolve(store, instruction, live, available)

        skipped = sum(len(change.skipped) for change in result.changes)
        sync_metrics.inc_targeting(result.domain, result.status)
        sync_logger.log_targeting(
            domain=result.domain,
            status=result.status,
            attempted_city=result.attempted_city,
            matched=len(result.changes),
            skipped_fields=skipped,
        )
        return result

    def _resolve(
        self,
        store: DestinationScopedStore[Any, Any],
        instruction: ChatInstruction,
        live: list[ProtectedEntry],
        available: list[str],
    ) -> TargetingResult:
        domain = instruction.domain
        attempted = instruction.target_city

        def outcome(
            status: TargetingStatus, message: str, changes: list[EntryChange] | None = None
        ) -> TargetingResult:
            return TargetingResult(
                status=status,
                domain=domain,
                attempted_city=attempted,
                changes=changes or [],
                available_cities=available,
                message=message,
            )

        entry_model = store.entry_model
        known = set(entry_model.model_fields) - entry_model.read_only_fields
        known -= entry_model.sync_managed_fields
        if not instruction.fields or not known & instruction.fields.keys():
            return outcome("invalid", f"No {domain} fields to update")

        targets: list[ProtectedEntry]
        origin: Origin
        if instruction.targets_all:
            if not live:
                return outcome("not_found", f"No {domain} destinations to update")
            targets, origin = live, "auto"
        elif attempted is not None:
            entry = store.by_city(attempted)
            if entry is None:
                listing = ", ".join(available) if available else "none"
                return outcome(
                    "not_found",
                    f"No {domain} entry for {attempted}. Available cities: {listing}",
                )
            targets, origin = [entry], "direct"
        else:
            entries = store.entries
            if len(live) == 1:
                targets, origin = live, "direct"
            elif not live and len(entries) == 1:
                targets, origin = entries, "direct"
            elif not entries:
                return outcome("not_found", f"No {domain} entries yet")
            else:
                return outcome(
                    "ambiguous",
                    f"Which city should be updated? Options: {', '.join(available)}",
                )

        try:
            if origin == "direct":
                decision = store.update(targets[0].id, instruction.fields, origin="direct")
                decisions = [decision] if decision is not None else []
            else:
                decisions = store.update_many([e.id for e in targets], instruction.fields, origin="auto")
        except ValueError as e:
            logger.warning("Rejected %s instruction: %s", domain, e)
            return outcome("invalid", f"Could not apply {domain} update: {_first_line(e)}")

        changes = [_entry_change(decision) for decision in decisions]
        return outcome("applied", _summary(changes), changes)

    def _on_accommodation_update(self, event: AccommodationUpdate) -> None:
        self.resolve(
            ChatInstruction(domain="accommodation", target_city=event.city, fields=dict(event.updates))
        )

    def _on_activity_update(self, event: ActivityUpdate) -> None:
        self.resolve(ChatInstruction(domain="activity", target_city=event.city, fields=dict(event.updates)))


def _entry_change(decision: PolicyDecision[Any]) -> EntryChange:
    return EntryChange(
        city=decision.entry.city,
        applied=sorted(decision.applied),
        skipped=dict(decision.skipped),
    )


def _summary(changes: list[EntryChange]) -> str:
    parts: list[str] = []
    for change in changes:
        city = change.city or "unnamed entry"
        if change.applied:
            parts.append(f"Updated {city}: {', '.join(change.applied)}")
        protected = [name for name, reason in change.skipped.items() if reason == "protected"]
        if protected:
            parts.append(f"Kept your {', '.join(protected)} for {city}")
        if not change.applied and not protected:
            parts.append(f"No changes for {city}")
    return "; ".join(parts)


def _first_line(error: Exception) -> str:
    return str(error).splitlines()[0]
