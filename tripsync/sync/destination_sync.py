"""Destination sync service - normalizes destinations and fans them out.

The service holds no store references. It publishes one
`sync:cityPropagated` per target and collects the `sync:applied` reply the
target store emits synchronously. Stores decide field by field what to apply
through the conflict policy; the service only decides whether a target is
addressed at all (per-widget user overrides).
"""

import logging
from collections.abc import Iterable, Set as AbstractSet
from dataclasses import dataclass
from datetime import date, datetime

from tripsync.bus.event_bus import EventBus, Unsubscribe
from tripsync.models.common import DestinationSource, SyncTarget
from tripsync.models.destination import (
    Destination,
    SyncAction,
    SyncOutcome,
    SyncState,
    SyncStatus,
    TargetOutcome,
)
from tripsync.models.events import (
    DestinationAccommodationUpdated,
    DestinationFlightFinalized,
    LocationCitySelected,
    SyncApplied,
    SyncBlocked,
    SyncCityPropagated,
)
from tripsync.sync.normalize import normalize_manual, source_label
from tripsync.utils.logging import sync_logger
from tripsync.utils.metrics import sync_metrics

logger = logging.getLogger(__name__)

ALL_TARGETS: tuple[SyncTarget, ...] = ("accommodation", "activity")


@dataclass(frozen=True)
class _SyncRecord:
    source: DestinationSource
    synced_at: datetime


def sync_status(
    destination_id: str,
    sync_source: DestinationSource | None,
    synced_at: datetime | None,
    user_overrides: AbstractSet[str],
) -> SyncStatus:
    """Discriminated display status for one destination.

    Pure: the same inputs always give an equal result.
    """
    state: SyncState
    if destination_id in user_overrides:
        state = "blocked"
    elif sync_source is not None:
        state = "synced"
    else:
        state = "manual"

    return SyncStatus(
        destination_id=destination_id,
        state=state,
        sync_source=sync_source,
        synced_at=synced_at,
        source_label=source_label(sync_source),
    )


class DestinationSyncService:
    """Fans destinations out to the accommodation and activity stores."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._overrides: dict[SyncTarget, set[str]] = {target: set() for target in ALL_TARGETS}
        self._records: dict[tuple[SyncTarget, str], _SyncRecord] = {}
        self._reply_frames: list[list[SyncApplied]] = []
        self._subscriptions: list[Unsubscribe] = []

    def start(self) -> None:
        """Subscribe to destination sources."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self._bus.on(SyncApplied, self._on_applied),
            self._bus.on(DestinationFlightFinalized, self._on_flight_finalized),
            self._bus.on(DestinationAccommodationUpdated, self._on_accommodation_updated),
            self._bus.on(LocationCitySelected, self._on_city_selected),
        ]

    def stop(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def propagate(
        self,
        destination: Destination,
        targets: Iterable[SyncTarget] = ALL_TARGETS,
        check_in: date | None = None,
        check_out: date | None = None,
        replaces_destination_id: str | None = None,
    ) -> SyncOutcome:
        """Push a destination into each requested target store.

        Args:
            destination: Normalized destination
            targets: Stores to address
            check_in: Stay start implied by the source, if known
            check_out: Stay end implied by the source, if known
            replaces_destination_id: Destination this one supersedes in the source

        Returns:
            SyncOutcome with one result per target
        """
        outcome = SyncOutcome(destination=destination)

        for target in targets:
            if destination.id in self._overrides[target]:
                outcome.results.append(
                    TargetOutcome(target=target, action="blocked", reason="user_override")
                )
                self._bus.emit(
                    SyncBlocked(widget=target, destination_id=destination.id, reason="user_override")
                )
                sync_metrics.inc_blocked(target, "user_override")
                self._observe(destination, target, "blocked")
                continue

            action = self._dispatch(destination, target, check_in, check_out, replaces_destination_id)
            reason = None
            if action == "blocked":
                reason = "manual_edit"
                sync_metrics.inc_blocked(target, reason)
            elif action == "skipped":
                reason = "no_listener"
            else:
                self._records[(target, destination.id)] = _SyncRecord(
                    source=destination.source, synced_at=destination.synced_at
                )

            outcome.results.append(TargetOutcome(target=target, action=action, reason=reason))
            self._observe(destination, target, action)

        return outcome

    def block_sync(self, destination_id: str, widget: SyncTarget | None = None) -> None:
        """Refuse future propagation of a destination into one widget (or all)."""
        for target in self._widgets(widget):
            self._overrides[target].add(destination_id)
        logger.info(
            "Sync blocked for %s",
            destination_id,
            extra={"structured": {"destination_id": destination_id, "widget": widget or "all"}},
        )

    def unblock_sync(self, destination_id: str, widget: SyncTarget | None = None) -> None:
        for target in self._widgets(widget):
            self._overrides[target].discard(destination_id)

    def is_blocked(self, destination_id: str, widget: SyncTarget) -> bool:
        return destination_id in self._overrides[widget]

    def get_sync_status(self, destination_id: str, widget: SyncTarget) -> SyncStatus:
        """Display status of a destination in a widget. Never mutates."""
        record = self._records.get((widget, destination_id))
        return sync_status(
            destination_id,
            record.source if record else None,
            record.synced_at if record else None,
            frozenset(self._overrides[widget]),
        )

    def blocked_destinations(self) -> dict[SyncTarget, list[str]]:
        return {target: sorted(ids) for target, ids in self._overrides.items()}

    def _dispatch(
        self,
        destination: Destination,
        target: SyncTarget,
        check_in: date | None,
        check_out: date | None,
        replaces_destination_id: str | None,
    ) -> SyncAction:
        frame: list[SyncApplied] = []
        self._reply_frames.append(frame)
        try:
            self._bus.emit(
                SyncCityPropagated(
                    from_=destination.source,
                    to=target,
                    destination=destination,
                    check_in=check_in,
                    check_out=check_out,
                    replaces_destination_id=replaces_destination_id,
                )
            )
        finally:
            self._reply_frames.pop()

        for reply in frame:
            if reply.target == target and reply.destination_id == destination.id:
                return reply.action
        return "skipped"

    def _observe(self, destination: Destination, target: SyncTarget, action: SyncAction) -> None:
        sync_metrics.inc_propagation(destination.source, target, action)
        sync_logger.log_propagation(
            source=destination.source,
            target=target,
            destination_id=destination.id,
            city=destination.city,
            action=action,
        )

    @staticmethod
    def _widgets(widget: SyncTarget | None) -> tuple[SyncTarget, ...]:
        return ALL_TARGETS if widget is None else (widget,)

    def _on_applied(self, event: SyncApplied) -> None:
        if self._reply_frames:
            self._reply_frames[-1].append(event)

    def _on_flight_finalized(self, event: DestinationFlightFinalized) -> None:
        self.propagate(event.destination, ALL_TARGETS, event.check_in, event.check_out)

    def _on_accommodation_updated(self, event: DestinationAccommodationUpdated) -> None:
        self.propagate(
            event.destination,
            ("activity",),
            replaces_destination_id=event.previous_destination_id,
        )

    def _on_city_selected(self, event: LocationCitySelected) -> None:
        if not event.city.strip():
            return
        destination = normalize_manual(event.city, event.country, event.country_code, event.geo)
        self.propagate(destination, ALL_TARGETS)
