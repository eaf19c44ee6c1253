"""Topology reconciler - keeps destination-scoped entries in step with the legs.

On every trip-type or leg change the reconciler computes the destinations the
new topology requires, drops entries for destinations that vanished, and
pushes newly required destinations through the sync service so that they
inherit defaults like any other synced entry. Entries that are still required
are never touched.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from tripsync.bus.event_bus import EventBus, Unsubscribe
from tripsync.models.common import SyncTarget
from tripsync.models.destination import Destination
from tripsync.models.entries import ProtectedEntry
from tripsync.models.events import FlightLegsChanged, FlightTripTypeChanged
from tripsync.stores.accommodation import AccommodationStore
from tripsync.stores.activity import ActivityStore
from tripsync.stores.base import DestinationScopedStore
from tripsync.stores.flight import FlightStore
from tripsync.sync.destination_sync import DestinationSyncService
from tripsync.sync.normalize import normalize_from_flight

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """What one reconciliation pass changed."""

    required: list[str] = field(default_factory=list)
    removed: dict[str, list[str]] = field(default_factory=dict)
    added: dict[str, list[str]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return any(self.removed.values()) or any(self.added.values())


def _matches(entry: ProtectedEntry, destination: Destination) -> bool:
    return entry.city_key == destination.city_key or (
        getattr(entry, "destination_id", None) == destination.id
    )


class TopologyReconciler:
    """Reconciles accommodation and activity entries against the flight legs."""

    def __init__(
        self,
        bus: EventBus,
        flights: FlightStore,
        accommodation: AccommodationStore,
        activity: ActivityStore,
        sync: DestinationSyncService,
    ) -> None:
        self._bus = bus
        self._flights = flights
        self._sync = sync
        self._stores: dict[SyncTarget, DestinationScopedStore[Any, Any]] = {
            "accommodation": accommodation,
            "activity": activity,
        }
        self._subscriptions: list[Unsubscribe] = []

    def start(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self._bus.on(FlightTripTypeChanged, lambda _event: self.reconcile()),
            self._bus.on(FlightLegsChanged, lambda _event: self.reconcile()),
        ]

    def stop(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    def required_destinations(self) -> list[tuple[Destination, date | None, date | None]]:
        """Destinations the current topology needs, with their stay windows."""
        required = []
        for leg in self._flights.state.destination_legs():
            if leg.arrival is None:
                continue
            check_in, check_out = self._flights.stay_window(leg)
            required.append((normalize_from_flight(leg.arrival, leg.id), check_in, check_out))
        return required

    def reconcile(self) -> ReconcileReport:
        """Diff required destinations against current entries and converge.

        Does nothing until at least one destination is known, so entries
        created before any flight is chosen survive.
        """
        report = ReconcileReport()
        required = self.required_destinations()
        if not required:
            logger.debug("Reconcile skipped: no destinations known")
            return report

        destinations = [destination for destination, _, _ in required]
        report.required = [d.city for d in destinations]

        for target, store in self._stores.items():
            report.removed[target] = self._remove_vanished(store, destinations)

        for destination, check_in, check_out in required:
            missing = [
                target
                for target, store in self._stores.items()
                if not any(_matches(entry, destination) for entry in store.entries)
            ]
            if not missing:
                continue
            outcome = self._sync.propagate(destination, missing, check_in, check_out)
            for target in missing:
                if outcome.action_for(target) == "created":
                    report.added.setdefault(target, []).append(destination.city)

        if report.changed:
            logger.info(
                "Topology reconciled",
                extra={
                    "structured": {
                        "trip_type": self._flights.trip_type.value,
                        "required": report.required,
                        "removed": report.removed,
                        "added": report.added,
                    }
                },
            )
        return report

    @staticmethod
    def _remove_vanished(
        store: DestinationScopedStore[Any, Any],
        destinations: list[Destination],
    ) -> list[str]:
        removed: list[str] = []

        def prune(state: Any) -> Any:
            kept = []
            for entry in state.entries:
                if any(_matches(entry, destination) for destination in destinations):
                    kept.append(entry)
                else:
                    removed.append(entry.city)
            if not removed:
                return state

            active_id = state.active_id
            if active_id not in {entry.id for entry in kept}:
                active_id = kept[0].id if kept else None
            return state.model_copy(update={"entries": kept, "active_id": active_id})

        store.update_batch(prune)
        return removed
