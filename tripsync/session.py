"""Planner session - composition root for one trip-planning session.

Builds the bus, the four stores and the services around them, and wires
store changes to debounced persistence. Nothing here is global: every
session owns its own bus.
"""

import logging
from typing import Any

from tripsync.bus.event_bus import EventBus, Unsubscribe
from tripsync.chat.targeting import ChatTargetingResolver
from tripsync.config import Settings, get_settings
from tripsync.models.common import BudgetPreset, StoreName
from tripsync.models.events import MemoryChanged
from tripsync.models.memory import BudgetDefaults
from tripsync.persistence.engine import create_engine_from_settings
from tripsync.persistence.persister import DebouncedPersister
from tripsync.persistence.storage import (
    InMemorySnapshotStorage,
    SnapshotStorage,
    SqlSnapshotStorage,
    snapshot_key,
)
from tripsync.stores.accommodation import AccommodationStore
from tripsync.stores.activity import ActivityStore
from tripsync.stores.base import MemoryStore
from tripsync.stores.flight import FlightStore
from tripsync.stores.traveler import TravelerStore
from tripsync.sync.destination_sync import DestinationSyncService
from tripsync.topology.reconciler import TopologyReconciler
from tripsync.widgets.history import WidgetHistory

logger = logging.getLogger(__name__)


def create_storage(settings: Settings) -> SnapshotStorage:
    """SQL storage when a database URL is configured, in-memory otherwise."""
    if settings.database_url:
        return SqlSnapshotStorage.from_engine(create_engine_from_settings(settings))
    return InMemorySnapshotStorage()


class PlannerSession:
    """One planner: bus, stores, sync, chat targeting, topology and persistence."""

    def __init__(
        self,
        settings: Settings | None = None,
        storage: SnapshotStorage | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.bus = EventBus(raise_handler_errors=self.settings.bus_raise_handler_errors)

        self.flights = FlightStore(self.bus)
        self.accommodation = AccommodationStore(
            self.bus,
            defaults=BudgetDefaults(
                budget_preset=self.settings.default_budget_preset,
                min=self.settings.default_price_min,
                max=self.settings.default_price_max,
            ),
        )
        self.activity = ActivityStore(
            self.bus,
            defaults=BudgetDefaults(
                budget_preset=BudgetPreset.custom,
                min=self.settings.default_activity_budget_min,
                max=self.settings.default_activity_budget_max,
            ),
        )
        self.travelers = TravelerStore(self.bus)

        self.sync = DestinationSyncService(self.bus)
        self.chat = ChatTargetingResolver(self.bus, self.accommodation, self.activity)
        self.topology = TopologyReconciler(
            self.bus, self.flights, self.accommodation, self.activity, self.sync
        )
        self.widget_history = WidgetHistory(
            self.bus,
            limit=self.settings.widget_history_limit,
            context_size=self.settings.llm_context_interactions,
        )

        self.storage = storage if storage is not None else create_storage(self.settings)
        self.persister = DebouncedPersister(self.storage, self.settings.persist_debounce_seconds)
        self._persist_subscription: Unsubscribe | None = None

    @classmethod
    def open(
        cls,
        settings: Settings | None = None,
        storage: SnapshotStorage | None = None,
    ) -> "PlannerSession":
        """Create a session, hydrate it from storage and start its services."""
        session = cls(settings, storage)
        session.load()
        session.start()
        return session

    @property
    def stores(self) -> dict[StoreName, MemoryStore[Any]]:
        return {
            "flight": self.flights,
            "accommodation": self.accommodation,
            "activity": self.activity,
            "traveler": self.travelers,
        }

    def start(self) -> None:
        """Subscribe services and persistence to the bus."""
        self.sync.start()
        self.chat.start()
        self.topology.start()
        self.widget_history.start()
        if self._persist_subscription is None:
            self._persist_subscription = self.bus.on(MemoryChanged, self._on_memory_changed)

    def stop(self) -> None:
        self.sync.stop()
        self.chat.stop()
        self.topology.stop()
        self.widget_history.stop()
        if self._persist_subscription is not None:
            self._persist_subscription()
            self._persist_subscription = None

    def load(self) -> dict[StoreName, bool]:
        """Hydrate every store from storage.

        Stores whose snapshot is missing or unusable start from defaults.
        Upgraded snapshots are written back immediately.

        Returns:
            Per store, whether a snapshot was loaded
        """
        loaded: dict[StoreName, bool] = {}
        for name, store in self.stores.items():
            key = snapshot_key(name)
            loaded[name] = store.load_snapshot(
                self.storage.read(key),
                on_upgraded=lambda raw, key=key: self.storage.write(key, raw.model_dump_json()),
            )
        self.travelers.announce()
        logger.info("Planner session loaded", extra={"structured": {"loaded": loaded}})
        return loaded

    def save(self) -> None:
        """Write every store now, bypassing the debounce."""
        for name, store in self.stores.items():
            self.persister.schedule(snapshot_key(name), store.dump_snapshot)
        self.persister.flush()

    def flush(self) -> int:
        """Write pending snapshots now (visibility loss, shutdown)."""
        return self.persister.flush()

    def close(self) -> None:
        self.flush()
        self.stop()

    def serialized_state(self) -> dict[str, Any]:
        """Assistant-facing state of every store plus recent interactions."""
        state: dict[str, Any] = {name: store.get_serialized_state() for name, store in self.stores.items()}
        state["recent_interactions"] = self.widget_history.context_for_llm()
        return state

    def _on_memory_changed(self, event: MemoryChanged) -> None:
        store = self.stores[event.store]
        self.persister.schedule(snapshot_key(event.store), store.dump_snapshot)
