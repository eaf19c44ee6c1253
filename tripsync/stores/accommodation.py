"""Accommodation store - one lodging request per destination city."""

import logging
import math
from typing import Any

from tripsync.bus.event_bus import EventBus
from tripsync.models.common import Origin
from tripsync.models.entries import AccommodationEntry
from tripsync.models.events import DestinationAccommodationUpdated, TravelersChanged
from tripsync.models.memory import AccommodationMemory, BudgetDefaults
from tripsync.models.travelers import RoomConfig, TravelerGroup
from tripsync.persistence.migration import ACCOMMODATION_STEPS
from tripsync.policy.conflict import PolicyDecision
from tripsync.stores.base import DestinationScopedStore
from tripsync.sync.normalize import normalize_from_accommodation

logger = logging.getLogger(__name__)

# Max children sharing the first room with adults
_CHILDREN_PER_ROOM = 2


def suggest_rooms(travelers: TravelerGroup) -> list[RoomConfig]:
    """Default room split for a traveler group.

    Up to two adults share one room; larger parties get one room per two
    adults, with children placed in the first room.
    """
    if travelers.adults <= 2:
        return [
            RoomConfig(
                adults=travelers.adults,
                children=travelers.children,
                children_ages=list(travelers.children_ages),
            )
        ]

    room_count = math.ceil(travelers.adults / 2)
    rooms: list[RoomConfig] = []
    remaining_adults = travelers.adults
    for index in range(room_count):
        adults = min(2, remaining_adults)
        remaining_adults -= adults
        if index == 0:
            children = min(travelers.children, _CHILDREN_PER_ROOM)
            ages = list(travelers.children_ages[:children])
        else:
            children = 0
            ages = []
        rooms.append(RoomConfig(adults=adults, children=children, children_ages=ages))
    return rooms


class AccommodationStore(DestinationScopedStore[AccommodationMemory, AccommodationEntry]):
    """Accommodation requests, room configuration and budget defaults."""

    store_name = "accommodation"
    tab = "stays"
    state_model = AccommodationMemory
    entry_model = AccommodationEntry
    migration_steps = ACCOMMODATION_STEPS

    sync_target = "accommodation"
    date_fields = ("check_in", "check_out")
    budget_fields = ("budget_preset", "price_min", "price_max")

    def __init__(self, bus: EventBus, defaults: BudgetDefaults | None = None) -> None:
        self._initial_defaults = defaults or BudgetDefaults()
        super().__init__(bus)
        bus.on(TravelersChanged, self._on_travelers_changed)

    def default_state(self) -> AccommodationMemory:
        return AccommodationMemory(defaults=self._initial_defaults)

    @property
    def rooms(self) -> list[RoomConfig]:
        """Rooms to book: the custom split, or the automatic suggestion."""
        if not self._state.use_auto_rooms and self._state.custom_rooms:
            return list(self._state.custom_rooms)
        return suggest_rooms(self._state.travelers)

    def suggested_rooms(self) -> list[RoomConfig]:
        return suggest_rooms(self._state.travelers)

    def set_custom_rooms(self, rooms: list[RoomConfig]) -> None:
        """Use an explicit room split instead of the automatic one."""
        self._commit(
            self._state.model_copy(update={"custom_rooms": list(rooms), "use_auto_rooms": False})
        )

    def use_auto_rooms(self) -> None:
        if self._state.use_auto_rooms:
            return
        self._commit(self._state.model_copy(update={"use_auto_rooms": True}))

    def total_nights(self) -> int:
        return sum(entry.nights for entry in self._state.entries)

    def get_serialized_state(self) -> dict[str, Any]:
        entries_by_city: dict[str, list[dict[str, Any]]] = {}
        for entry in self._state.entries:
            key = entry.city or "unassigned"
            entries_by_city.setdefault(key, []).append(
                {
                    "check_in": entry.check_in.isoformat() if entry.check_in else None,
                    "check_out": entry.check_out.isoformat() if entry.check_out else None,
                    "nights": entry.nights,
                    "budget_preset": entry.budget_preset.value,
                    "price_min": entry.price_min,
                    "price_max": entry.price_max,
                    "types": [t.value for t in entry.types],
                    "min_rating": entry.min_rating,
                    "amenities": list(entry.amenities),
                    "notes": entry.notes,
                }
            )

        defaults = self._state.defaults
        return {
            "total_entries": len(self._state.entries),
            "entries_by_city": entries_by_city,
            "defaults": {
                "budget_preset": defaults.budget_preset.value,
                "price_min": defaults.min,
                "price_max": defaults.max,
            },
            "rooms": [room.model_dump() for room in self.rooms],
            "total_nights": self.total_nights(),
        }

    def _after_update(
        self,
        before: AccommodationEntry,
        decision: PolicyDecision[AccommodationEntry],
        origin: Origin,
    ) -> None:
        if origin != "direct" or "city" not in decision.applied:
            return
        entry = decision.entry
        if not entry.city_key or entry.city_key == before.city_key:
            return

        destination = normalize_from_accommodation(entry)
        logger.info("Accommodation %s moved to %s", entry.id, entry.city)
        self._bus.emit(
            DestinationAccommodationUpdated(
                accommodation_id=entry.id,
                destination=destination,
                previous_destination_id=entry.destination_id,
            )
        )

    def _on_travelers_changed(self, event: TravelersChanged) -> None:
        travelers = TravelerGroup(
            adults=event.adults,
            children=event.children,
            infants=event.infants,
            children_ages=list(event.children_ages),
        )
        if travelers == self._state.travelers:
            return
        self._commit(self._state.model_copy(update={"travelers": travelers}))
