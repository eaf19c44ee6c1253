"""Traveler store - party composition shared by every surface."""

from typing import Any

from tripsync.models.events import TravelersChanged
from tripsync.models.memory import TravelerMemory
from tripsync.models.travelers import TravelerGroup
from tripsync.persistence.migration import TRAVELER_STEPS
from tripsync.stores.base import MemoryStore


class TravelerStore(MemoryStore[TravelerMemory]):
    store_name = "traveler"
    tab = "preferences"
    state_model = TravelerMemory
    migration_steps = TRAVELER_STEPS

    @property
    def travelers(self) -> TravelerGroup:
        return self._state.travelers

    def set_travelers(
        self,
        adults: int,
        children: int = 0,
        infants: int = 0,
        children_ages: list[int] | None = None,
    ) -> None:
        """Replace the traveler counts and announce the change.

        Raises:
            pydantic.ValidationError: If the counts are invalid
        """
        travelers = TravelerGroup(
            adults=adults,
            children=children,
            infants=infants,
            children_ages=list(children_ages or []),
        )
        if travelers == self._state.travelers:
            return
        self._commit(TravelerMemory(travelers=travelers))
        self.announce()

    def announce(self) -> None:
        """Publish the current counts (also used after hydration)."""
        travelers = self._state.travelers
        self._bus.emit(
            TravelersChanged(
                adults=travelers.adults,
                children=travelers.children,
                infants=travelers.infants,
                children_ages=list(travelers.children_ages),
            )
        )

    def get_serialized_state(self) -> dict[str, Any]:
        travelers = self._state.travelers
        return {
            "travelers": travelers.model_dump(),
            "total": travelers.total,
        }
