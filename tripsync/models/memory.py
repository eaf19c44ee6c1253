"""Store state models - the `data` payload of each versioned snapshot."""

from datetime import date

from pydantic import BaseModel, Field

from tripsync.models.common import BudgetPreset, CabinClass, TripType, normalize_city
from tripsync.models.destination import extract_city
from tripsync.models.entries import AccommodationEntry, ActivityEntry, FlightLeg
from tripsync.models.travelers import RoomConfig, TravelerGroup


class BudgetDefaults(BaseModel):
    """Global budget default applied to new entries."""

    budget_preset: BudgetPreset = BudgetPreset.comfort
    min: int = Field(default=80, ge=0)
    max: int = Field(default=180, ge=0)


class AccommodationMemory(BaseModel):
    """Accommodation store state."""

    entries: list[AccommodationEntry] = Field(default_factory=list)
    active_id: str | None = None
    defaults: BudgetDefaults = Field(default_factory=BudgetDefaults)
    use_auto_rooms: bool = True
    custom_rooms: list[RoomConfig] = Field(default_factory=list)
    travelers: TravelerGroup = Field(default_factory=TravelerGroup)


class ActivityMemory(BaseModel):
    """Activity store state."""

    entries: list[ActivityEntry] = Field(default_factory=list)
    active_id: str | None = None
    defaults: BudgetDefaults = Field(
        default_factory=lambda: BudgetDefaults(budget_preset=BudgetPreset.custom, min=0, max=150)
    )


class FlightMemory(BaseModel):
    """Flight store state."""

    entries: list[FlightLeg] = Field(default_factory=list)
    active_id: str | None = None
    trip_type: TripType = TripType.roundtrip
    return_date: date | None = None
    cabin_class: CabinClass = CabinClass.economy
    direct_only: bool = False

    def destination_legs(self) -> list[FlightLeg]:
        """Legs whose arrival is a trip destination under the current topology.

        One-way and round-trip only consider the first leg. Multi considers
        every leg, skipping legs that return to the trip origin and repeated
        cities.
        """
        if not self.entries:
            return []
        legs = [leg for leg in self.entries if leg.arrival is not None and leg.city_key]
        first = self.entries[0]
        if self.trip_type != TripType.multi:
            return [first] if legs and legs[0] is first else []

        origin_key = normalize_city(extract_city(first.departure))
        seen: set[str] = set()
        result: list[FlightLeg] = []
        for leg in legs:
            if leg.city_key == origin_key or leg.city_key in seen:
                continue
            seen.add(leg.city_key)
            result.append(leg)
        return result


class TravelerMemory(BaseModel):
    """Traveler store state."""

    travelers: TravelerGroup = Field(default_factory=TravelerGroup)
