"""Common types and enums shared across all models."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class Geo(BaseModel):
    """Geographic coordinates (WGS84)."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class BudgetPreset(str, Enum):
    """Budget preset."""

    eco = "eco"
    comfort = "comfort"
    premium = "premium"
    custom = "custom"


class PresetBounds(BaseModel):
    """Price bounds for a budget preset."""

    min: int
    max: int
    label: str


BUDGET_PRESETS: dict[BudgetPreset, PresetBounds] = {
    BudgetPreset.eco: PresetBounds(min=0, max=80, label="Economy"),
    BudgetPreset.comfort: PresetBounds(min=80, max=180, label="Comfort"),
    BudgetPreset.premium: PresetBounds(min=180, max=500, label="Premium"),
    BudgetPreset.custom: PresetBounds(min=0, max=500, label="Custom"),
}


class TripType(str, Enum):
    """Trip topology."""

    oneway = "oneway"
    roundtrip = "roundtrip"
    multi = "multi"


class AccommodationType(str, Enum):
    """Lodging type."""

    hotel = "hotel"
    apartment = "apartment"
    villa = "villa"
    hostel = "hostel"
    guesthouse = "guesthouse"
    any = "any"


class CabinClass(str, Enum):
    """Flight cabin class."""

    economy = "economy"
    premium_economy = "premium_economy"
    business = "business"
    first = "first"


# Surface that produced a destination
DestinationSource = Literal["flight", "accommodation", "activity", "manual"]

# Stores reachable by propagation
SyncTarget = Literal["accommodation", "activity"]

StoreName = Literal["flight", "accommodation", "activity", "traveler"]

Tab = Literal["flights", "stays", "activities", "preferences"]

# Write origin: a direct user edit, or automated propagation
Origin = Literal["direct", "auto"]


def normalize_city(city: str | None) -> str:
    """Normalize a free-text city name for comparison."""
    return (city or "").strip().lower()
