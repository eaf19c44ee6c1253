"""Domain entry models - one record per destination-scoped store entry."""

import uuid
from datetime import date, datetime
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from tripsync.models.common import (
    AccommodationType,
    BudgetPreset,
    Geo,
    normalize_city,
)
from tripsync.models.destination import AirportInfo

ProtectedFamily = Literal["dates", "budget", "destination"]

# Written only by destination propagation; they drive sync matching
SYNC_MANAGED_FIELDS = frozenset({"destination_id", "synced_from_destination", "synced_at"})


def new_entry_id() -> str:
    """Generate an entry id."""
    return str(uuid.uuid4())


class ProtectedEntry(BaseModel):
    """Base for records carrying protection flags.

    `protected_families` maps a field family to its companion flag and the
    fields it guards. Flags are plain data; only the conflict policy reads them.
    """

    protected_families: ClassVar[dict[ProtectedFamily, tuple[str, tuple[str, ...]]]] = {}
    read_only_fields: ClassVar[frozenset[str]] = frozenset({"id"})
    sync_managed_fields: ClassVar[frozenset[str]] = frozenset()

    id: str = Field(default_factory=new_entry_id)
    city: str = ""

    @property
    def city_key(self) -> str:
        """Normalized city used for matching."""
        return normalize_city(self.city)


class AccommodationEntry(ProtectedEntry):
    """Accommodation request for one city."""

    protected_families: ClassVar[dict[ProtectedFamily, tuple[str, tuple[str, ...]]]] = {
        "dates": ("user_modified_dates", ("check_in", "check_out")),
        "budget": ("user_modified_budget", ("budget_preset", "price_min", "price_max")),
        "destination": (
            "user_modified_destination",
            ("city", "country", "country_code", "geo"),
        ),
    }

    sync_managed_fields: ClassVar[frozenset[str]] = SYNC_MANAGED_FIELDS

    destination_id: str | None = None
    country: str = ""
    country_code: str = ""
    geo: Geo | None = None

    check_in: date | None = None
    check_out: date | None = None

    budget_preset: BudgetPreset = BudgetPreset.comfort
    price_min: int = Field(default=80, ge=0)
    price_max: int = Field(default=180, ge=0)

    types: list[AccommodationType] = Field(default_factory=list)
    min_rating: float | None = Field(default=None, ge=1, le=10)
    amenities: list[str] = Field(default_factory=list)
    notes: str = ""

    synced_from_destination: bool = False
    synced_at: datetime | None = None

    user_modified_dates: bool = False
    user_modified_budget: bool = False
    user_modified_destination: bool = False

    @field_validator("types")
    @classmethod
    def validate_types(cls, v: list[AccommodationType]) -> list[AccommodationType]:
        """At most two lodging types; "any" excludes the others."""
        if AccommodationType.any in v and len(v) > 1:
            raise ValueError("'any' cannot be combined with other types")
        if len(v) > 2:
            raise ValueError("at most two accommodation types")
        return v

    @model_validator(mode="after")
    def validate_ranges(self) -> "AccommodationEntry":
        """Ensure price_min <= price_max and check_in <= check_out."""
        if self.price_min > self.price_max:
            raise ValueError("price_min must be <= price_max")
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out must be >= check_in")
        return self

    @property
    def nights(self) -> int:
        """Nights between check-in and check-out (0 if incomplete)."""
        if self.check_in and self.check_out:
            return max(0, (self.check_out - self.check_in).days)
        return 0


class ActivityEntry(ProtectedEntry):
    """Activity planning for one city."""

    protected_families: ClassVar[dict[ProtectedFamily, tuple[str, tuple[str, ...]]]] = {
        "dates": ("user_modified_dates", ("start_date", "end_date")),
        "budget": ("user_modified_budget", ("budget_preset", "budget_min", "budget_max")),
        "destination": (
            "user_modified_destination",
            ("city", "country", "country_code", "geo"),
        ),
    }

    sync_managed_fields: ClassVar[frozenset[str]] = SYNC_MANAGED_FIELDS

    destination_id: str | None = None
    country: str = ""
    country_code: str = ""
    geo: Geo | None = None

    start_date: date | None = None
    end_date: date | None = None

    budget_preset: BudgetPreset = BudgetPreset.custom
    budget_min: int = Field(default=0, ge=0)
    budget_max: int = Field(default=150, ge=0)

    categories: list[str] = Field(default_factory=list)
    notes: str = ""

    synced_from_destination: bool = False
    synced_at: datetime | None = None

    user_modified_dates: bool = False
    user_modified_budget: bool = False
    user_modified_destination: bool = False

    @model_validator(mode="after")
    def validate_ranges(self) -> "ActivityEntry":
        """Ensure budget_min <= budget_max and start_date <= end_date."""
        if self.budget_min > self.budget_max:
            raise ValueError("budget_min must be <= budget_max")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class FlightLeg(ProtectedEntry):
    """One flight leg; `city` is the arrival city."""

    protected_families: ClassVar[dict[ProtectedFamily, tuple[str, tuple[str, ...]]]] = {
        "dates": ("user_modified_dates", ("departure_date",)),
    }

    departure: AirportInfo | None = None
    arrival: AirportInfo | None = None
    departure_date: date | None = None

    user_modified_dates: bool = False
