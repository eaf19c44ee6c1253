"""Destination models - the canonical shape of a trip stop."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from tripsync.models.common import DestinationSource, Geo, SyncTarget, normalize_city

_DESTINATION_NAMESPACE = uuid.UUID("6f1c2a7e-3b4d-4e8f-9a0b-1c2d3e4f5a6b")


class AirportInfo(BaseModel):
    """Airport record as pushed by the flight surface."""

    iata: str | None = None
    airport: str | None = None
    city: str | None = None
    country: str | None = None
    country_code: str | None = None
    geo: Geo | None = None


def extract_city(airport: AirportInfo | None) -> str:
    """City of an airport: city, then airport name, then IATA code."""
    if airport is None:
        return ""
    return airport.city or airport.airport or airport.iata or "Unknown"


class Destination(BaseModel):
    """Normalized trip stop.

    Produced only by the sync service normalizers. Frozen: a later sync
    replaces the destination wholesale.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    city: str
    country: str = ""
    country_code: str = ""
    geo: Geo | None = None
    source: DestinationSource
    source_id: str | None = None
    synced_at: datetime

    @property
    def city_key(self) -> str:
        """Normalized city used for matching."""
        return normalize_city(self.city)

    def is_same_city(self, other: "Destination") -> bool:
        """Same city (case-insensitive) in the same country."""
        return (
            self.city_key == other.city_key
            and self.country_code.upper() == other.country_code.upper()
        )


def destination_id_for(city: str, country_code: str = "") -> str:
    """Stable destination id for a (city, country) pair."""
    name = f"{normalize_city(city)}|{country_code.strip().upper()}"
    return f"dest-{uuid.uuid5(_DESTINATION_NAMESPACE, name)}"


SyncState = Literal["synced", "blocked", "manual"]

SyncAction = Literal["created", "updated", "unchanged", "blocked", "skipped"]


class SyncStatus(BaseModel):
    """Display-only sync status for a destination in a widget."""

    model_config = ConfigDict(frozen=True)

    destination_id: str
    state: SyncState
    sync_source: DestinationSource | None = None
    synced_at: datetime | None = None
    source_label: str | None = None


class TargetOutcome(BaseModel):
    """Result of propagating one destination to one target store."""

    target: SyncTarget
    action: SyncAction
    reason: str | None = None


class SyncOutcome(BaseModel):
    """Result of a propagation across all requested targets."""

    destination: Destination
    results: list[TargetOutcome] = Field(default_factory=list)

    def action_for(self, target: SyncTarget) -> SyncAction | None:
        """Action recorded for a target, if it was requested."""
        for result in self.results:
            if result.target == target:
                return result.action
        return None

    @property
    def blocked(self) -> bool:
        """True if any target refused the destination."""
        return any(r.action == "blocked" for r in self.results)
