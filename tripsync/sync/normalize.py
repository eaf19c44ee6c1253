"""Destination normalizers - the only constructors of Destination."""

from datetime import UTC, datetime

from tripsync.models.common import DestinationSource, Geo
from tripsync.models.destination import (
    AirportInfo,
    Destination,
    destination_id_for,
    extract_city,
)
from tripsync.models.entries import AccommodationEntry

SOURCE_LABELS: dict[DestinationSource, str] = {
    "flight": "Synced from flights",
    "accommodation": "Synced from stays",
    "activity": "Added manually",
    "manual": "Added manually",
}


def normalize_from_flight(airport: AirportInfo, leg_id: str) -> Destination:
    """Convert a flight leg's arrival airport into a Destination.

    The city (not the airport) is what propagates to other stores.
    """
    city = extract_city(airport)
    country_code = (airport.country_code or "").upper()
    return Destination(
        id=destination_id_for(city, country_code),
        city=city,
        country=airport.country or "",
        country_code=country_code,
        geo=airport.geo,
        source="flight",
        source_id=leg_id,
        synced_at=datetime.now(UTC),
    )


def normalize_from_accommodation(entry: AccommodationEntry) -> Destination:
    """Convert an accommodation entry's location into a Destination."""
    country_code = entry.country_code.upper()
    return Destination(
        id=destination_id_for(entry.city, country_code),
        city=entry.city.strip(),
        country=entry.country,
        country_code=country_code,
        geo=entry.geo,
        source="accommodation",
        source_id=entry.id,
        synced_at=datetime.now(UTC),
    )


def normalize_manual(
    city: str,
    country: str = "",
    country_code: str = "",
    geo: Geo | None = None,
) -> Destination:
    """Create a Destination from a manually selected city."""
    country_code = country_code.upper()
    return Destination(
        id=destination_id_for(city, country_code),
        city=city.strip(),
        country=country,
        country_code=country_code,
        geo=geo,
        source="manual",
        synced_at=datetime.now(UTC),
    )


def source_label(source: DestinationSource | None) -> str | None:
    """Human-readable sync badge label."""
    if source is None:
        return None
    return SOURCE_LABELS.get(source, "Unknown source")
