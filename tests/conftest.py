"""Shared pytest fixtures for all test suites."""

from collections.abc import Callable, Generator

import pytest

from tripsync.bus.event_bus import EventBus
from tripsync.config import Settings
from tripsync.models.common import Geo
from tripsync.models.destination import AirportInfo
from tripsync.models.events import PlannerEventBase
from tripsync.persistence.storage import InMemorySnapshotStorage
from tripsync.session import PlannerSession

AIRPORTS: dict[str, AirportInfo] = {
    "CDG": AirportInfo(
        iata="CDG",
        airport="Paris Charles de Gaulle",
        city="Paris",
        country="France",
        country_code="FR",
        geo=Geo(lat=49.0097, lon=2.5479),
    ),
    "NRT": AirportInfo(
        iata="NRT",
        airport="Narita International",
        city="Tokyo",
        country="Japan",
        country_code="JP",
        geo=Geo(lat=35.772, lon=140.3929),
    ),
    "BKK": AirportInfo(
        iata="BKK",
        airport="Suvarnabhumi",
        city="Bangkok",
        country="Thailand",
        country_code="TH",
        geo=Geo(lat=13.69, lon=100.7501),
    ),
    "KIX": AirportInfo(
        iata="KIX",
        airport="Kansai International",
        city="Osaka",
        country="Japan",
        country_code="JP",
        geo=Geo(lat=34.4347, lon=135.244),
    ),
}


@pytest.fixture
def airport() -> Callable[[str], AirportInfo]:
    """Look up a test airport by IATA code."""

    def _airport(iata: str) -> AirportInfo:
        return AIRPORTS[iata]

    return _airport


@pytest.fixture
def bus() -> EventBus:
    """Event bus that re-raises handler errors."""
    return EventBus(raise_handler_errors=True)


@pytest.fixture
def settings() -> Settings:
    """Test settings: in-memory storage, short debounce, strict bus."""
    return Settings(
        database_url=None,
        bus_raise_handler_errors=True,
        persist_debounce_seconds=0.05,
    )


@pytest.fixture
def storage() -> InMemorySnapshotStorage:
    return InMemorySnapshotStorage()


@pytest.fixture
def session(settings: Settings, storage: InMemorySnapshotStorage) -> Generator[PlannerSession, None, None]:
    """Started planner session on in-memory storage."""
    planner = PlannerSession(settings, storage)
    planner.start()
    yield planner
    planner.stop()


@pytest.fixture
def recorded(bus: EventBus) -> list[PlannerEventBase]:
    """Every event emitted on the `bus` fixture, in dispatch order."""
    events: list[PlannerEventBase] = []
    bus.on_any(events.append)
    return events
