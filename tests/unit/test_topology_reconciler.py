"""Unit tests for trip-topology reconciliation."""

from collections.abc import Callable
from datetime import date

import pytest

from tripsync.models.common import BudgetPreset, TripType
from tripsync.models.destination import AirportInfo
from tripsync.session import PlannerSession

Airport = Callable[[str], AirportInfo]

EXPECTED_CITIES = {
    TripType.oneway: ["Tokyo"],
    TripType.roundtrip: ["Tokyo"],
    TripType.multi: ["Tokyo", "Bangkok"],
}


def add_two_legs(session: PlannerSession, airport: Airport) -> None:
    """Paris -> Tokyo -> Bangkok."""
    session.flights.add_leg(airport("CDG"), airport("NRT"), date(2025, 6, 1))
    session.flights.add_leg(airport("NRT"), airport("BKK"), date(2025, 6, 5))


def cities(session: PlannerSession) -> tuple[list[str], list[str]]:
    return (
        [e.city for e in session.accommodation.entries],
        [e.city for e in session.activity.entries],
    )


@pytest.mark.parametrize(
    ("start", "end"),
    [
        (TripType.oneway, TripType.roundtrip),
        (TripType.oneway, TripType.multi),
        (TripType.roundtrip, TripType.oneway),
        (TripType.roundtrip, TripType.multi),
        (TripType.multi, TripType.oneway),
        (TripType.multi, TripType.roundtrip),
    ],
)
def test_entries_follow_trip_type(
    session: PlannerSession, airport: Airport, start: TripType, end: TripType
) -> None:
    """Test that every store has exactly one entry per required destination."""
    session.flights.set_trip_type(start)
    add_two_legs(session, airport)
    assert cities(session) == (EXPECTED_CITIES[start], EXPECTED_CITIES[start])

    session.flights.set_trip_type(end)

    assert cities(session) == (EXPECTED_CITIES[end], EXPECTED_CITIES[end])


def test_multi_city_stay_windows(session: PlannerSession, airport: Airport) -> None:
    session.flights.set_trip_type(TripType.multi)
    add_two_legs(session, airport)

    tokyo = session.accommodation.by_city("Tokyo")
    bangkok = session.accommodation.by_city("Bangkok")
    assert tokyo is not None and bangkok is not None
    assert (tokyo.check_in, tokyo.check_out) == (date(2025, 6, 1), date(2025, 6, 5))
    assert (bangkok.check_in, bangkok.check_out) == (date(2025, 6, 5), None)


def test_surviving_entries_keep_user_edits(session: PlannerSession, airport: Airport) -> None:
    add_two_legs(session, airport)
    tokyo = session.accommodation.by_city("Tokyo")
    assert tokyo is not None
    session.accommodation.update(tokyo.id, {"budget_preset": "premium", "notes": "ryokan"})

    session.flights.set_trip_type(TripType.multi)
    session.flights.set_trip_type(TripType.roundtrip)

    [kept] = session.accommodation.entries
    assert kept.id == tokyo.id
    assert kept.budget_preset == BudgetPreset.premium
    assert kept.user_modified_budget
    assert kept.notes == "ryokan"


def test_new_destination_inherits_shared_unprotected_budget(
    session: PlannerSession, airport: Airport
) -> None:
    add_two_legs(session, airport)
    tokyo = session.accommodation.by_city("Tokyo")
    assert tokyo is not None
    session.accommodation.update(tokyo.id, {"budget_preset": "eco"}, origin="auto")

    session.flights.set_trip_type(TripType.multi)

    bangkok = session.accommodation.by_city("Bangkok")
    assert bangkok is not None
    assert (bangkok.budget_preset, bangkok.price_min, bangkok.price_max) == (BudgetPreset.eco, 0, 80)
    assert not bangkok.user_modified_budget


def test_new_destination_ignores_user_owned_budget(session: PlannerSession, airport: Airport) -> None:
    add_two_legs(session, airport)
    tokyo = session.accommodation.by_city("Tokyo")
    assert tokyo is not None
    session.accommodation.update(tokyo.id, {"budget_preset": "premium"})

    session.flights.set_trip_type(TripType.multi)

    bangkok = session.accommodation.by_city("Bangkok")
    assert bangkok is not None
    assert bangkok.budget_preset == BudgetPreset.comfort
    assert not bangkok.user_modified_budget


def test_leg_back_to_origin_is_not_a_destination(session: PlannerSession, airport: Airport) -> None:
    session.flights.set_trip_type(TripType.multi)
    session.flights.add_leg(airport("CDG"), airport("NRT"))
    session.flights.add_leg(airport("NRT"), airport("CDG"))

    assert cities(session) == (["Tokyo"], ["Tokyo"])


def test_entries_survive_until_a_destination_is_known(session: PlannerSession, airport: Airport) -> None:
    rome = session.accommodation.add({"city": "Rome"})

    session.flights.set_trip_type(TripType.multi)
    session.flights.add_leg(airport("CDG"))
    report = session.topology.reconcile()

    assert report.required == []
    assert not report.changed
    assert [e.city for e in session.accommodation.entries] == ["Rome"]

    leg_id = session.flights.entries[0].id
    session.flights.set_leg_arrival(leg_id, airport("NRT"))

    assert cities(session) == (["Tokyo"], ["Tokyo"])
    assert session.accommodation.get(rome) is None
    assert session.accommodation.active is not None
    assert session.accommodation.active.city == "Tokyo"


def test_reconcile_report(session: PlannerSession, airport: Airport) -> None:
    session.flights.set_trip_type(TripType.multi)
    add_two_legs(session, airport)
    bangkok = session.activity.by_city("Bangkok")
    assert bangkok is not None
    session.activity.remove(bangkok.id)

    report = session.topology.reconcile()

    assert report.required == ["Tokyo", "Bangkok"]
    assert report.added == {"activity": ["Bangkok"]}
    assert report.removed == {"accommodation": [], "activity": []}
    assert report.changed

    session.topology.stop()
    session.flights.set_trip_type(TripType.oneway)
    report = session.topology.reconcile()

    assert report.removed == {"accommodation": ["Bangkok"], "activity": ["Bangkok"]}
    assert report.added == {}
    assert cities(session) == (["Tokyo"], ["Tokyo"])
