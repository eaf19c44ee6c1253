"""Unit tests for chat instruction targeting."""

from datetime import date

import pytest

from tripsync.models.common import AccommodationType, BudgetPreset
from tripsync.models.events import (
    ActivityUpdate,
    LocationCitySelected,
    MemoryChanged,
    PlannerEventBase,
)
from tripsync.models.instructions import ChatInstruction
from tripsync.session import PlannerSession


@pytest.fixture
def two_cities(session: PlannerSession) -> PlannerSession:
    """Session with Tokyo and Bangkok entries in both stores."""
    session.bus.emit(LocationCitySelected(city="Tokyo", country="Japan", country_code="JP"))
    session.bus.emit(LocationCitySelected(city="Bangkok", country="Thailand", country_code="TH"))
    return session


def test_named_city_is_matched_case_insensitively(two_cities: PlannerSession) -> None:
    result = two_cities.chat.resolve(
        ChatInstruction(target_city="TOKYO", fields={"budget_preset": "premium"})
    )

    assert result.status == "applied"
    assert result.mutated
    assert [c.city for c in result.changes] == ["Tokyo"]
    assert result.changes[0].applied == ["budget_preset", "price_max", "price_min"]
    tokyo = two_cities.accommodation.by_city("Tokyo")
    bangkok = two_cities.accommodation.by_city("Bangkok")
    assert tokyo is not None and bangkok is not None
    assert tokyo.budget_preset == BudgetPreset.premium
    assert tokyo.user_modified_budget
    assert bangkok.budget_preset == BudgetPreset.comfort


def test_unknown_city_changes_nothing(two_cities: PlannerSession) -> None:
    before = two_cities.accommodation.state

    result = two_cities.chat.resolve(
        ChatInstruction(target_city="Berlin", fields={"budget_preset": "eco"})
    )

    assert result.status == "not_found"
    assert result.attempted_city == "Berlin"
    assert result.available_cities == ["Tokyo", "Bangkok"]
    assert "Berlin" in result.message
    assert "Tokyo, Bangkok" in result.message
    assert two_cities.accommodation.state is before


def test_missing_target_with_several_cities_is_ambiguous(two_cities: PlannerSession) -> None:
    before = two_cities.accommodation.state

    result = two_cities.chat.resolve(ChatInstruction(fields={"budget_preset": "eco"}))

    assert result.status == "ambiguous"
    assert not result.mutated
    assert two_cities.accommodation.state is before


def test_missing_target_with_one_city_updates_it(session: PlannerSession) -> None:
    session.bus.emit(LocationCitySelected(city="Tokyo"))

    result = session.chat.resolve(ChatInstruction(fields={"notes": "near a station"}))

    assert result.status == "applied"
    assert session.accommodation.entries[0].notes == "near a station"


def test_missing_target_with_one_blank_entry_updates_it(session: PlannerSession) -> None:
    session.accommodation.add()

    result = session.chat.resolve(ChatInstruction(fields={"budget_preset": "eco"}))

    assert result.status == "applied"
    assert session.accommodation.entries[0].user_modified_budget


def test_no_entries_is_not_found(session: PlannerSession) -> None:
    result = session.chat.resolve(ChatInstruction(fields={"budget_preset": "eco"}))
    assert result.status == "not_found"

    result = session.chat.resolve(ChatInstruction(target_city="all", fields={"budget_preset": "eco"}))
    assert result.status == "not_found"


def test_all_cities_keeps_user_owned_fields(two_cities: PlannerSession) -> None:
    tokyo = two_cities.accommodation.by_city("Tokyo")
    assert tokyo is not None
    two_cities.accommodation.update(tokyo.id, {"budget_preset": "premium"})
    changes: list[PlannerEventBase] = []
    two_cities.bus.on(MemoryChanged, changes.append)

    result = two_cities.chat.resolve(ChatInstruction(target_city="all", fields={"budget_preset": "eco"}))

    assert result.status == "applied"
    assert changes == [MemoryChanged(store="accommodation")]
    by_city = {change.city: change for change in result.changes}
    assert by_city["Tokyo"].applied == []
    assert by_city["Tokyo"].skipped["budget_preset"] == "protected"
    assert by_city["Bangkok"].applied == ["budget_preset", "price_max", "price_min"]
    assert "Kept your budget_preset" in result.message

    tokyo = two_cities.accommodation.by_city("Tokyo")
    bangkok = two_cities.accommodation.by_city("Bangkok")
    assert tokyo is not None and bangkok is not None
    assert tokyo.budget_preset == BudgetPreset.premium
    assert bangkok.budget_preset == BudgetPreset.eco
    # Automated writes never take ownership
    assert not bangkok.user_modified_budget


@pytest.mark.parametrize(
    "fields",
    [
        {"price_min": 500, "price_max": 100},
        {"budget_preset": "luxury"},
        {"check_in": "2025-06-10", "check_out": "2025-06-01"},
        {"city": "Bangkok"},
    ],
)
def test_invalid_values_are_reported_without_writing(
    two_cities: PlannerSession, fields: dict[str, object]
) -> None:
    before = two_cities.accommodation.state

    result = two_cities.chat.resolve(ChatInstruction(target_city="Tokyo", fields=fields))

    assert result.status == "invalid"
    assert result.changes == []
    assert two_cities.accommodation.state is before


@pytest.mark.parametrize(
    "fields",
    [
        {"colour": "red"},
        {"destination_id": "elsewhere", "synced_from_destination": False},
    ],
)
def test_no_user_editable_fields_is_invalid(two_cities: PlannerSession, fields: dict[str, object]) -> None:
    before = two_cities.accommodation.state

    result = two_cities.chat.resolve(ChatInstruction(target_city="Tokyo", fields=fields))

    assert result.status == "invalid"
    assert result.message == "No accommodation fields to update"
    assert two_cities.accommodation.state is before


def test_multi_field_instruction_is_one_transition(two_cities: PlannerSession) -> None:
    """Test that listeners never observe a partially applied instruction."""
    observed: list[tuple[object, ...]] = []

    def snapshot(event: MemoryChanged) -> None:
        if event.store != "accommodation":
            return
        tokyo = two_cities.accommodation.by_city("Tokyo")
        assert tokyo is not None
        observed.append((tokyo.budget_preset, tokyo.types, tokyo.check_in, tokyo.check_out))

    two_cities.bus.on(MemoryChanged, snapshot)

    result = two_cities.chat.resolve(
        ChatInstruction(
            target_city="tokyo",
            fields={
                "budget_preset": "premium",
                "types": ["hotel"],
                "check_in": "2025-06-01",
                "check_out": "2025-06-05",
            },
        )
    )

    assert result.status == "applied"
    assert observed == [
        (BudgetPreset.premium, [AccommodationType.hotel], date(2025, 6, 1), date(2025, 6, 5))
    ]


def test_activity_update_event_is_resolved(two_cities: PlannerSession) -> None:
    two_cities.bus.emit(ActivityUpdate(city="bangkok", updates={"categories": ["food", "markets"]}))

    bangkok = two_cities.activity.by_city("Bangkok")
    tokyo = two_cities.activity.by_city("Tokyo")
    assert bangkok is not None and tokyo is not None
    assert bangkok.categories == ["food", "markets"]
    assert tokyo.categories == []
