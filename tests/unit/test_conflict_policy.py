"""Unit tests for the field-level conflict resolution policy."""

from datetime import date

import pytest
from pydantic import ValidationError

from tripsync.models.common import BudgetPreset
from tripsync.models.entries import AccommodationEntry, ActivityEntry, FlightLeg
from tripsync.policy.conflict import (
    apply_protected,
    clear_protection,
    field_flags,
    is_protected,
)


def _entry(**fields: object) -> AccommodationEntry:
    return AccommodationEntry(city="Tokyo", **fields)


def test_direct_applies_and_sets_family_flags() -> None:
    """Test that a direct edit applies every field and flags the touched families."""
    entry = _entry()

    decision = apply_protected(
        entry,
        {"budget_preset": BudgetPreset.eco, "price_min": 0, "price_max": 80, "check_in": date(2025, 6, 1)},
        "direct",
    )

    assert decision.entry.budget_preset == BudgetPreset.eco
    assert decision.entry.check_in == date(2025, 6, 1)
    assert decision.entry.user_modified_budget is True
    assert decision.entry.user_modified_dates is True
    assert decision.entry.user_modified_destination is False
    assert decision.flags_set == frozenset({"user_modified_budget", "user_modified_dates"})
    assert decision.skipped == {}


def test_direct_on_unflagged_field_sets_no_flag() -> None:
    """Test that fields outside any family never set a flag."""
    decision = apply_protected(_entry(), {"notes": "late arrival"}, "direct")

    assert decision.entry.notes == "late arrival"
    assert decision.flags_set == frozenset()
    assert not decision.entry.user_modified_budget


def test_auto_skips_protected_family() -> None:
    """Test that automated writes never overwrite a user-owned family."""
    entry = _entry(budget_preset=BudgetPreset.premium, price_min=180, price_max=500, user_modified_budget=True)

    decision = apply_protected(
        entry,
        {"budget_preset": BudgetPreset.eco, "price_min": 0, "price_max": 80, "check_in": date(2025, 6, 1)},
        "auto",
    )

    assert decision.entry.budget_preset == BudgetPreset.premium
    assert decision.entry.price_max == 500
    assert decision.entry.check_in == date(2025, 6, 1)
    assert decision.skipped == {
        "budget_preset": "protected",
        "price_min": "protected",
        "price_max": "protected",
    }
    assert decision.applied == {"check_in": date(2025, 6, 1)}


def test_auto_never_sets_flags() -> None:
    """Test that an automated write leaves every flag false."""
    decision = apply_protected(
        _entry(),
        {"budget_preset": BudgetPreset.eco, "check_in": date(2025, 6, 1), "city": "Kyoto"},
        "auto",
    )

    assert decision.changed
    assert decision.flags_set == frozenset()
    assert not decision.entry.user_modified_budget
    assert not decision.entry.user_modified_dates
    assert not decision.entry.user_modified_destination


def test_protection_is_monotonic_under_auto_sequences() -> None:
    """Test that any sequence of auto writes leaves a protected budget unchanged."""
    entry = apply_protected(_entry(), {"budget_preset": BudgetPreset.premium}, "direct").entry

    for preset in (BudgetPreset.eco, BudgetPreset.comfort, BudgetPreset.custom):
        entry = apply_protected(entry, {"budget_preset": preset}, "auto").entry
        assert entry.budget_preset == BudgetPreset.premium
        assert entry.user_modified_budget is True

    entry = apply_protected(entry, {"budget_preset": BudgetPreset.eco}, "direct").entry
    assert entry.budget_preset == BudgetPreset.eco


def test_unknown_and_read_only_fields_are_skipped() -> None:
    """Test that ids, flags and unknown fields are never written."""
    entry = _entry()

    decision = apply_protected(
        entry,
        {"id": "other", "user_modified_budget": True, "bogus": 1},
        "direct",
    )

    assert decision.entry is entry
    assert decision.skipped == {
        "id": "read_only",
        "user_modified_budget": "read_only",
        "bogus": "unknown_field",
    }
    assert not decision.changed


def test_input_entry_is_not_mutated() -> None:
    """Test that the policy returns a new entry and leaves the input as is."""
    entry = _entry()

    decision = apply_protected(entry, {"notes": "x", "budget_preset": BudgetPreset.eco}, "direct")

    assert decision.entry is not entry
    assert entry.notes == ""
    assert entry.user_modified_budget is False
    assert decision.entry.id == entry.id


def test_invalid_result_raises_validation_error() -> None:
    """Test that an incoherent result is rejected instead of stored."""
    with pytest.raises(ValidationError):
        apply_protected(_entry(), {"price_min": 300, "price_max": 100}, "direct")


def test_clear_protection_is_explicit_and_per_family() -> None:
    """Test that un-protecting one family leaves the others protected."""
    entry = apply_protected(
        _entry(), {"budget_preset": BudgetPreset.eco, "check_in": date(2025, 6, 1)}, "direct"
    ).entry

    cleared = clear_protection(entry, "budget")

    assert not is_protected(cleared, "budget")
    assert is_protected(cleared, "dates")
    assert clear_protection(cleared, "budget") is cleared


def test_activity_and_flight_families() -> None:
    """Test family maps of the other entry types."""
    assert field_flags(ActivityEntry)["budget_max"] == "user_modified_budget"
    assert field_flags(ActivityEntry)["start_date"] == "user_modified_dates"
    assert field_flags(FlightLeg) == {"departure_date": "user_modified_dates"}
    assert not is_protected(FlightLeg(), "budget")


def test_sync_bookkeeping_is_written_by_automation_only() -> None:
    """Test that user edits cannot rewrite the fields sync matching relies on."""
    entry = _entry(destination_id="tokyo-jp")
    incoming = {"destination_id": "osaka-jp", "synced_from_destination": True}

    direct = apply_protected(entry, incoming, "direct")
    auto = apply_protected(entry, incoming, "auto")

    assert direct.entry is entry
    assert direct.skipped == {"destination_id": "read_only", "synced_from_destination": "read_only"}
    assert auto.entry.destination_id == "osaka-jp"
    assert auto.entry.synced_from_destination
