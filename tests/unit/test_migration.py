"""Unit tests for snapshot versioning and migration."""

import json
from typing import Any

import pytest

from tripsync.bus.event_bus import EventBus
from tripsync.models.common import BudgetPreset
from tripsync.models.events import PlannerEventBase
from tripsync.models.snapshot import CURRENT_MEMORY_VERSION, RawMemory
from tripsync.persistence.migration import ACCOMMODATION_STEPS, migrate
from tripsync.stores.accommodation import AccommodationStore
from tripsync.stores.flight import FlightStore

V1_ACCOMMODATION = json.dumps(
    {
        "accommodations": [
            {"id": "a1", "city": "Tokyo", "budget_preset": "eco", "price_min": 0, "price_max": 80},
            {"id": "a2", "city": "Osaka", "check_in": "2025-06-05"},
        ],
        "active_index": 1,
    }
)


class TestMigrate:
    """Test the migration runner."""

    def test_v1_accommodation_is_upgraded(self) -> None:
        upgraded: list[RawMemory] = []

        result = migrate(V1_ACCOMMODATION, ACCOMMODATION_STEPS, store="accommodation", on_upgraded=upgraded.append)

        assert result is not None
        assert result.version == CURRENT_MEMORY_VERSION
        assert [e["id"] for e in result.data["entries"]] == ["a1", "a2"]
        assert all(e["user_modified_budget"] is False for e in result.data["entries"])
        assert result.data["active_id"] == "a2"
        assert "active_index" not in result.data
        assert result.data["defaults"] == {"budget_preset": "comfort", "min": 80, "max": 180}
        assert upgraded == [result]

    def test_current_version_is_not_rewritten(self) -> None:
        upgraded: list[RawMemory] = []
        stored = json.dumps({"version": CURRENT_MEMORY_VERSION, "data": {"entries": []}})

        result = migrate(stored, ACCOMMODATION_STEPS, store="accommodation", on_upgraded=upgraded.append)

        assert result == RawMemory(version=CURRENT_MEMORY_VERSION, data={"entries": []})
        assert upgraded == []

    @pytest.mark.parametrize(
        "stored",
        [
            "not json",
            "[1, 2]",
            '"text"',
            '{"version": 0, "data": {}}',
            '{"version": 2, "data": [1]}',
            '{"version": "2", "data": {}}',
        ],
    )
    def test_unparseable_input_yields_none(self, stored: str) -> None:
        assert migrate(stored, ACCOMMODATION_STEPS, store="accommodation") is None

    def test_newer_version_passes_through(self) -> None:
        stored = json.dumps({"version": CURRENT_MEMORY_VERSION + 1, "data": {"entries": []}})

        result = migrate(stored, ACCOMMODATION_STEPS, store="accommodation")

        assert result is not None
        assert result.version == CURRENT_MEMORY_VERSION + 1

    def test_missing_step_is_best_effort(self) -> None:
        upgraded: list[RawMemory] = []

        result = migrate('{"entries": []}', {}, store="custom", on_upgraded=upgraded.append)

        assert result == RawMemory(version=1, data={"entries": []})
        assert upgraded == []

    def test_failing_step_yields_none(self) -> None:
        def broken(data: dict[str, Any]) -> dict[str, Any]:
            raise KeyError("entries")

        assert migrate('{"entries": []}', {1: broken}, store="custom") is None

    def test_failed_write_back_does_not_fail_migration(self) -> None:
        def failing_save(_raw: RawMemory) -> None:
            raise RuntimeError("storage offline")

        result = migrate(V1_ACCOMMODATION, ACCOMMODATION_STEPS, store="accommodation", on_upgraded=failing_save)

        assert result is not None
        assert result.version == CURRENT_MEMORY_VERSION

    def test_step_output_becomes_the_payload(self) -> None:
        def step(data: dict[str, Any]) -> dict[str, Any]:
            data["touched"] = True
            return data

        result = migrate('{"entries": []}', {1: step}, store="custom")

        assert result is not None
        assert result.data == {"entries": [], "touched": True}


class TestStoreLoad:
    """Test hydration of stores from stored snapshots."""

    def test_load_v1_snapshot(self, bus: EventBus, recorded: list[PlannerEventBase]) -> None:
        store = AccommodationStore(bus)
        upgraded: list[RawMemory] = []

        assert store.load_snapshot(V1_ACCOMMODATION, on_upgraded=upgraded.append)

        assert [e.city for e in store.entries] == ["Tokyo", "Osaka"]
        assert store.active is not None and store.active.id == "a2"
        assert store.entries[0].budget_preset == BudgetPreset.eco
        assert not store.entries[0].user_modified_budget
        assert len(upgraded) == 1
        # Hydration is silent
        assert recorded == []

    @pytest.mark.parametrize(
        "stored",
        [
            None,
            "",
            "{broken",
            json.dumps({"version": 2, "data": {"entries": "nope"}}),
            json.dumps({"version": 2, "data": {"entries": [{"price_min": 300, "price_max": 100}]}}),
        ],
    )
    def test_unusable_snapshot_falls_back_to_defaults(self, bus: EventBus, stored: str | None) -> None:
        store = AccommodationStore(bus)
        store.add({"city": "Tokyo"})

        assert not store.load_snapshot(stored)

        assert store.state == store.default_state()

    def test_snapshot_round_trip_keeps_protection(self, bus: EventBus) -> None:
        store = AccommodationStore(bus)
        entry_id = store.add({"city": "Tokyo"})
        store.update(entry_id, {"budget_preset": "premium"})

        restored = AccommodationStore(EventBus())
        assert restored.load_snapshot(store.dump_snapshot())

        assert restored.state == store.state
        assert restored.entries[0].user_modified_budget

    def test_flight_snapshot_round_trip(self, bus: EventBus) -> None:
        store = FlightStore(bus)
        store.add_leg()

        restored = FlightStore(EventBus())
        assert restored.load_snapshot(store.dump_snapshot())

        assert restored.state == store.state
