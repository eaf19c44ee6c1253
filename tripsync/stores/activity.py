"""Activity store - activity preferences per destination city."""

from typing import Any

from tripsync.bus.event_bus import EventBus
from tripsync.models.common import BudgetPreset
from tripsync.models.entries import ActivityEntry
from tripsync.models.memory import ActivityMemory, BudgetDefaults
from tripsync.persistence.migration import ACTIVITY_STEPS
from tripsync.stores.base import DestinationScopedStore


class ActivityStore(DestinationScopedStore[ActivityMemory, ActivityEntry]):
    """Activity entries, fed by flight and accommodation destinations."""

    store_name = "activity"
    tab = "activities"
    state_model = ActivityMemory
    entry_model = ActivityEntry
    migration_steps = ACTIVITY_STEPS

    sync_target = "activity"
    date_fields = ("start_date", "end_date")
    budget_fields = ("budget_preset", "budget_min", "budget_max")

    def __init__(self, bus: EventBus, defaults: BudgetDefaults | None = None) -> None:
        self._initial_defaults = defaults or BudgetDefaults(
            budget_preset=BudgetPreset.custom, min=0, max=150
        )
        super().__init__(bus)

    def default_state(self) -> ActivityMemory:
        return ActivityMemory(defaults=self._initial_defaults)

    def get_serialized_state(self) -> dict[str, Any]:
        entries_by_city: dict[str, list[dict[str, Any]]] = {}
        for entry in self._state.entries:
            entries_by_city.setdefault(entry.city or "unassigned", []).append(
                {
                    "start_date": entry.start_date.isoformat() if entry.start_date else None,
                    "end_date": entry.end_date.isoformat() if entry.end_date else None,
                    "budget_preset": entry.budget_preset.value,
                    "budget_min": entry.budget_min,
                    "budget_max": entry.budget_max,
                    "categories": list(entry.categories),
                    "notes": entry.notes,
                }
            )

        defaults = self._state.defaults
        return {
            "total_entries": len(self._state.entries),
            "entries_by_city": entries_by_city,
            "defaults": {
                "budget_preset": defaults.budget_preset.value,
                "budget_min": defaults.min,
                "budget_max": defaults.max,
            },
        }
