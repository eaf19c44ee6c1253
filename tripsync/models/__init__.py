"""Models package - re-exports for convenience."""

from tripsync.models.common import (
    BUDGET_PRESETS,
    AccommodationType,
    BudgetPreset,
    CabinClass,
    Geo,
    TripType,
    normalize_city,
)
from tripsync.models.destination import (
    AirportInfo,
    Destination,
    SyncOutcome,
    SyncStatus,
    TargetOutcome,
)
from tripsync.models.entries import AccommodationEntry, ActivityEntry, FlightLeg
from tripsync.models.events import EVENT_TYPES, PlannerEvent, parse_event
from tripsync.models.instructions import ChatInstruction, EntryChange, TargetingResult
from tripsync.models.memory import (
    AccommodationMemory,
    ActivityMemory,
    BudgetDefaults,
    FlightMemory,
    TravelerMemory,
)
from tripsync.models.snapshot import CURRENT_MEMORY_VERSION, VersionedMemory
from tripsync.models.travelers import RoomConfig, TravelerGroup
from tripsync.models.widgets import WidgetInteraction

__all__ = [
    # Common
    "Geo",
    "BudgetPreset",
    "BUDGET_PRESETS",
    "TripType",
    "AccommodationType",
    "CabinClass",
    "normalize_city",
    # Destination
    "AirportInfo",
    "Destination",
    "SyncStatus",
    "SyncOutcome",
    "TargetOutcome",
    # Entries
    "AccommodationEntry",
    "ActivityEntry",
    "FlightLeg",
    # Events
    "PlannerEvent",
    "EVENT_TYPES",
    "parse_event",
    # Instructions
    "ChatInstruction",
    "EntryChange",
    "TargetingResult",
    # Memory
    "AccommodationMemory",
    "ActivityMemory",
    "BudgetDefaults",
    "FlightMemory",
    "TravelerMemory",
    # Snapshot
    "VersionedMemory",
    "CURRENT_MEMORY_VERSION",
    # Travelers
    "TravelerGroup",
    "RoomConfig",
    # Widgets
    "WidgetInteraction",
]
