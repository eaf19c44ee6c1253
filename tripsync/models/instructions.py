"""Chat instruction models - the structured output of intent classification."""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from tripsync.models.common import SyncTarget

ALL_CITIES = "all"

TargetingStatus = Literal["applied", "not_found", "ambiguous", "invalid"]


class ChatInstruction(BaseModel):
    """Field-level update addressed to one city, all cities, or the only entry."""

    domain: SyncTarget = "accommodation"
    target_city: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("target_city")
    @classmethod
    def blank_city_is_none(cls, v: str | None) -> str | None:
        """Treat a blank target as absent."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def targets_all(self) -> bool:
        """True if the instruction addresses every live entry."""
        return self.target_city is not None and self.target_city.strip().lower() == ALL_CITIES


class EntryChange(BaseModel):
    """What happened to one targeted entry (no ids, no flags)."""

    city: str
    applied: list[str] = Field(default_factory=list)
    skipped: dict[str, str] = Field(default_factory=dict)


class TargetingResult(BaseModel):
    """Outcome of resolving a chat instruction."""

    status: TargetingStatus
    domain: SyncTarget
    attempted_city: str | None = None
    changes: list[EntryChange] = Field(default_factory=list)
    available_cities: list[str] = Field(default_factory=list)
    message: str

    @property
    def mutated(self) -> bool:
        """True if at least one field was written."""
        return any(change.applied for change in self.changes)
