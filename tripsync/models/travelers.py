"""Traveler models - party composition, not destination-scoped."""

from pydantic import BaseModel, Field, model_validator


class TravelerGroup(BaseModel):
    """Adult/child/infant counts for the trip."""

    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    children_ages: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_children_ages(self) -> "TravelerGroup":
        """Ages, when given, must not outnumber children."""
        if len(self.children_ages) > self.children:
            raise ValueError("children_ages has more entries than children")
        return self

    @property
    def total(self) -> int:
        """Total number of travelers."""
        return self.adults + self.children + self.infants


class RoomConfig(BaseModel):
    """One room in a lodging request."""

    adults: int = Field(..., ge=0)
    children: int = Field(default=0, ge=0)
    children_ages: list[int] = Field(default_factory=list)
