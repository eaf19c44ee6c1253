"""Planner event catalog - closed tagged union dispatched on the event bus."""

from datetime import date
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from tripsync.models.common import (
    DestinationSource,
    Geo,
    StoreName,
    SyncTarget,
    Tab,
    TripType,
)
from tripsync.models.destination import Destination, SyncAction
from tripsync.models.entries import FlightLeg


class PlannerEventBase(BaseModel):
    """Base for all events. `name` is the discriminator."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str


class DestinationFlightFinalized(PlannerEventBase):
    """A flight leg's arrival is known."""

    name: Literal["destination:flightFinalized"] = "destination:flightFinalized"
    leg_id: str
    destination: Destination
    is_multi_city: bool
    check_in: date | None = None
    check_out: date | None = None


class DestinationAccommodationUpdated(PlannerEventBase):
    """The user changed an accommodation's city directly."""

    name: Literal["destination:accommodationUpdated"] = "destination:accommodationUpdated"
    accommodation_id: str
    destination: Destination
    previous_destination_id: str | None = None


class LocationCitySelected(PlannerEventBase):
    """City selector widget picked a city."""

    name: Literal["location:citySelected"] = "location:citySelected"
    city: str
    country: str = ""
    country_code: str = ""
    geo: Geo | None = None


class SyncCityPropagated(PlannerEventBase):
    """Sync service pushes a destination into one target store."""

    name: Literal["sync:cityPropagated"] = "sync:cityPropagated"
    from_: DestinationSource = Field(alias="from")
    to: SyncTarget
    destination: Destination
    check_in: date | None = None
    check_out: date | None = None
    replaces_destination_id: str | None = None


class SyncApplied(PlannerEventBase):
    """Target store reports what a propagation did."""

    name: Literal["sync:applied"] = "sync:applied"
    target: SyncTarget
    destination_id: str
    action: SyncAction


class SyncBlocked(PlannerEventBase):
    """A propagation attempt was refused."""

    name: Literal["sync:blocked"] = "sync:blocked"
    widget: SyncTarget
    destination_id: str
    reason: Literal["user_override", "manual_edit"]


class AccommodationUpdate(PlannerEventBase):
    """Assistant-issued accommodation update."""

    name: Literal["accommodation:update"] = "accommodation:update"
    city: str | None = None
    updates: dict[str, Any] = Field(default_factory=dict)


class ActivityUpdate(PlannerEventBase):
    """Assistant-issued activity update."""

    name: Literal["activity:update"] = "activity:update"
    city: str | None = None
    updates: dict[str, Any] = Field(default_factory=dict)


class FlightTripTypeChanged(PlannerEventBase):
    """Trip type switched."""

    name: Literal["flight:tripTypeChanged"] = "flight:tripTypeChanged"
    previous: TripType
    trip_type: TripType
    legs: list[FlightLeg] = Field(default_factory=list)


class FlightLegsChanged(PlannerEventBase):
    """Leg set or a leg's route changed."""

    name: Literal["flight:legsChanged"] = "flight:legsChanged"
    trip_type: TripType
    legs: list[FlightLeg] = Field(default_factory=list)


class TravelersChanged(PlannerEventBase):
    """Traveler counts changed."""

    name: Literal["travelers:changed"] = "travelers:changed"
    adults: int
    children: int
    infants: int
    children_ages: list[int] = Field(default_factory=list)


class WidgetInteractionEvent(PlannerEventBase):
    """A widget recorded a user interaction."""

    name: Literal["widget:interaction"] = "widget:interaction"
    widget_type: str
    interaction_type: str
    data: dict[str, Any] = Field(default_factory=dict)
    summary: str


class TabFlash(PlannerEventBase):
    """A store changed; its tab should signal it."""

    name: Literal["tab:flash"] = "tab:flash"
    tab: Tab


class MemoryChanged(PlannerEventBase):
    """A store's persisted state changed."""

    name: Literal["memory:changed"] = "memory:changed"
    store: StoreName


PlannerEvent = Annotated[
    Union[
        DestinationFlightFinalized,
        DestinationAccommodationUpdated,
        LocationCitySelected,
        SyncCityPropagated,
        SyncApplied,
        SyncBlocked,
        AccommodationUpdate,
        ActivityUpdate,
        FlightTripTypeChanged,
        FlightLegsChanged,
        TravelersChanged,
        WidgetInteractionEvent,
        TabFlash,
        MemoryChanged,
    ],
    Field(discriminator="name"),
]

EVENT_TYPES: tuple[type[PlannerEventBase], ...] = (
    DestinationFlightFinalized,
    DestinationAccommodationUpdated,
    LocationCitySelected,
    SyncCityPropagated,
    SyncApplied,
    SyncBlocked,
    AccommodationUpdate,
    ActivityUpdate,
    FlightTripTypeChanged,
    FlightLegsChanged,
    TravelersChanged,
    WidgetInteractionEvent,
    TabFlash,
    MemoryChanged,
)

_event_adapter: TypeAdapter[PlannerEvent] = TypeAdapter(PlannerEvent)


def parse_event(payload: dict[str, Any]) -> PlannerEventBase:
    """Validate a raw payload into its catalog event.

    Raises:
        pydantic.ValidationError: If the name is unknown or the payload is invalid
    """
    return _event_adapter.validate_python(payload)
