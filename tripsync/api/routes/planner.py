"""Planner endpoints - the surfaces' entry points into the sync engine."""

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError

from tripsync.api.deps import get_planner_session
from tripsync.models.common import SyncTarget, TripType
from tripsync.models.destination import AirportInfo, SyncStatus
from tripsync.models.events import WidgetInteractionEvent
from tripsync.models.instructions import ChatInstruction, TargetingResult
from tripsync.session import PlannerSession

router = APIRouter(prefix="/planner", tags=["planner"])

PlannerDep = Annotated[PlannerSession, Depends(get_planner_session)]


class TripTypeRequest(BaseModel):
    """Request body for PUT /planner/flights/trip-type."""

    trip_type: TripType


class AddLegRequest(BaseModel):
    """Request body for POST /planner/flights/legs."""

    departure: AirportInfo | None = None
    arrival: AirportInfo | None = None
    departure_date: date | None = None


class AddLegResponse(BaseModel):
    """Response for POST /planner/flights/legs."""

    leg_id: str
    destinations: list[str]


class SyncBlockRequest(BaseModel):
    """Request body for POST /planner/sync/block."""

    destination_id: str = Field(..., min_length=1)
    widget: SyncTarget | None = None
    blocked: bool = True


class SyncBlockResponse(BaseModel):
    """Response for POST /planner/sync/block."""

    blocked: dict[str, list[str]]


class TravelersRequest(BaseModel):
    """Request body for PUT /planner/travelers."""

    adults: int = Field(..., ge=1)
    children: int = Field(0, ge=0)
    infants: int = Field(0, ge=0)
    children_ages: list[int] = Field(default_factory=list)


class WidgetInteractionRequest(BaseModel):
    """Request body for POST /planner/widgets/interactions."""

    widget_type: str = Field(..., min_length=1)
    interaction_type: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    summary: str = Field(..., min_length=1)


class FlushResponse(BaseModel):
    """Response for POST /planner/flush."""

    written: int


@router.get("/state")
async def get_state(session: PlannerDep) -> dict[str, Any]:
    """Assistant-facing state of every store."""
    return session.serialized_state()


@router.post("/chat/instructions", response_model=TargetingResult)
async def apply_chat_instruction(
    instruction: ChatInstruction,
    session: PlannerDep,
) -> TargetingResult:
    """Resolve and apply an assistant instruction.

    Targeting misses and invalid values are reported in the result body,
    not as HTTP errors.
    """
    return session.chat.resolve(instruction)


@router.put("/flights/trip-type")
async def set_trip_type(request: TripTypeRequest, session: PlannerDep) -> dict[str, Any]:
    """Switch trip type; entries are reconciled to the new topology."""
    session.flights.set_trip_type(request.trip_type)
    return session.serialized_state()


@router.post("/flights/legs", response_model=AddLegResponse, status_code=status.HTTP_201_CREATED)
async def add_leg(request: AddLegRequest, session: PlannerDep) -> AddLegResponse:
    """Append a flight leg."""
    leg_id = session.flights.add_leg(request.departure, request.arrival, request.departure_date)
    destinations = [leg.city for leg in session.flights.state.destination_legs()]
    return AddLegResponse(leg_id=leg_id, destinations=destinations)


@router.put("/flights/legs/{leg_id}/arrival")
async def set_leg_arrival(
    leg_id: str,
    airport: AirportInfo,
    session: PlannerDep,
) -> dict[str, Any]:
    """Set a leg's arrival airport.

    Raises:
        HTTPException: 404 if the leg does not exist
    """
    if session.flights.get(leg_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Leg {leg_id} not found")
    session.flights.set_leg_arrival(leg_id, airport)
    return session.serialized_state()


@router.post("/sync/block", response_model=SyncBlockResponse)
async def block_sync(request: SyncBlockRequest, session: PlannerDep) -> SyncBlockResponse:
    """Block (or unblock) propagation of a destination into a widget."""
    if request.blocked:
        session.sync.block_sync(request.destination_id, request.widget)
    else:
        session.sync.unblock_sync(request.destination_id, request.widget)
    return SyncBlockResponse(blocked=dict(session.sync.blocked_destinations()))


@router.get("/sync/status/{destination_id}", response_model=SyncStatus)
async def get_sync_status(
    destination_id: str,
    session: PlannerDep,
    widget: Annotated[SyncTarget, Query()] = "accommodation",
) -> SyncStatus:
    """Display status of a destination in a widget."""
    return session.sync.get_sync_status(destination_id, widget)


@router.put("/travelers")
async def set_travelers(request: TravelersRequest, session: PlannerDep) -> dict[str, Any]:
    """Replace the traveler counts."""
    try:
        session.travelers.set_travelers(
            request.adults, request.children, request.infants, request.children_ages
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=[err["msg"] for err in e.errors()]
        ) from e
    return session.serialized_state()


@router.post("/widgets/interactions", status_code=status.HTTP_202_ACCEPTED)
async def record_widget_interaction(
    request: WidgetInteractionRequest,
    session: PlannerDep,
) -> dict[str, int]:
    """Record a widget interaction for assistant context."""
    session.bus.emit(
        WidgetInteractionEvent(
            widget_type=request.widget_type,
            interaction_type=request.interaction_type,
            data=request.data,
            summary=request.summary,
        )
    )
    return {"recorded": len(session.widget_history.interactions)}


@router.post("/flush", response_model=FlushResponse)
async def flush(session: PlannerDep) -> FlushResponse:
    """Write pending snapshots now."""
    return FlushResponse(written=session.flush())
