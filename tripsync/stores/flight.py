"""Flight store - the legs that define the trip's destinations."""

import logging
from datetime import date
from typing import Any

from tripsync.models.common import Origin, TripType
from tripsync.models.destination import AirportInfo, extract_city
from tripsync.models.entries import FlightLeg
from tripsync.models.events import (
    DestinationFlightFinalized,
    FlightLegsChanged,
    FlightTripTypeChanged,
)
from tripsync.models.memory import FlightMemory
from tripsync.persistence.migration import FLIGHT_STEPS
from tripsync.policy.conflict import PolicyDecision
from tripsync.stores.base import EntryStore
from tripsync.sync.normalize import normalize_from_flight

logger = logging.getLogger(__name__)


class FlightStore(EntryStore[FlightMemory, FlightLeg]):
    """Flight legs and trip topology.

    Every route or date change re-announces the destination legs
    (destination:flightFinalized) and then the topology
    (flight:legsChanged or flight:tripTypeChanged).
    """

    store_name = "flight"
    tab = "flights"
    state_model = FlightMemory
    entry_model = FlightLeg
    migration_steps = FLIGHT_STEPS

    # Multi-city trips may pass through the same city twice
    unique_cities = False

    @property
    def trip_type(self) -> TripType:
        return self._state.trip_type

    def set_trip_type(self, trip_type: TripType) -> None:
        previous = self._state.trip_type
        if trip_type == previous:
            return

        self._commit(self._state.model_copy(update={"trip_type": trip_type}))
        logger.info("Trip type %s -> %s", previous.value, trip_type.value)
        self._announce_destinations()
        self._bus.emit(
            FlightTripTypeChanged(previous=previous, trip_type=trip_type, legs=self.entries)
        )

    def add_leg(
        self,
        departure: AirportInfo | None = None,
        arrival: AirportInfo | None = None,
        departure_date: date | None = None,
    ) -> str:
        """Append a leg and make it active."""
        return self.add(
            {
                "departure": departure,
                "arrival": arrival,
                "city": extract_city(arrival),
                "departure_date": departure_date,
            }
        )

    def remove_leg(self, leg_id: str) -> None:
        self.remove(leg_id)

    def set_leg_arrival(self, leg_id: str, airport: AirportInfo | None) -> None:
        self.update(leg_id, {"arrival": airport, "city": extract_city(airport)})

    def set_leg_departure(self, leg_id: str, airport: AirportInfo | None) -> None:
        self.update(leg_id, {"departure": airport})

    def set_leg_date(self, leg_id: str, departure_date: date | None, origin: Origin = "direct") -> None:
        self.update(leg_id, {"departure_date": departure_date}, origin=origin)

    def set_return_date(self, return_date: date | None) -> None:
        if return_date == self._state.return_date:
            return
        self._commit(self._state.model_copy(update={"return_date": return_date}))
        self._announce_destinations()

    def get_serialized_state(self) -> dict[str, Any]:
        entries_by_city: dict[str, list[dict[str, Any]]] = {}
        for leg in self._state.entries:
            entries_by_city.setdefault(leg.city or "unassigned", []).append(
                {
                    "from": extract_city(leg.departure) or None,
                    "to": extract_city(leg.arrival) or None,
                    "departure_date": leg.departure_date.isoformat() if leg.departure_date else None,
                }
            )

        return {
            "total_entries": len(self._state.entries),
            "entries_by_city": entries_by_city,
            "defaults": {
                "trip_type": self._state.trip_type.value,
                "cabin_class": self._state.cabin_class.value,
                "direct_only": self._state.direct_only,
            },
            "return_date": self._state.return_date.isoformat() if self._state.return_date else None,
            "destinations": [leg.city for leg in self._state.destination_legs()],
        }

    def stay_window(self, leg: FlightLeg) -> tuple[date | None, date | None]:
        """Check-in/check-out implied by a destination leg.

        Check-in is the leg's departure date. Check-out is the next leg's
        departure (multi-city), the return date (round trip), or unknown.
        """
        memory = self._state
        check_out: date | None = None
        if memory.trip_type == TripType.multi:
            ids = [entry.id for entry in memory.entries]
            index = ids.index(leg.id)
            if index + 1 < len(memory.entries):
                check_out = memory.entries[index + 1].departure_date
        elif memory.trip_type == TripType.roundtrip:
            check_out = memory.return_date
        return leg.departure_date, check_out

    def _announce_destinations(self) -> None:
        is_multi = self._state.trip_type == TripType.multi
        for leg in self._state.destination_legs():
            if leg.arrival is None:
                continue
            check_in, check_out = self.stay_window(leg)
            self._bus.emit(
                DestinationFlightFinalized(
                    leg_id=leg.id,
                    destination=normalize_from_flight(leg.arrival, leg.id),
                    is_multi_city=is_multi,
                    check_in=check_in,
                    check_out=check_out,
                )
            )

    def _legs_changed(self) -> None:
        self._announce_destinations()
        self._bus.emit(FlightLegsChanged(trip_type=self._state.trip_type, legs=self.entries))

    def _after_add(self, entry: FlightLeg) -> None:
        self._legs_changed()

    def _after_remove(self, entry: FlightLeg) -> None:
        self._legs_changed()

    def _after_update(self, before: FlightLeg, decision: PolicyDecision[FlightLeg], origin: Origin) -> None:
        if {"arrival", "departure"} & decision.applied.keys():
            self._legs_changed()
        elif "departure_date" in decision.applied:
            self._announce_destinations()
