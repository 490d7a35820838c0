"""
tool2agent — airline booking demo.

A four-field booking tool over a small flight schedule:

- ``departure`` has no dependencies;
- ``arrival`` requires ``departure``;
- ``date`` requires ``departure`` and ``arrival``;
- ``passengers`` requires all three and is checked against the seat count.

Each validator narrows its options using the values already validated, so
an agent gets ``allowedValues`` that shrink as it fills in the form.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Final

from tool2agent.engine.context import FieldContext
from tool2agent.engine.spec import FieldSpec, ToolSpec, build_spec
from tool2agent.protocol.feedback import ABSENT, FieldOutcome
from tool2agent.schema.shape import FieldShape, InputShape
from tool2agent.tool import Tool

NO_MATCHING_OPTIONS: Final = "no matching options"


@dataclass(frozen=True, slots=True)
class FlightEntry:
    departure: str
    arrival: str
    date: str
    seats: int


DEFAULT_ENTRIES: Final[tuple[FlightEntry, ...]] = (
    FlightEntry("London", "New York", "2026-10-01", 100),
    FlightEntry("London", "New York", "2026-10-02", 1),
    FlightEntry("Berlin", "New York", "2026-10-03", 2),
    FlightEntry("Berlin", "London", "2026-10-04", 2),
    FlightEntry("Paris", "Tokyo", "2026-10-05", 50),
    FlightEntry("New York", "Los Angeles", "2026-10-06", 25),
)


class AirlineSchedule:
    """Immutable list of flights with simple equality filters."""

    def __init__(self, entries: Iterable[FlightEntry]) -> None:
        self._flights = tuple(entries)

    def available_flights(
        self,
        *,
        departure: object = ABSENT,
        arrival: object = ABSENT,
        date: object = ABSENT,
    ) -> tuple[FlightEntry, ...]:
        return tuple(
            flight
            for flight in self._flights
            if (departure is ABSENT or flight.departure == departure)
            and (arrival is ABSENT or flight.arrival == arrival)
            and (date is ABSENT or flight.date == date)
        )


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _choose(value: object, options: Sequence[str]) -> FieldOutcome:
    if value in options:
        return FieldOutcome.accept(value, allowed_values=options)
    return FieldOutcome.refuse(NO_MATCHING_OPTIONS, allowed_values=options)


def _departure_validator(schedule: AirlineSchedule) -> Callable[[object, FieldContext], FieldOutcome]:
    def validate(value: object, context: FieldContext) -> FieldOutcome:
        options = _unique(flight.departure for flight in schedule.available_flights())
        return _choose(value, options)

    return validate


def _arrival_validator(schedule: AirlineSchedule) -> Callable[[object, FieldContext], FieldOutcome]:
    def validate(value: object, context: FieldContext) -> FieldOutcome:
        flights = schedule.available_flights(
            departure=context["departure"],
            date=context.get("date"),
        )
        return _choose(value, _unique(flight.arrival for flight in flights))

    return validate


def _date_validator(schedule: AirlineSchedule) -> Callable[[object, FieldContext], FieldOutcome]:
    def validate(value: object, context: FieldContext) -> FieldOutcome:
        flights = schedule.available_flights(
            departure=context["departure"],
            arrival=context["arrival"],
        )
        return _choose(value, _unique(flight.date for flight in flights))

    return validate


def _passengers_validator(
    schedule: AirlineSchedule,
) -> Callable[[object, FieldContext], FieldOutcome]:
    def validate(value: object, context: FieldContext) -> FieldOutcome:
        count = _parse_passenger_count(value)
        if count is None:
            return FieldOutcome.refuse("passengers must be a whole number")
        if count < 1:
            return FieldOutcome.refuse("at least one passenger is required")

        flights = schedule.available_flights(
            departure=context["departure"],
            arrival=context["arrival"],
            date=context["date"],
        )
        seats = max((flight.seats for flight in flights), default=0)
        if count > seats:
            return FieldOutcome.refuse(
                f"not enough seats available ({count} passengers, max is {seats})"
            )
        return FieldOutcome.accept(count)

    return validate


def _parse_passenger_count(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


BOOKING_SHAPE: Final = InputShape(
    fields=(
        FieldShape("departure", (str,), description="City the flight leaves from"),
        FieldShape("arrival", (str,), description="Destination city"),
        FieldShape("date", (str,), description="Flight date, YYYY-MM-DD"),
        FieldShape("passengers", (int,), description="Number of seats to book"),
    )
)


def build_airline_spec(entries: Iterable[FlightEntry] = DEFAULT_ENTRIES) -> ToolSpec:
    schedule = AirlineSchedule(entries)
    return build_spec(
        [
            FieldSpec(
                name="departure",
                validate=_departure_validator(schedule),
                description="City the flight leaves from",
            ),
            FieldSpec(
                name="arrival",
                validate=_arrival_validator(schedule),
                requires=("departure",),
                influenced_by=("date",),
                description="Destination city reachable from the departure",
            ),
            FieldSpec(
                name="date",
                validate=_date_validator(schedule),
                requires=("departure", "arrival"),
                description="Flight date, YYYY-MM-DD",
            ),
            FieldSpec(
                name="passengers",
                validate=_passengers_validator(schedule),
                requires=("departure", "arrival", "date"),
                description="Number of seats to book",
            ),
        ],
        name="book_flight",
        input_shape=BOOKING_SHAPE,
        output_shape=BOOKING_SHAPE,
        description="Book seats on a scheduled flight",
    )


def _confirm_booking(value: dict[str, object]) -> dict[str, object]:
    return dict(value)


def build_booking_tool(
    entries: Iterable[FlightEntry] = DEFAULT_ENTRIES,
    execute: Callable[[dict[str, object]], object] | None = None,
) -> Tool:
    spec = build_airline_spec(entries)
    return Tool(
        name=spec.name,
        spec=spec,
        execute=execute if execute is not None else _confirm_booking,
        description=spec.description,
    )


__all__ = [
    "BOOKING_SHAPE",
    "DEFAULT_ENTRIES",
    "NO_MATCHING_OPTIONS",
    "AirlineSchedule",
    "FlightEntry",
    "build_airline_spec",
    "build_booking_tool",
]
