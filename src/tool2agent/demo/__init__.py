"""Example tools built on the engine."""

from tool2agent.demo.airline import (
    DEFAULT_ENTRIES,
    AirlineSchedule,
    FlightEntry,
    build_airline_spec,
    build_booking_tool,
)

__all__ = [
    "DEFAULT_ENTRIES",
    "AirlineSchedule",
    "FlightEntry",
    "build_airline_spec",
    "build_booking_tool",
]
