"""
Protocols describing the external collaborators the services depend on.

Dependency inversion toward these protocols lets the Microsoft Graph adapter,
the mock calendar, or a test stub be plugged in interchangeably.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Protocol

from pendulum import DateTime

from ..domain.models import Booking, BusyInterval, ExceptionEntry, WeeklyScheduleEntry


class ScheduleSource(Protocol):
    """Tabular source of the recurring schedule and its date exceptions."""

    async def read_weekly_schedule(self) -> Mapping[str, WeeklyScheduleEntry]:
        """Return entries keyed by lowercase English weekday name."""

    async def read_exceptions(self) -> Mapping[str, ExceptionEntry]:
        """Return entries keyed by ISO date (YYYY-MM-DD)."""


class CalendarClient(Protocol):
    """Single-calendar operations of the calendar provider."""

    max_query_days: int

    async def query_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        """Return busy intervals overlapping ``[start, end)``; spans are bounded."""

    async def get_booking(self, booking_id: str) -> Booking:
        """Return one booking; raises BookingNotFoundError when absent."""

    async def update_booking(
        self,
        booking_id: str,
        start: DateTime,
        end: DateTime,
        summary: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Booking:
        """Move a booking to a new time range."""

    async def delete_booking(self, booking_id: str) -> None:
        """Remove a booking."""
