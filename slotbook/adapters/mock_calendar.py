"""
In-memory calendar for running without Microsoft authentication.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import BookingNotFoundError, CalendarAPIError
from ..domain.models import Booking, BusyInterval
from .busy_intervals import DEFAULT_MAX_QUERY_DAYS

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Calendar client backed by a list of events.

    Events can come from a JSON file (list of objects with ``id``, ``start``,
    ``end`` and optional ``summary``/``description``) or be passed directly.
    Like the real provider it refuses busy queries longer than
    ``max_query_days``. Every busy query is recorded in ``queries``.
    """

    def __init__(
        self,
        bookings: Optional[Iterable[Booking]] = None,
        data_file: Optional[Path] = None,
        max_query_days: int = DEFAULT_MAX_QUERY_DAYS,
    ):
        self.max_query_days = max_query_days
        self.queries: List[Tuple[DateTime, DateTime]] = []
        self._bookings: Dict[str, Booking] = {}

        if bookings is not None:
            for booking in bookings:
                self._bookings[booking.event_id] = booking
        else:
            self._load_calendar_data(data_file or DEFAULT_DATA_FILE)

    def _load_calendar_data(self, data_file: Path) -> None:
        """Load mock calendar data from JSON file."""
        if not data_file.exists():
            logger.warning("Mock calendar file %s not found; starting empty", data_file)
            return

        with open(data_file, "r", encoding="utf-8") as f:
            events: List[Dict[str, Any]] = json.load(f)

        for event in events:
            try:
                booking = Booking(
                    event_id=str(event["id"]),
                    start=pendulum.parse(event["start"]),
                    end=pendulum.parse(event["end"]),
                    summary=event.get("summary", ""),
                    description=event.get("description", ""),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid mock event %r: %s", event, exc)
                continue
            self._bookings[booking.event_id] = booking

    @property
    def bookings(self) -> List[Booking]:
        return sorted(self._bookings.values(), key=lambda b: b.start)

    async def query_busy_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        if (end - start).total_seconds() > self.max_query_days * 86400:
            raise CalendarAPIError(
                f"Busy query spans more than {self.max_query_days} days: {start} - {end}"
            )
        self.queries.append((start, end))

        return [
            BusyInterval(start=booking.start, end=booking.end, id=booking.event_id)
            for booking in self.bookings
            if booking.start < end and booking.end > start
        ]

    async def get_booking(self, booking_id: str) -> Booking:
        try:
            return self._bookings[booking_id]
        except KeyError:
            raise BookingNotFoundError(booking_id) from None

    async def update_booking(
        self,
        booking_id: str,
        start: DateTime,
        end: DateTime,
        summary: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Booking:
        current = await self.get_booking(booking_id)
        updated = Booking(
            event_id=booking_id,
            start=start,
            end=end,
            summary=current.summary if summary is None else summary,
            description=current.description if description is None else description,
        )
        self._bookings[booking_id] = updated
        return updated

    async def delete_booking(self, booking_id: str) -> None:
        await self.get_booking(booking_id)
        del self._bookings[booking_id]
