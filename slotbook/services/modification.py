"""
Application service for changing existing bookings.

Reads the current busy set and schedule, asks the domain resolver for a
verdict, and writes accepted changes back through the calendar client.
Writes are not guarded by a version check: if two changes to the same
booking race, the last one to reach the calendar wins.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import pendulum
from pendulum import DateTime

from ..adapters.busy_intervals import BusyIntervalAdapter
from ..domain.exceptions import ModificationNotAllowedError, TimeConflictError
from ..domain.models import (
    Booking,
    CanExtend,
    CanShiftBack,
    ModificationOutcome,
    ModificationWindow,
    NoAvailability,
    Slot,
)
from ..domain.modification import ModificationResolver, SelfMatcher
from ..domain.ranges import local_date, to_instant, to_local_minutes
from .availability import AvailabilityService, load_schedule_resolver
from .protocols import CalendarClient, ScheduleSource

logger = logging.getLogger(__name__)


class BookingModificationService:
    """
    Orchestrates extension checks, rescheduling and cancellation.
    """

    def __init__(
        self,
        calendar_client: CalendarClient,
        schedule_source: ScheduleSource,
        busy_adapter: BusyIntervalAdapter,
        resolver: ModificationResolver,
        availability: Optional[AvailabilityService] = None,
        cutoff_hours: int = 24,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._calendar_client = calendar_client
        self._schedule_source = schedule_source
        self._busy_adapter = busy_adapter
        self._resolver = resolver
        self._availability = availability
        self.cutoff_hours = cutoff_hours
        self._clock = clock or pendulum.now
        self.timezone = resolver.timezone

    async def check_extension(
        self,
        booking_id: str,
        current_start: DateTime,
        current_end: DateTime,
        new_duration_minutes: int,
    ) -> ModificationOutcome:
        """
        Decide whether booking ``booking_id`` can take ``new_duration_minutes``.

        Busy time and opening hours are read for the local day the booking
        starts on; calendar errors propagate to the caller.
        """
        booking = Booking(event_id=booking_id, start=current_start, end=current_end)
        day = local_date(current_start, self.timezone)

        busy = await self._busy_adapter.fetch_for_dates(day, day)
        schedule = (await load_schedule_resolver(self._schedule_source)).resolve(day)

        return self._resolver.resolve(booking, new_duration_minutes, busy, schedule)

    async def find_alternatives(
        self,
        booking: Booking,
        new_duration_minutes: int,
        search_days: int = 14,
        max_slots: int = 50,
    ) -> List[Slot]:
        """
        Offer other slots for the new duration, starting on the booking's day.
        """
        if self._availability is None:
            return []
        day = local_date(booking.start, self.timezone)
        return await self._availability.get_slots_for_rebooking(
            day,
            day.add(days=search_days - 1),
            new_duration_minutes,
            exclude=booking,
            max_slots=max_slots,
            match_tolerance_seconds=self._resolver.match_tolerance_seconds,
        )

    def can_modify(self, booking: Booking) -> ModificationWindow:
        """Bookings may only change while at least ``cutoff_hours`` remain before the start."""
        now = self._clock()
        hours_remaining = (booking.start.timestamp() - now.timestamp()) / 3600
        return ModificationWindow(
            allowed=hours_remaining >= self.cutoff_hours,
            hours_remaining=max(0.0, hours_remaining),
            cutoff_hours=self.cutoff_hours,
        )

    async def validate_time_slot(
        self, booking: Booking, new_start: DateTime, new_end: DateTime
    ) -> None:
        """
        Ensure ``[new_start, new_end)`` lies in working hours and is free.

        The booking's own entry never counts as a conflict.

        Raises:
            TimeConflictError: If the range is outside working hours or overlaps other bookings
        """
        if new_start >= new_end:
            raise ValueError(f"Start time {new_start} must be before end time {new_end}")

        day = local_date(new_start, self.timezone)
        schedule = (await load_schedule_resolver(self._schedule_source)).resolve(day)
        open_range = schedule.range_containing(to_local_minutes(new_start, self.timezone))
        if open_range is None or new_end > to_instant(day, open_range.end, self.timezone):
            raise TimeConflictError("The requested time is outside working hours")

        busy = await self._busy_adapter.fetch_intervals(new_start, new_end)
        matcher = SelfMatcher.for_booking(booking, self._resolver.match_tolerance_seconds)
        conflicts = [
            interval
            for interval in matcher.exclude(busy)
            if interval.overlaps(new_start, new_end)
        ]
        if conflicts:
            logger.warning(
                "Requested time %s - %s for %s conflicts with %d booking(s)",
                new_start,
                new_end,
                booking.event_id,
                len(conflicts),
            )
            raise TimeConflictError("The requested time is not available", conflicts)

    async def reschedule(
        self,
        booking_id: str,
        new_start: DateTime,
        new_end: DateTime,
        summary: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking after checking the cutoff rule and availability.

        Raises:
            BookingNotFoundError: If the calendar does not know the booking
            ModificationNotAllowedError: If the booking is too close to its start
            TimeConflictError: If the new time is not available
        """
        booking = await self._load_modifiable(booking_id)
        await self.validate_time_slot(booking, new_start, new_end)
        updated = await self._calendar_client.update_booking(
            booking_id, new_start, new_end, summary=summary, description=description
        )
        self._busy_adapter.invalidate()
        logger.info("Booking %s rescheduled to %s - %s", booking_id, new_start, new_end)
        return updated

    async def apply_outcome(
        self,
        booking_id: str,
        outcome: ModificationOutcome,
        new_duration_minutes: int,
    ) -> Booking:
        """Carry out a CanExtend or CanShiftBack verdict."""
        if isinstance(outcome, CanShiftBack):
            return await self.reschedule(booking_id, outcome.new_start, outcome.new_end)

        if isinstance(outcome, CanExtend):
            booking = await self._calendar_client.get_booking(booking_id)
            return await self.reschedule(
                booking_id, booking.start, booking.start.add(minutes=new_duration_minutes)
            )

        if isinstance(outcome, NoAvailability):
            raise TimeConflictError(outcome.message or "No availability for the new duration")

        raise TypeError(f"Unknown modification outcome: {outcome!r}")

    async def cancel(self, booking_id: str) -> None:
        """Delete a booking that is still outside the cutoff window."""
        await self._load_modifiable(booking_id)
        await self._calendar_client.delete_booking(booking_id)
        self._busy_adapter.invalidate()
        logger.info("Booking %s cancelled", booking_id)

    async def _load_modifiable(self, booking_id: str) -> Booking:
        booking = await self._calendar_client.get_booking(booking_id)
        window = self.can_modify(booking)
        if not window.allowed:
            logger.warning(
                "Modification of %s refused, %.1fh before start", booking_id, window.hours_remaining
            )
            raise ModificationNotAllowedError(booking_id, window.hours_remaining)
        return booking
