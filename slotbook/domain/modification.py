"""
Decides whether an existing booking can take a longer duration.

The resolver tries, in order:
1. extending the booking in place (same start, later end)
2. shifting the start earlier by exactly the missing minutes
3. giving up with a machine-readable reason

It never searches the rest of the day for another slot; that is a separate
question answered by the slot generator.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from pendulum import DateTime

from .models import (
    BlockReason,
    Booking,
    BusyInterval,
    CanExtend,
    CanShiftBack,
    ModificationOutcome,
    NoAvailability,
)
from .ranges import to_instant, to_local_minutes
from .schedule import DaySchedule

logger = logging.getLogger(__name__)

DEFAULT_MATCH_TOLERANCE_SECONDS = 1.0

_BLOCK_DESCRIPTIONS = {
    BlockReason.BOOKING_CONFLICT: "it would collide with another booking",
    BlockReason.OUTSIDE_WORKING_HOURS: "it would run past closing time",
}


class SelfMatcher:
    """
    Recognises the busy interval that belongs to the booking being modified.

    Stage one compares external identifiers and is authoritative whenever both
    sides carry one. Stage two, used only when an identifier is missing,
    compares start and end within a small tolerance. The second stage exists
    for legacy entries and can confuse two bookings with identical times.
    """

    def __init__(
        self,
        event_id: Optional[str],
        start: DateTime,
        end: DateTime,
        tolerance_seconds: float = DEFAULT_MATCH_TOLERANCE_SECONDS,
    ):
        self.event_id = event_id
        self.start = start
        self.end = end
        self.tolerance_seconds = tolerance_seconds

    @classmethod
    def for_booking(
        cls, booking: Booking, tolerance_seconds: float = DEFAULT_MATCH_TOLERANCE_SECONDS
    ) -> "SelfMatcher":
        return cls(booking.event_id, booking.start, booking.end, tolerance_seconds)

    def match_stage(self, busy: BusyInterval) -> Optional[str]:
        """Return ``"identifier"`` or ``"time"`` when ``busy`` is the booking itself."""
        if self.event_id and busy.id:
            return "identifier" if busy.id == self.event_id else None

        same_start = abs(busy.start.timestamp() - self.start.timestamp()) <= self.tolerance_seconds
        same_end = abs(busy.end.timestamp() - self.end.timestamp()) <= self.tolerance_seconds
        return "time" if same_start and same_end else None

    def matches(self, busy: BusyInterval) -> bool:
        return self.match_stage(busy) is not None

    def exclude(self, intervals: Iterable[BusyInterval]) -> List[BusyInterval]:
        """Return ``intervals`` without the booking's own entry."""
        others: List[BusyInterval] = []
        for busy in intervals:
            stage = self.match_stage(busy)
            if stage is None:
                others.append(busy)
            elif stage == "time":
                logger.info(
                    "Excluded busy interval %s-%s by time match (no identifier)",
                    busy.start.to_iso8601_string(),
                    busy.end.to_iso8601_string(),
                )
            else:
                logger.debug("Excluded busy interval %s by identifier", busy.id)
        return others


class ModificationResolver:
    """
    Evaluates a duration change of one booking against one day.

    Stateless: every call depends only on its arguments.
    """

    def __init__(
        self,
        timezone: str,
        match_tolerance_seconds: float = DEFAULT_MATCH_TOLERANCE_SECONDS,
    ):
        self.timezone = timezone
        self.match_tolerance_seconds = match_tolerance_seconds

    def resolve(
        self,
        booking: Booking,
        new_duration_minutes: int,
        busy_intervals: Iterable[BusyInterval],
        day_schedule: DaySchedule,
    ) -> ModificationOutcome:
        """
        Decide between CanExtend, CanShiftBack and NoAvailability.

        Args:
            booking: The booking being changed (its own busy entry may be
                present in ``busy_intervals``)
            new_duration_minutes: Required duration after the change
            busy_intervals: Busy time on the booking's local day
            day_schedule: Opening hours of the booking's local day

        Returns:
            Exactly one modification outcome
        """
        current_duration = booking.duration_minutes()
        extension_needed = new_duration_minutes - current_duration

        logger.info(
            "Evaluating booking %s: current %d min, new %d min, extension %d min",
            booking.event_id,
            current_duration,
            new_duration_minutes,
            extension_needed,
        )

        if extension_needed <= 0:
            return CanExtend(message="The new duration is not longer than the current one.")

        if day_schedule.unparseable:
            logger.error(
                "Cannot parse working hours %r for %s",
                day_schedule.hours,
                day_schedule.date.to_date_string(),
            )
            return NoAvailability(
                reason=BlockReason.UNPARSEABLE_HOURS,
                message="Working hours for this day could not be read.",
            )

        if not day_schedule.is_open:
            return NoAvailability(
                reason=BlockReason.DAY_CLOSED,
                message="The business is closed on this day.",
            )

        matcher = SelfMatcher.for_booking(booking, self.match_tolerance_seconds)
        other_bookings = matcher.exclude(busy_intervals)

        open_range = day_schedule.range_containing(
            to_local_minutes(booking.start, self.timezone)
        )
        if open_range is None:
            logger.warning("Booking %s starts outside working hours", booking.event_id)
            return NoAvailability(
                reason=BlockReason.OUTSIDE_WORKING_HOURS,
                message="The booking does not start within working hours.",
            )

        range_start = to_instant(day_schedule.date, open_range.start, self.timezone)
        range_end = to_instant(day_schedule.date, open_range.end, self.timezone)

        new_end = booking.start.add(minutes=new_duration_minutes)
        has_conflict = self._conflicts(other_bookings, booking.start, new_end)
        within_schedule = new_end <= range_end

        if not has_conflict and within_schedule:
            logger.info("Booking %s can be extended in place", booking.event_id)
            return CanExtend(
                message=f"The booking can run {new_duration_minutes} min without changing its start."
            )

        reason = BlockReason.BOOKING_CONFLICT if has_conflict else BlockReason.OUTSIDE_WORKING_HOURS

        proposed_start = booking.start.subtract(minutes=extension_needed)
        proposed_end = proposed_start.add(minutes=new_duration_minutes)
        fits_schedule = proposed_start >= range_start and proposed_end <= range_end
        conflict_after_shift = self._conflicts(other_bookings, proposed_start, proposed_end)

        logger.info(
            "Shift-back for %s: %s-%s, within hours=%s, conflict=%s",
            booking.event_id,
            proposed_start.to_iso8601_string(),
            proposed_end.to_iso8601_string(),
            fits_schedule,
            conflict_after_shift,
        )

        if fits_schedule and not conflict_after_shift:
            return CanShiftBack(
                new_start=proposed_start,
                new_end=proposed_end,
                shift_minutes=extension_needed,
                reason=reason,
                message=(
                    f"The booking cannot be extended in place because {_BLOCK_DESCRIPTIONS[reason]}, "
                    f"but it can start {extension_needed} min earlier: "
                    f"{self._clock(proposed_start)}-{self._clock(proposed_end)}."
                ),
            )

        logger.warning("Booking %s can be neither extended nor shifted (%s)", booking.event_id, reason.value)
        return NoAvailability(
            reason=reason,
            message=(
                f"The booking cannot be extended because {_BLOCK_DESCRIPTIONS[reason]} "
                "and starting earlier is not possible. Please pick a new time."
            ),
        )

    @staticmethod
    def _conflicts(others: Iterable[BusyInterval], start: DateTime, end: DateTime) -> bool:
        return any(busy.overlaps(start, end) for busy in others)

    def _clock(self, instant: DateTime) -> str:
        return instant.in_timezone(self.timezone).format("HH:mm")
