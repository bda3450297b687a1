"""
Turns free minute ranges into concrete, step-aligned bookable slots.

Pure domain logic: the caller supplies the free ranges and the current time.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from pendulum import Date, DateTime

from .models import MINUTES_PER_DAY, Range, Slot
from .ranges import local_date, to_instant, to_local_minutes

DEFAULT_STEP_MINUTES = 15


class SlotGenerator:
    """
    Generates fixed-duration candidate slots inside free ranges.

    Algorithm:
    1. For today (in the business zone) raise every window start to the next
       full hour after ``now``
    2. Align the first candidate to a multiple of ``step`` minutes
    3. Advance by ``step`` while the slot still ends inside the range

    Consecutive candidates overlap whenever ``step`` is shorter than the
    duration; they are alternatives, not a partition of the day.
    """

    def __init__(self, timezone: str, step_minutes: int = DEFAULT_STEP_MINUTES):
        if step_minutes <= 0:
            raise ValueError("step_minutes must be greater than zero")
        self.timezone = timezone
        self.step_minutes = step_minutes

    def earliest_start_minute(self, day: Date, now: Optional[DateTime]) -> int:
        """
        Earliest minute a slot may start on ``day``.

        Zero for any day other than today; for today the start of the next
        full hour, which is 1440 when that hour already belongs to tomorrow.
        """
        if now is None or local_date(now, self.timezone) != day:
            return 0

        next_hour = now.in_timezone(self.timezone).start_of("hour").add(hours=1)
        if local_date(next_hour, self.timezone) != day:
            return MINUTES_PER_DAY
        return to_local_minutes(next_hour, self.timezone)

    def candidate_starts(
        self,
        free_ranges: Sequence[Range],
        duration_minutes: int,
        earliest: int = 0,
        step_minutes: Optional[int] = None,
    ) -> List[int]:
        """Return aligned start minutes of every slot that fits."""
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        if step_minutes is not None and step_minutes <= 0:
            raise ValueError("step_minutes must be greater than zero")
        step = step_minutes if step_minutes is not None else self.step_minutes

        starts: List[int] = []
        for free in sorted(free_ranges):
            window_start = max(free.start, earliest)
            start = math.ceil(window_start / step) * step
            while start + duration_minutes <= free.end:
                starts.append(start)
                start += step
        return starts

    def generate(
        self,
        day: Date,
        free_ranges: Sequence[Range],
        duration_minutes: int,
        now: Optional[DateTime] = None,
        step_minutes: Optional[int] = None,
    ) -> List[Slot]:
        """
        Generate slots for ``day``.

        Args:
            day: Local calendar date the ranges belong to
            free_ranges: Free minute ranges of that date
            duration_minutes: Required slot length
            now: Current instant; enables the no-slots-before-next-hour rule
            step_minutes: Override of the configured step

        Returns:
            Ordered list of Slot objects, empty when nothing fits
        """
        earliest = self.earliest_start_minute(day, now)
        slots: List[Slot] = []
        for start in self.candidate_starts(free_ranges, duration_minutes, earliest, step_minutes):
            slot_start = to_instant(day, start, self.timezone)
            # Elapsed minutes, so a slot over a DST change keeps its duration
            slots.append(Slot(start=slot_start, end=slot_start.add(minutes=duration_minutes)))
        return slots
