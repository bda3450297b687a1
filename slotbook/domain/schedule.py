"""
Resolution of a calendar date into the day's opening hours.

Combines the recurring weekly schedule with an optional date-specific
exception. Missing rows close the day; unparseable text closes it as well,
but is reported separately so callers can explain the difference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Tuple

from pendulum import Date

from .models import ExceptionEntry, Range, WeeklyScheduleEntry
from .ranges import merge_ranges, parse_schedule_text

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def weekday_name(day: Date) -> str:
    """Lowercase English weekday name of ``day``."""
    return WEEKDAY_NAMES[day.weekday()]


@dataclass(frozen=True)
class DaySchedule:
    """Opening hours resolved for one date."""
    date: Date
    hours: str
    is_day_off: bool
    ranges: Tuple[Range, ...]
    unparseable: bool = False

    @property
    def is_open(self) -> bool:
        return bool(self.ranges)

    def range_containing(self, minute: int) -> Range | None:
        """Return the open range that contains ``minute``, if any."""
        for open_range in self.ranges:
            if open_range.contains_minute(minute):
                return open_range
        return None


class ScheduleResolver:
    """
    Resolves open ranges for a date from weekly entries and exceptions.

    Both tables are plain mappings so any source (file, spreadsheet, cache)
    can feed the resolver.
    """

    def __init__(
        self,
        weekly: Mapping[str, WeeklyScheduleEntry],
        exceptions: Mapping[str, ExceptionEntry],
    ):
        self.weekly = weekly
        self.exceptions = exceptions

    def resolve(self, day: Date) -> DaySchedule:
        """
        Resolve the open ranges for ``day``.

        Algorithm:
        1. Look up the weekday entry (absent means closed)
        2. Apply the exception for the exact date, if any: non-empty hours
           replace the weekly hours, the day-off flag always replaces
        3. A day off or empty hours yields no ranges; otherwise parse the hours
           and merge touching pieces
        """
        entry = self.weekly.get(weekday_name(day))
        hours = entry.hours if entry else ""
        is_day_off = entry.is_day_off if entry else True

        exception = self.exceptions.get(day.to_date_string())
        if exception is not None:
            if exception.hours:
                hours = exception.hours
            is_day_off = exception.is_day_off

        if is_day_off or not hours.strip():
            return DaySchedule(date=day, hours=hours, is_day_off=is_day_off, ranges=())

        parsed = parse_schedule_text(hours)
        if parsed.rejected:
            logger.warning(
                "Ignoring malformed schedule pieces for %s: %s",
                day.to_date_string(),
                ", ".join(parsed.rejected),
            )

        return DaySchedule(
            date=day,
            hours=hours,
            is_day_off=False,
            ranges=tuple(merge_ranges(parsed.ranges)),
            unparseable=parsed.unparseable,
        )
