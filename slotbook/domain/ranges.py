"""
Minute-of-day range utilities.

Holds the single parser for textual opening hours ("09:00-13:00, 14.00–18.00"),
the open-minus-busy subtraction, and the conversions between instants and
local minutes. Every conversion is anchored to an explicit business time zone
so results do not depend on the zone of the machine running the code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from .models import MINUTES_PER_DAY, Range

_TIME_PATTERN = re.compile(r"^(\d{1,2})[:.](\d{2})$")

# Hyphen, en-dash, em-dash, and an en-dash that went through a latin-1 round trip
_SEPARATOR_PATTERN = re.compile(r"\s*(?:\u00e2\u20ac\u201c|[-\u2013\u2014])\s*")


@dataclass(frozen=True)
class RangeParseResult:
    """
    Outcome of parsing a schedule text.

    ``rejected`` lists the comma-separated pieces that were dropped.
    ``unparseable`` is true when the text had content but yielded no range.
    """
    text: str
    ranges: Tuple[Range, ...]
    rejected: Tuple[str, ...] = ()

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    @property
    def unparseable(self) -> bool:
        return not self.is_blank and not self.ranges


def parse_time(value: str) -> Optional[int]:
    """Parse ``HH:MM`` or ``HH.MM`` into minutes since midnight, or None."""
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes >= 60:
        return None
    total = hours * 60 + minutes
    if total > MINUTES_PER_DAY:
        return None
    return total


def parse_schedule_text(text: Optional[str]) -> RangeParseResult:
    """
    Parse a comma separated list of ``start-end`` pieces.

    Malformed pieces and pieces with zero or negative length are dropped
    rather than raising; the caller decides what an empty result means.
    """
    raw = str(text or "").replace("\u00a0", " ")
    ranges: List[Range] = []
    rejected: List[str] = []

    for piece in raw.split(","):
        piece = piece.strip()
        if not piece:
            continue

        parts = _SEPARATOR_PATTERN.split(piece)
        if len(parts) != 2:
            rejected.append(piece)
            continue

        start, end = parse_time(parts[0]), parse_time(parts[1])
        if start is None or end is None or end <= start:
            rejected.append(piece)
            continue

        ranges.append(Range(start=start, end=end))

    return RangeParseResult(text=raw, ranges=tuple(ranges), rejected=tuple(rejected))


def parse_ranges(text: Optional[str]) -> List[Range]:
    """Parse schedule text and return only the valid ranges."""
    return list(parse_schedule_text(text).ranges)


def merge_ranges(ranges: Iterable[Range]) -> List[Range]:
    """
    Merge overlapping or adjacent ranges.

    Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
    """
    sorted_ranges = sorted(ranges)
    if not sorted_ranges:
        return []

    merged: List[Range] = [sorted_ranges[0]]
    for current in sorted_ranges[1:]:
        last = merged[-1]
        if current.start <= last.end:
            merged[-1] = Range(start=last.start, end=max(last.end, current.end))
        else:
            merged.append(current)

    return merged


def subtract(open_ranges: Sequence[Range], busy_ranges: Sequence[Range]) -> List[Range]:
    """
    Subtract busy time from open time, yielding free ranges.

    Example:
    Open: [09:00-17:00]
    Busy: [10:00-11:00, 10:30-12:00, 14:00-15:00]
    Result: [09:00-10:00, 12:00-14:00, 15:00-17:00]

    Busy ranges may overlap each other; advancing the cursor to the furthest
    busy end seen so far merges them implicitly. The result is sorted and
    pairwise disjoint.
    """
    free: List[Range] = []
    sorted_busy = sorted(busy_ranges, key=lambda r: r.start)

    for open_range in merge_ranges(open_ranges):
        cursor = open_range.start

        for busy in sorted_busy:
            if busy.end <= cursor or busy.start >= open_range.end:
                continue
            if busy.start > cursor:
                free.append(Range(start=cursor, end=busy.start))
            cursor = max(cursor, busy.end)
            if cursor >= open_range.end:
                break

        if cursor < open_range.end:
            free.append(Range(start=cursor, end=open_range.end))

    return free


def to_instant(day: Date, minutes: int, timezone: str) -> DateTime:
    """
    Convert a local minute-of-day on ``day`` into an absolute instant.

    Built from wall-clock fields so DST transitions do not shift the result.
    Minute 1440 is the following local midnight.
    """
    if minutes == MINUTES_PER_DAY:
        return pendulum.datetime(day.year, day.month, day.day, tz=timezone).add(days=1)
    return pendulum.datetime(
        day.year, day.month, day.day, minutes // 60, minutes % 60, tz=timezone
    )


def local_date(instant: DateTime, timezone: str) -> Date:
    """Return the calendar date of ``instant`` in the business zone."""
    return instant.in_timezone(timezone).date()


def to_local_minutes(instant: DateTime, timezone: str, round_up: bool = False) -> int:
    """
    Return the local minute-of-day of ``instant``.

    Seconds are truncated unless ``round_up`` is set, in which case any
    sub-minute remainder counts as a whole minute.
    """
    local = instant.in_timezone(timezone)
    minutes = local.hour * 60 + local.minute
    if round_up and (local.second or local.microsecond):
        minutes += 1
    return minutes


def start_of_day(day: Date, timezone: str) -> DateTime:
    return to_instant(day, 0, timezone)


def end_of_day(day: Date, timezone: str) -> DateTime:
    return to_instant(day, MINUTES_PER_DAY, timezone)
