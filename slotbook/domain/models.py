"""
Domain models for schedules, busy time, slots and modification outcomes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from pendulum import Date, DateTime

MINUTES_PER_DAY = 1440


@dataclass(frozen=True, order=True)
class Range:
    """
    Half-open ``[start, end)`` span in minutes since local midnight.

    Invariant: ``0 <= start < end <= 1440``.
    """
    start: int
    end: int

    def __post_init__(self):
        if not 0 <= self.start < self.end <= MINUTES_PER_DAY:
            raise ValueError(f"Invalid minute range {self.start}-{self.end}")

    def duration_minutes(self) -> int:
        """Return the length of the range in minutes."""
        return self.end - self.start

    def overlaps(self, other: "Range") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def contains_minute(self, minute: int) -> bool:
        return self.start <= minute < self.end

    def __str__(self) -> str:
        return f"{_hhmm(self.start)}-{_hhmm(self.end)}"


def _hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class WeeklyScheduleEntry:
    """Recurring opening hours for one weekday."""
    hours: str = ""
    is_day_off: bool = False


@dataclass(frozen=True)
class ExceptionEntry:
    """
    Date-specific override of the weekly schedule.

    Non-empty ``hours`` replace the weekly hours; ``is_day_off`` always
    replaces the weekly flag.
    """
    hours: str = ""
    is_day_off: bool = False


@dataclass(frozen=True)
class BusyInterval:
    """One occupied period on the external calendar."""
    start: DateTime
    end: DateTime
    id: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Check if ``[start, end)`` overlaps this interval."""
        return start < self.end and end > self.start


@dataclass(frozen=True)
class Slot:
    """A concrete bookable window offered to a client."""
    start: DateTime
    end: DateTime

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def to_dict(self) -> Dict[str, str]:
        return {
            "startISO": self.start.to_iso8601_string(),
            "endISO": self.end.to_iso8601_string(),
        }


@dataclass(frozen=True)
class Booking:
    """An existing reservation as stored on the external calendar."""
    event_id: str
    start: DateTime
    end: DateTime
    summary: str = ""
    description: str = ""

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class DayAvailability:
    """Whether a date still has room for at least one booking."""
    date: Date
    has_open_window: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.to_date_string(), "hasOpenWindow": self.has_open_window}


class BlockReason(str, enum.Enum):
    """Machine-readable reason attached to non-trivial modification outcomes."""
    BOOKING_CONFLICT = "booking_conflict"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    DAY_CLOSED = "day_closed"
    UNPARSEABLE_HOURS = "unparseable_hours"


@dataclass(frozen=True)
class CanExtend:
    """The booking can take the new duration without moving its start."""
    message: str = ""

    status = "can_extend"

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message}


@dataclass(frozen=True)
class CanShiftBack:
    """The booking fits if its start moves earlier by ``shift_minutes``."""
    new_start: DateTime
    new_end: DateTime
    shift_minutes: int
    reason: BlockReason
    message: str = ""

    status = "can_shift_back"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "suggestedStartISO": self.new_start.to_iso8601_string(),
            "suggestedEndISO": self.new_end.to_iso8601_string(),
            "shiftMinutes": self.shift_minutes,
            "reason": self.reason.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class NoAvailability:
    """Neither extending in place nor shifting back is possible."""
    reason: BlockReason
    message: str = ""

    status = "no_availability"

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "reason": self.reason.value, "message": self.message}


ModificationOutcome = Union[CanExtend, CanShiftBack, NoAvailability]


@dataclass(frozen=True)
class ModificationWindow:
    """Result of the modification cutoff check."""
    allowed: bool
    hours_remaining: float
    cutoff_hours: int = field(default=24)
