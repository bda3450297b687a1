"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    BlockReason,
    Booking,
    BusyInterval,
    CanExtend,
    CanShiftBack,
    DayAvailability,
    ExceptionEntry,
    ModificationOutcome,
    NoAvailability,
    Range,
    Slot,
    WeeklyScheduleEntry,
)
from .modification import ModificationResolver, SelfMatcher
from .ranges import parse_ranges, parse_schedule_text, subtract
from .schedule import DaySchedule, ScheduleResolver
from .slot_generator import SlotGenerator

__all__ = [
    "BlockReason",
    "Booking",
    "BusyInterval",
    "CanExtend",
    "CanShiftBack",
    "DayAvailability",
    "DaySchedule",
    "ExceptionEntry",
    "ModificationOutcome",
    "ModificationResolver",
    "NoAvailability",
    "Range",
    "ScheduleResolver",
    "SelfMatcher",
    "Slot",
    "SlotGenerator",
    "WeeklyScheduleEntry",
    "parse_ranges",
    "parse_schedule_text",
    "subtract",
]
