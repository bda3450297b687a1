"""
Application service for browsing availability.

The service coordinates the schedule source and the busy-interval adapter
and delegates the calculation to the domain-level resolver, subtractor and
slot generator. Every domain step is pure, so requests for different dates
can run concurrently without coordination.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import pendulum
from pendulum import Date, DateTime

from ..adapters.busy_intervals import BusyIntervalAdapter
from ..domain.modification import DEFAULT_MATCH_TOLERANCE_SECONDS, SelfMatcher
from ..domain.models import Booking, DayAvailability, Range, Slot
from ..domain.ranges import subtract
from ..domain.schedule import ScheduleResolver
from ..domain.slot_generator import SlotGenerator
from .protocols import ScheduleSource

logger = logging.getLogger(__name__)


async def load_schedule_resolver(schedule_source: ScheduleSource) -> ScheduleResolver:
    """Read both schedule tables and build a resolver over them."""
    weekly = await schedule_source.read_weekly_schedule()
    exceptions = await schedule_source.read_exceptions()
    return ScheduleResolver(weekly=weekly, exceptions=exceptions)


def iter_days(from_date: Date, to_date: Date) -> List[Date]:
    """Inclusive list of dates from ``from_date`` to ``to_date``."""
    if to_date < from_date:
        raise ValueError(f"End date {to_date} is before start date {from_date}")
    days: List[Date] = []
    day = from_date
    while day <= to_date:
        days.append(day)
        day = day.add(days=1)
    return days


@dataclass(frozen=True)
class AvailabilityReport:
    """Per-day availability together with counters describing the inputs."""
    days: List[DayAvailability]
    weekly_entries: int
    exception_entries: int
    busy_intervals: int
    min_duration_minutes: int

    def debug_info(self) -> Dict[str, int]:
        return {
            "weeklyKeys": self.weekly_entries,
            "exceptionsCount": self.exception_entries,
            "busyCount": self.busy_intervals,
            "minDuration": self.min_duration_minutes,
        }


class AvailabilityService:
    """
    Answers "which days have room" and "which slots are free on a day".
    """

    def __init__(
        self,
        schedule_source: ScheduleSource,
        busy_adapter: BusyIntervalAdapter,
        slot_generator: SlotGenerator,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._schedule_source = schedule_source
        self._busy_adapter = busy_adapter
        self._slot_generator = slot_generator
        self._clock = clock or pendulum.now
        self.timezone = slot_generator.timezone

    def now(self) -> DateTime:
        return self._clock().in_timezone(self.timezone)

    async def get_available_days(
        self,
        from_date: Date,
        to_date: Date,
        min_duration_minutes: int,
    ) -> List[DayAvailability]:
        """Return one entry per date telling whether a slot of the duration exists."""
        report = await self.get_availability_report(from_date, to_date, min_duration_minutes)
        return report.days

    async def get_availability_report(
        self,
        from_date: Date,
        to_date: Date,
        min_duration_minutes: int,
    ) -> AvailabilityReport:
        """
        Compute availability for ``from_date..to_date``.

        A day counts as open when at least one step-aligned slot of
        ``min_duration_minutes`` fits into its free time; for today only
        slots from the next full hour on are considered. A free range long
        enough but too short once aligned to the step (free 09:05-09:50,
        45 min, step 15) therefore does not open the day, which keeps this
        answer equal to ``bool(get_day_slots(...))``.
        """
        days = iter_days(from_date, to_date)
        resolver = await load_schedule_resolver(self._schedule_source)
        intervals = await self._busy_adapter.fetch_for_dates(from_date, to_date)
        busy_by_day = BusyIntervalAdapter.bucket_by_day(intervals, self.timezone)
        now = self.now()

        result: List[DayAvailability] = []
        for day in days:
            free = self.free_ranges(resolver, day, busy_by_day)
            starts = self._slot_generator.candidate_starts(
                free,
                min_duration_minutes,
                earliest=self._slot_generator.earliest_start_minute(day, now),
            )
            result.append(DayAvailability(date=day, has_open_window=bool(starts)))

        logger.debug(
            "Availability %s..%s: %d open of %d days, %d busy intervals",
            from_date,
            to_date,
            sum(1 for d in result if d.has_open_window),
            len(result),
            len(intervals),
        )

        return AvailabilityReport(
            days=result,
            weekly_entries=len(resolver.weekly),
            exception_entries=len(resolver.exceptions),
            busy_intervals=len(intervals),
            min_duration_minutes=min_duration_minutes,
        )

    async def get_day_slots(
        self,
        day: Date,
        min_duration_minutes: int,
        step_minutes: Optional[int] = None,
    ) -> List[Slot]:
        """Return every bookable slot of ``min_duration_minutes`` on ``day``."""
        resolver = await load_schedule_resolver(self._schedule_source)
        busy_by_day = await self._busy_adapter.fetch_busy_by_day(day, day)
        free = self.free_ranges(resolver, day, busy_by_day)
        return self._slot_generator.generate(
            day, free, min_duration_minutes, now=self.now(), step_minutes=step_minutes
        )

    async def get_slots_for_rebooking(
        self,
        date_from: Date,
        date_to: Date,
        duration_minutes: int,
        exclude: Optional[Booking] = None,
        max_slots: int = 50,
        match_tolerance_seconds: float = DEFAULT_MATCH_TOLERANCE_SECONDS,
    ) -> List[Slot]:
        """
        Collect slots across several days for moving an existing booking.

        The booking being moved does not block its own time. Days are walked
        in order and collection stops after ``max_slots`` slots.
        """
        resolver = await load_schedule_resolver(self._schedule_source)
        intervals = await self._busy_adapter.fetch_for_dates(date_from, date_to)
        if exclude is not None:
            matcher = SelfMatcher.for_booking(exclude, match_tolerance_seconds)
            intervals = matcher.exclude(intervals)
        busy_by_day = BusyIntervalAdapter.bucket_by_day(intervals, self.timezone)
        now = self.now()

        slots: List[Slot] = []
        for day in iter_days(date_from, date_to):
            free = self.free_ranges(resolver, day, busy_by_day)
            slots.extend(self._slot_generator.generate(day, free, duration_minutes, now=now))
            if len(slots) >= max_slots:
                break

        return slots[:max_slots]

    @staticmethod
    def free_ranges(
        resolver: ScheduleResolver,
        day: Date,
        busy_by_day: Mapping[Date, Sequence[Range]],
    ) -> List[Range]:
        """Open ranges of ``day`` minus its busy ranges."""
        schedule = resolver.resolve(day)
        if not schedule.is_open:
            return []
        return subtract(schedule.ranges, busy_by_day.get(day, []))
