"""
Wiring of adapters and services from an AppConfig.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from pendulum import DateTime

from ..adapters.busy_intervals import BusyIntervalAdapter
from ..adapters.cache import CachedScheduleSource, TTLCache
from ..adapters.yaml_schedule_source import YamlScheduleSource
from ..config import AppConfig
from ..domain.modification import ModificationResolver
from ..domain.slot_generator import SlotGenerator
from .availability import AvailabilityService
from .modification import BookingModificationService
from .protocols import CalendarClient, ScheduleSource


@dataclass
class Services:
    availability: AvailabilityService
    modification: BookingModificationService
    cache: TTLCache


def create_services(
    config: AppConfig,
    calendar_client: CalendarClient,
    schedule_source: Optional[ScheduleSource] = None,
    clock: Optional[Callable[[], DateTime]] = None,
    cache: Optional[TTLCache] = None,
) -> Services:
    """Build both services sharing one cache, one busy adapter and one schedule source."""
    if cache is None:
        cache = TTLCache()

    source = schedule_source or YamlScheduleSource(config.schedule_file)
    if config.cache.schedule_ttl_seconds > 0:
        source = CachedScheduleSource(source, cache, config.cache.schedule_ttl_seconds)

    busy_adapter = BusyIntervalAdapter(
        calendar_client,
        config.timezone,
        max_query_days=config.calendar.max_query_days,
        cache=cache,
        cache_ttl_seconds=config.cache.busy_ttl_seconds,
    )

    availability = AvailabilityService(
        schedule_source=source,
        busy_adapter=busy_adapter,
        slot_generator=SlotGenerator(config.timezone, config.step_minutes),
        clock=clock,
    )

    modification = BookingModificationService(
        calendar_client=calendar_client,
        schedule_source=source,
        busy_adapter=busy_adapter,
        resolver=ModificationResolver(
            config.timezone, config.modification.match_tolerance_seconds
        ),
        availability=availability,
        cutoff_hours=config.modification.cutoff_hours,
        clock=clock,
    )

    return Services(availability=availability, modification=modification, cache=cache)
