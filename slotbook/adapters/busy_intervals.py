"""
Busy-time retrieval from the calendar provider, bucketed per local day.

Calendar providers reject or silently truncate free/busy queries that span
too many days, so long spans are fetched as consecutive bounded chunks, in
chronological order, and concatenated.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from pendulum import Date, DateTime

from ..domain.models import MINUTES_PER_DAY, BusyInterval, Range
from ..domain.ranges import end_of_day, local_date, start_of_day, to_local_minutes
from .cache import TTLCache

if TYPE_CHECKING:
    from ..services.protocols import CalendarClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUERY_DAYS = 30


class BusyIntervalAdapter:
    """
    Fetches busy intervals in bounded chunks and converts them to day ranges.
    """

    def __init__(
        self,
        calendar_client: "CalendarClient",
        timezone: str,
        max_query_days: int = DEFAULT_MAX_QUERY_DAYS,
        cache: Optional[TTLCache] = None,
        cache_ttl_seconds: float = 0,
    ):
        if max_query_days <= 0:
            raise ValueError("max_query_days must be greater than zero")
        self._calendar_client = calendar_client
        self.timezone = timezone
        self.max_query_days = max_query_days
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    def chunk_span(self, start: DateTime, end: DateTime) -> List[Tuple[DateTime, DateTime]]:
        """
        Split ``[start, end)`` into consecutive spans of at most ``max_query_days``.

        Chunks are measured in elapsed seconds, not calendar days, so a chunk
        crossing a DST change is never an hour longer than the provider allows.
        """
        chunks: List[Tuple[DateTime, DateTime]] = []
        cursor = start
        while cursor < end:
            chunk_end = min(cursor.add(seconds=self.max_query_days * 86400), end)
            chunks.append((cursor, chunk_end))
            cursor = chunk_end
        return chunks

    async def fetch_intervals(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        """
        Fetch all busy intervals overlapping ``[start, end)``.

        Chunks are awaited one after another so the result stays in
        chronological order. Intervals reported by two neighbouring chunks
        are returned once. Provider errors propagate unchanged.
        """
        intervals: List[BusyInterval] = []
        seen = set()

        chunks = self.chunk_span(start, end)
        if len(chunks) > 1:
            logger.debug("Splitting busy query %s - %s into %d chunks", start, end, len(chunks))

        for chunk_start, chunk_end in chunks:
            for interval in await self._fetch_chunk(chunk_start, chunk_end):
                key = (interval.id, interval.start.timestamp(), interval.end.timestamp())
                if key in seen:
                    continue
                seen.add(key)
                intervals.append(interval)

        return intervals

    async def fetch_for_dates(self, from_date: Date, to_date: Date) -> List[BusyInterval]:
        """Fetch busy intervals covering whole local days ``from_date..to_date``."""
        return await self.fetch_intervals(
            start_of_day(from_date, self.timezone),
            end_of_day(to_date, self.timezone),
        )

    async def fetch_busy_by_day(self, from_date: Date, to_date: Date) -> Dict[Date, List[Range]]:
        """Fetch and bucket busy time for local days ``from_date..to_date``."""
        intervals = await self.fetch_for_dates(from_date, to_date)
        return self.bucket_by_day(intervals, self.timezone)

    async def _fetch_chunk(self, start: DateTime, end: DateTime) -> List[BusyInterval]:
        if self._cache is None or self._cache_ttl_seconds <= 0:
            return await self._calendar_client.query_busy_intervals(start, end)

        key = ("busy", start.to_iso8601_string(), end.to_iso8601_string())
        return await self._cache.get_or_load(
            key,
            self._cache_ttl_seconds,
            lambda: self._calendar_client.query_busy_intervals(start, end),
        )

    def invalidate(self) -> None:
        """Forget cached busy queries, e.g. after a booking changed."""
        if self._cache is not None:
            self._cache.discard_where(lambda key: isinstance(key, tuple) and key[:1] == ("busy",))

    @staticmethod
    def bucket_by_day(
        intervals: Iterable[BusyInterval], timezone: str
    ) -> Dict[Date, List[Range]]:
        """
        Convert instant intervals into minute ranges per local date.

        An interval crossing local midnight contributes to every day it
        touches, clamped to ``[0, 1440]`` on each. Start minutes are
        truncated and end minutes rounded up so busy time never shrinks.
        """
        buckets: Dict[Date, List[Range]] = defaultdict(list)

        for interval in intervals:
            first_day = local_date(interval.start, timezone)
            end_local = interval.end.in_timezone(timezone)
            end_day = end_local.date()
            last_day = end_day
            if end_local == end_local.start_of("day"):
                last_day = end_day.subtract(days=1)

            day = first_day
            while day <= last_day:
                start_minute = to_local_minutes(interval.start, timezone) if day == first_day else 0
                end_minute = (
                    to_local_minutes(interval.end, timezone, round_up=True)
                    if day == end_day
                    else MINUTES_PER_DAY
                )
                if end_minute > start_minute:
                    buckets[day].append(Range(start=start_minute, end=end_minute))
                day = day.add(days=1)

        return dict(buckets)
