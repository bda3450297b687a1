"""
Explicit in-memory cache with per-entry time-to-live.

Instances are created by the caller and injected where needed; nothing in
the package keeps a module-level cache.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Hashable, Mapping, Tuple

from ..domain.models import ExceptionEntry, WeeklyScheduleEntry

if TYPE_CHECKING:
    from ..services.protocols import ScheduleSource

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """
    Key/value store whose entries expire ``ttl_seconds`` after being set.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def discard_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key satisfies ``predicate``; return how many."""
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_load(
        self,
        key: Hashable,
        ttl_seconds: float,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value or await ``loader`` and cache its result."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            logger.debug("Cache hit for %s", key)
            return value

        logger.debug("Cache miss for %s", key)
        value = await loader()
        self.set(key, value, ttl_seconds)
        return value


class CachedScheduleSource:
    """Schedule source decorator that keeps both tables for ``ttl_seconds``."""

    def __init__(self, source: "ScheduleSource", cache: TTLCache, ttl_seconds: float):
        self._source = source
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    async def read_weekly_schedule(self) -> Mapping[str, WeeklyScheduleEntry]:
        return await self._cache.get_or_load(
            ("schedule", "weekly"), self._ttl_seconds, self._source.read_weekly_schedule
        )

    async def read_exceptions(self) -> Mapping[str, ExceptionEntry]:
        return await self._cache.get_or_load(
            ("schedule", "exceptions"), self._ttl_seconds, self._source.read_exceptions
        )

    def invalidate(self) -> None:
        self._cache.delete(("schedule", "weekly"))
        self._cache.delete(("schedule", "exceptions"))
