"""
Weekly schedule and exceptions read from a YAML file.

Expected layout (rows may also be given as lists with a ``weekday`` or
``date`` column, the way a spreadsheet export looks):

    weekly:
      monday: {hours: "09:00-18:00"}
      sunday: {day_off: yes}
    exceptions:
      "2026-12-24": {hours: "09:00-13:00"}
      "2026-12-25": {day_off: yes}
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import yaml

from ..domain.exceptions import ScheduleSourceError
from ..domain.models import ExceptionEntry, WeeklyScheduleEntry
from ..domain.schedule import WEEKDAY_NAMES

logger = logging.getLogger(__name__)

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YES_VALUES = {"yes", "y", "true", "1", "x", "tak"}
_DAY_OFF_KEYS = ("is_day_off", "day_off", "isDayOff", "dayoff")


def is_yes(value: Any) -> bool:
    """Interpret spreadsheet-style flags ("yes", "x", "TAK", True, 1)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _YES_VALUES


def _clean_hours(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("\u00a0", " ").strip()


def _day_off(row: Mapping[str, Any]) -> bool:
    for key in _DAY_OFF_KEYS:
        if key in row:
            return is_yes(row[key])
    return False


class YamlScheduleSource:
    """Reads the schedule file on every call; wrap it in a cache for reuse."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def read_weekly_schedule(self) -> Dict[str, WeeklyScheduleEntry]:
        weekly: Dict[str, WeeklyScheduleEntry] = {}
        for key, row in self._rows("weekly", "weekday"):
            weekday = key.strip().lower()
            if weekday not in WEEKDAY_NAMES:
                logger.warning("Skipping unknown weekday %r in %s", key, self.path)
                continue
            weekly[weekday] = WeeklyScheduleEntry(
                hours=_clean_hours(row.get("hours")),
                is_day_off=_day_off(row),
            )
        return weekly

    async def read_exceptions(self) -> Dict[str, ExceptionEntry]:
        exceptions: Dict[str, ExceptionEntry] = {}
        for key, row in self._rows("exceptions", "date"):
            date_key = key.strip()
            if not _DATE_PATTERN.match(date_key):
                logger.warning("Skipping exception with invalid date %r in %s", key, self.path)
                continue
            try:
                dt.date.fromisoformat(date_key)
            except ValueError:
                logger.warning("Skipping exception with invalid date %r in %s", key, self.path)
                continue
            exceptions[date_key] = ExceptionEntry(
                hours=_clean_hours(row.get("hours")),
                is_day_off=_day_off(row),
            )
        return exceptions

    def _rows(self, section: str, key_column: str) -> Iterable[Tuple[str, Mapping[str, Any]]]:
        table = self._load().get(section) or {}

        if isinstance(table, Mapping):
            items = list(table.items())
        elif isinstance(table, list):
            items = [
                (row.get(key_column), row) for row in table if isinstance(row, Mapping)
            ]
        else:
            logger.warning("Section %r in %s is neither a mapping nor a list", section, self.path)
            return []

        rows = []
        for key, row in items:
            key_text = self._key_to_text(key)
            if key_text is None:
                logger.warning("Skipping %s row without %s in %s", section, key_column, self.path)
                continue
            if row is None:
                row = {}
            elif isinstance(row, str):
                row = {"hours": row}
            elif not isinstance(row, Mapping):
                logger.warning("Skipping malformed %s row %r in %s", section, key, self.path)
                continue
            rows.append((key_text, row))
        return rows

    @staticmethod
    def _key_to_text(key: Any) -> Optional[str]:
        # YAML turns unquoted ISO dates into date objects
        if isinstance(key, dt.date):
            return key.isoformat()
        if key is None or key == "":
            return None
        return str(key)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            raise ScheduleSourceError(f"Schedule file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ScheduleSourceError(f"Invalid YAML in {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ScheduleSourceError("Schedule file must contain a mapping at the root level.")
        return data
