"""
Tests for the YAML schedule source.
"""

import asyncio
from pathlib import Path

import pytest

from slotbook.adapters.yaml_schedule_source import YamlScheduleSource, is_yes
from slotbook.domain.exceptions import ScheduleSourceError
from slotbook.domain.models import ExceptionEntry, WeeklyScheduleEntry


def _source(tmp_path: Path, text: str) -> YamlScheduleSource:
    path = tmp_path / "schedule.yaml"
    path.write_text(text, encoding="utf-8")
    return YamlScheduleSource(path)


class TestIsYes:

    @pytest.mark.parametrize("value", [True, "yes", "YES", " y ", "x", "1", 1, "TAK", "true"])
    def test_truthy(self, value):
        assert is_yes(value)

    @pytest.mark.parametrize("value", [False, None, "", "no", "0", 0, "nie"])
    def test_falsy(self, value):
        assert not is_yes(value)


class TestYamlScheduleSource:
    """Tests for YamlScheduleSource."""

    def test_mapping_layout(self, tmp_path):
        source = _source(
            tmp_path,
            "weekly:\n"
            "  Monday: {hours: '09:00-18:00'}\n"
            "  sunday: {day_off: yes}\n"
            "exceptions:\n"
            "  '2026-12-24': {hours: '09:00-13:00'}\n"
            "  2026-12-25: {isDayOff: x}\n",
        )

        weekly = asyncio.run(source.read_weekly_schedule())
        exceptions = asyncio.run(source.read_exceptions())

        assert weekly == {
            "monday": WeeklyScheduleEntry(hours="09:00-18:00"),
            "sunday": WeeklyScheduleEntry(is_day_off=True),
        }
        assert exceptions == {
            "2026-12-24": ExceptionEntry(hours="09:00-13:00"),
            "2026-12-25": ExceptionEntry(is_day_off=True),
        }

    def test_row_list_layout(self, tmp_path):
        source = _source(
            tmp_path,
            "weekly:\n"
            "  - {weekday: tuesday, hours: '10:00-14:00'}\n"
            "  - {hours: '10:00-14:00'}\n"
            "exceptions:\n"
            "  - {date: '2026-11-11', dayoff: TAK}\n",
        )

        weekly = asyncio.run(source.read_weekly_schedule())
        exceptions = asyncio.run(source.read_exceptions())

        assert weekly == {"tuesday": WeeklyScheduleEntry(hours="10:00-14:00")}
        assert exceptions == {"2026-11-11": ExceptionEntry(is_day_off=True)}

    def test_plain_string_row_is_hours(self, tmp_path):
        source = _source(tmp_path, "weekly:\n  friday: '09:00-16:00'\n")

        weekly = asyncio.run(source.read_weekly_schedule())

        assert weekly["friday"].hours == "09:00-16:00"

    def test_invalid_rows_are_skipped(self, tmp_path):
        source = _source(
            tmp_path,
            "weekly:\n"
            "  funday: {hours: '09:00-18:00'}\n"
            "  monday: [1, 2]\n"
            "exceptions:\n"
            "  '2026-02-30': {day_off: yes}\n"
            "  tomorrow: {day_off: yes}\n",
        )

        assert asyncio.run(source.read_weekly_schedule()) == {}
        assert asyncio.run(source.read_exceptions()) == {}

    def test_missing_sections_are_empty(self, tmp_path):
        source = _source(tmp_path, "weekly:\n  monday: {hours: '09:00-18:00'}\n")

        assert asyncio.run(source.read_exceptions()) == {}

    def test_missing_file(self, tmp_path):
        source = YamlScheduleSource(tmp_path / "missing.yaml")

        with pytest.raises(ScheduleSourceError):
            asyncio.run(source.read_weekly_schedule())

    def test_invalid_yaml(self, tmp_path):
        source = _source(tmp_path, "weekly: {monday: [unclosed\n")

        with pytest.raises(ScheduleSourceError):
            asyncio.run(source.read_weekly_schedule())

    def test_example_schedule_parses(self):
        path = Path(__file__).parent.parent / "schedule.example.yaml"

        weekly = asyncio.run(YamlScheduleSource(path).read_weekly_schedule())

        assert set(weekly) == {
            "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        }
        assert weekly["sunday"].is_day_off
