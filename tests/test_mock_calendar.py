"""
Tests for the mock calendar client and the service factory.
"""

import asyncio
import json

import pendulum
import pytest

from slotbook.adapters.cache import CachedScheduleSource
from slotbook.adapters.mock_calendar import MockCalendarClient
from slotbook.config import AppConfig
from slotbook.domain.exceptions import CalendarAPIError
from slotbook.domain.models import CanShiftBack
from slotbook.services.factory import create_services

TZ = "Europe/Warsaw"


class TestMockCalendarClient:
    """Tests for MockCalendarClient."""

    def test_bundled_data_loads(self):
        client = MockCalendarClient()

        assert [b.event_id for b in client.bookings][:2] == ["evt-mon-1", "evt-mon-2"]

    def test_data_file(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps([
            {"id": "x", "start": "2026-11-23T10:00:00+01:00", "end": "2026-11-23T11:00:00+01:00"},
            {"id": "broken", "start": "2026-11-23T10:00:00+01:00"},
        ]), encoding="utf-8")

        client = MockCalendarClient(data_file=path)

        assert [b.event_id for b in client.bookings] == ["x"]

    def test_busy_query_returns_overlapping_events(self):
        client = MockCalendarClient()
        start = pendulum.datetime(2026, 11, 23, 10, 15, tz=TZ)

        intervals = asyncio.run(client.query_busy_intervals(start, start.add(minutes=30)))

        assert [i.id for i in intervals] == ["evt-mon-1", "evt-mon-2"]

    def test_span_limit(self):
        client = MockCalendarClient(bookings=[], max_query_days=7)
        start = pendulum.datetime(2026, 11, 1, tz=TZ)

        with pytest.raises(CalendarAPIError):
            asyncio.run(client.query_busy_intervals(start, start.add(days=8)))


class TestCreateServices:
    """Tests for the service factory."""

    def test_wires_cached_schedule_from_config(self, tmp_path):
        (tmp_path / "schedule.yaml").write_text(
            "weekly:\n  monday: {hours: '09:00-18:00'}\n", encoding="utf-8"
        )
        config_path = tmp_path / "config.yaml"
        config_path.write_text("schedule_file: schedule.yaml\n", encoding="utf-8")
        config = AppConfig.load_from_yaml(config_path)

        services = create_services(
            config,
            MockCalendarClient(),
            clock=lambda: pendulum.datetime(2026, 11, 1, tz=TZ),
        )
        outcome = asyncio.run(services.modification.check_extension(
            "evt-mon-1",
            pendulum.datetime(2026, 11, 23, 10, 0, tz=TZ),
            pendulum.datetime(2026, 11, 23, 10, 30, tz=TZ),
            60,
        ))

        assert isinstance(services.availability._schedule_source, CachedScheduleSource)
        assert isinstance(outcome, CanShiftBack)
        assert outcome.new_start == pendulum.datetime(2026, 11, 23, 9, 30, tz=TZ)
