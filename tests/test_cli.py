"""
Tests for the command line interface in mock mode.
"""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from slotbook.cli.app import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path) -> Path:
    (tmp_path / "schedule.yaml").write_text(
        "weekly:\n"
        "  monday: {hours: '09:00-18:00'}\n"
        "  tuesday: {hours: '09:00-18:00'}\n"
        "exceptions:\n"
        "  '2030-01-08': {day_off: yes}\n",
        encoding="utf-8",
    )
    path = tmp_path / "config.yaml"
    path.write_text("schedule_file: schedule.yaml\n", encoding="utf-8")
    return path


class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "slotbook" in result.output

    def test_days_json(self, config_file):
        result = runner.invoke(
            app,
            ["days", "--mock", "-c", str(config_file), "--from", "2030-01-07", "--to", "2030-01-08", "--json"],
        )

        assert result.exit_code == 0, result.output
        assert '"date": "2030-01-07"' in result.output
        assert '"hasOpenWindow": true' in result.output
        assert '"hasOpenWindow": false' in result.output

    def test_slots_on_closed_day(self, config_file):
        result = runner.invoke(app, ["slots", "2030-01-08", "--mock", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "No free slots" in result.output

    def test_check_extension_suggests_earlier_start(self, config_file):
        result = runner.invoke(
            app, ["check-extension", "evt-mon-1", "--duration", "60", "--mock", "-c", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        assert "09:30-10:30" in result.output

    def test_unknown_booking_exits_with_error(self, config_file):
        result = runner.invoke(
            app, ["check-extension", "nope", "--duration", "60", "--mock", "-c", str(config_file)]
        )

        assert result.exit_code == 1
        assert "Booking not found" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["days", "--mock", "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
