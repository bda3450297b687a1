"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from slotbook.config import AppConfig


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.timezone == "Europe/Warsaw"
        assert config.step_minutes == 15
        assert config.calendar.max_query_days == 30
        assert config.modification.cutoff_hours == 24
        assert config.modification.match_tolerance_seconds == 1.0

    def test_unknown_timezone_is_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(timezone="Mars/Olympus_Mons")

    def test_step_must_be_positive(self):
        with pytest.raises(ValidationError):
            AppConfig(step_minutes=0)

    def test_default_duration_may_not_undercut_minimum(self):
        with pytest.raises(ValidationError):
            AppConfig(default_duration_minutes=10, minimum_duration_minutes=15)

    def test_negative_ttl_is_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(cache={"busy_ttl_seconds": -1})

    def test_effective_duration(self):
        config = AppConfig(default_duration_minutes=30, minimum_duration_minutes=15)

        assert config.effective_duration(None) == 30
        assert config.effective_duration(60) == 60
        assert config.effective_duration(5) == 15


class TestLoadFromYaml:
    """Tests for AppConfig.load_from_yaml."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_nested_sections(self, tmp_path):
        path = _write(
            tmp_path,
            "timezone: Europe/Berlin\n"
            "calendar:\n"
            "  client_id: abc\n"
            "  tenant_id: def\n"
            "  max_query_days: 14\n"
            "modification:\n"
            "  cutoff_hours: 48\n",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.timezone == "Europe/Berlin"
        assert config.calendar.max_query_days == 14
        assert config.calendar.get_authority_url() == "https://login.microsoftonline.com/def"
        assert config.modification.cutoff_hours == 48

    def test_schedule_file_is_relative_to_config(self, tmp_path):
        path = _write(tmp_path, "schedule_file: hours/schedule.yaml\n")

        config = AppConfig.load_from_yaml(path)

        assert config.schedule_file == tmp_path / "hours" / "schedule.yaml"

    def test_empty_file_gives_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, ""))

        assert config.default_duration_minutes == 30

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, "- a\n- b\n"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, "timezone: [unclosed\n"))
