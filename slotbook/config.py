"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class CalendarConfig(BaseModel):
    """Microsoft Graph calendar settings."""
    client_id: str = ""
    tenant_id: str = ""
    calendar_id: str = ""  # Empty: the signed-in user's default calendar
    max_query_days: int = 30
    request_timeout_seconds: int = 30

    @field_validator("max_query_days", "request_timeout_seconds")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class CacheConfig(BaseModel):
    """Time-to-live settings for derived data; 0 disables a cache."""
    schedule_ttl_seconds: int = 900
    busy_ttl_seconds: int = 30

    @field_validator("schedule_ttl_seconds", "busy_ttl_seconds")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        if value < 0:
            raise ValueError("TTL must not be negative")
        return value


class ModificationConfig(BaseModel):
    """Rules for changing existing bookings."""
    cutoff_hours: int = 24
    match_tolerance_seconds: float = 1.0
    max_rebooking_slots: int = 50
    rebooking_search_days: int = 14

    @field_validator("cutoff_hours")
    @classmethod
    def validate_cutoff(cls, value: int) -> int:
        if value < 0:
            raise ValueError("cutoff_hours must not be negative")
        return value

    @field_validator("max_rebooking_slots", "rebooking_search_days")
    @classmethod
    def validate_limits(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Warsaw"
    step_minutes: int = 15
    default_duration_minutes: int = 30
    minimum_duration_minutes: int = 15
    schedule_file: Path = Path("schedule.yaml")
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    modification: ModificationConfig = Field(default_factory=ModificationConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the business zone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("step_minutes", "default_duration_minutes", "minimum_duration_minutes")
    @classmethod
    def validate_minutes(cls, value: int) -> int:
        if not 0 < value <= 1440:
            raise ValueError(f"Minutes must be between 1 and 1440, got {value}")
        return value

    @model_validator(mode="after")
    def validate_durations(self) -> "AppConfig":
        """The default duration may not undercut the minimum."""
        if self.default_duration_minutes < self.minimum_duration_minutes:
            raise ValueError("default_duration_minutes must be at least minimum_duration_minutes")
        return self

    def effective_duration(self, requested: Optional[int]) -> int:
        """Apply the default and the minimum to a requested duration."""
        duration = requested if requested is not None else self.default_duration_minutes
        return max(self.minimum_duration_minutes, duration)

    def resolve_schedule_file(self, base_dir: Path) -> Path:
        """Resolve a relative schedule path against the config file's directory."""
        if self.schedule_file.is_absolute():
            return self.schedule_file
        return base_dir / self.schedule_file

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        config.schedule_file = config.resolve_schedule_file(config_path.parent)
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
