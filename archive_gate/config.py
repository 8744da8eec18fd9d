"""Configuration management for archive-gate.

Loads environment variables from .env file and provides typed access
to configuration values using pydantic-settings.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from archive_gate.models.entities import ClosedHoursConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Closed archive timetable
    closed_start_hour: Optional[int] = Field(3, ge=0, le=23)
    closed_end_hour: Optional[int] = Field(6, ge=0, le=23)
    closed_timezone: Optional[str] = None
    closed_zone_aware: bool = True
    gate_poll_interval_s: float = Field(1.0, gt=0)

    # Gated routes
    archive_route: str = "/archive"
    archive_closed_route: str = "/archive/closed"
    gated_prefixes: list[str] = ["/archive"]

    # Launch countdown (naive means server-local time)
    launch_at: datetime = datetime(2025, 12, 3, 12, 0, 0)

    # Outside Observations AI service
    outside_observations_api_base_url: Optional[str] = None
    outside_observations_api_key: Optional[str] = None
    observations_timeout_s: float = 30.0

    # Application settings
    log_level: str = "INFO"

    @property
    def closed_hours(self) -> ClosedHoursConfig:
        """Return the closed-hours window as a config object."""
        return ClosedHoursConfig(
            start_hour=self.closed_start_hour,
            end_hour=self.closed_end_hour,
            time_zone=self.closed_timezone,
            zone_aware=self.closed_zone_aware,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
