"""Configuration for uptier, loaded from UPTIER_* environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="UPTIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(default=Path.home() / ".uptier", description="Directory holding the database")
    db_filename: str = Field(default="tasks.db", description="SQLite database file name")
    busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout in milliseconds")
    changelog_filename: str = Field(default="db.changelog", description="Cross-process change log file name")
    changelog_max_bytes: int = Field(default=100 * 1024, description="Change log is truncated past this size")

    # Day grid
    day_start_hour: int = Field(default=6, ge=0, le=23)
    day_end_hour: int = Field(default=22, ge=1, le=24)
    snap_minutes: int = Field(default=15, ge=1, le=60)
    default_duration_minutes: int = Field(default=30, ge=1)
    min_duration_minutes: int = Field(default=15, ge=1)

    # Daily planning
    working_hours: float = Field(default=8.0, gt=0, le=24, description="Capacity budget per planned day")
    capacity_warning_percent: int = Field(default=80, ge=1, le=100)
    plan_start_hour: int = Field(default=9, ge=0, le=23, description="Finish projection start for future days")
    planned_dates_retention: int = Field(default=90, ge=1)

    # Reminders, focus
    reminder_minutes_before: int = Field(default=15, ge=0)
    daily_focus_goal_minutes: int = Field(default=120, ge=1)

    default_list_name: str = Field(default="Inbox", description="List used by quick add when none is given")

    # Logging
    log_level: str = Field(default="WARNING")
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    @property
    def changelog_path(self) -> Path:
        return self.data_dir / self.changelog_filename


def get_settings() -> Settings:
    return Settings()
