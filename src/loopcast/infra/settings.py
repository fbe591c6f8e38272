"""
Application settings for Loopcast.

This module defines all configuration settings for Loopcast using Pydantic BaseSettings.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings using Pydantic BaseSettings."""

    # Database settings
    database_url: str = Field(default="sqlite:///loopcast.db", alias="DATABASE_URL")
    echo_sql: bool = Field(default=False, alias="ECHO_SQL")

    # Media and relay binary
    videos_dir: str = Field(default="videos", alias="VIDEOS_DIR")
    ffmpeg_binary: str = Field(default="ffmpeg", alias="FFMPEG_BINARY")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")  # json|console
    env: str = Field(default="dev", alias="ENV")  # dev|prod|test

    # Empty means host local time
    timezone: str = Field(default="", alias="TIMEZONE")

    # Orchestrator policy
    liveness_probe_seconds: float = Field(default=2.0, ge=0, alias="LIVENESS_PROBE_SECONDS")
    stop_grace_seconds: float = Field(default=5.0, ge=0, alias="STOP_GRACE_SECONDS")
    max_retries: int = Field(default=5, ge=0, alias="MAX_RETRIES")
    retry_delay_seconds: float = Field(default=5.0, ge=0, alias="RETRY_DELAY_SECONDS")
    stability_window_seconds: float = Field(default=300.0, ge=0, alias="STABILITY_WINDOW_SECONDS")
    log_buffer_capacity: int = Field(default=100, ge=1, alias="LOG_BUFFER_CAPACITY")

    # Schedule evaluator
    schedule_tick_seconds: float = Field(default=60.0, gt=0, alias="SCHEDULE_TICK_SECONDS")
    schedule_startup_delay_seconds: float = Field(
        default=5.0, ge=0, alias="SCHEDULE_STARTUP_DELAY_SECONDS"
    )
    schedule_attribution_hours: float = Field(
        default=24.0, gt=0, alias="SCHEDULE_ATTRIBUTION_HOURS"
    )

    # HTTP API
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=3001, alias="API_PORT")

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def videos_path(self) -> Path:
        return Path(self.videos_dir).expanduser()


def _resolve_env_file() -> str | None:
    # 1) Explicit override
    explicit = os.getenv("LOOPCAST_ENV_FILE")
    if explicit and Path(explicit).is_file():
        return explicit

    # 2) CWD .env
    cwd_env = Path.cwd() / ".env"
    if cwd_env.is_file():
        return str(cwd_env)

    # 3) Walk up from this file to find nearest .env
    here = Path(__file__).resolve()
    for parent in here.parents:
        candidate = parent / ".env"
        if candidate.is_file():
            return str(candidate)
    return None


# Global settings instance (load from best-effort .env discovery)
_env_file = _resolve_env_file()
settings = Settings(_env_file=_env_file) if _env_file else Settings()  # type: ignore[call-arg]
