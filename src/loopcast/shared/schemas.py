"""
Pydantic schemas for Loopcast configuration and runtime reporting.

Config snapshots (``StreamConfig``, ``ScheduleConfig``) are frozen: the
orchestrator holds on to the config it was started with, and nothing that
happens in the store afterwards can change a running relay.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import (
    RelayMode,
    ScheduleType,
    StreamState,
    StreamStatusTag,
    normalize_weekday,
)

DEFAULT_RTMP_URL = "rtmp://a.rtmp.youtube.com/live2"

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    """Parse a ``HH:MM`` time of day.

    Raises ValueError on anything else (``24:00`` included).
    """
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time format '{value}'. Use HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class StreamBase(BaseModel):
    """Fields shared by stream payloads and snapshots."""

    title: str = Field(..., min_length=1, max_length=255, description="Stream title")
    platform: str = Field("youtube", max_length=50, description="Platform tag")
    rtmp_url: str = Field(DEFAULT_RTMP_URL, min_length=1, description="RTMP ingest endpoint")
    stream_key: str = Field(..., min_length=1, description="Secret stream key")
    video_file: str = Field(..., min_length=1, description="Source video, relative to VIDEOS_DIR")
    quality: str = Field("1080p", description="Quality tag used in re-encode mode")
    duration_hours: float = Field(0.0, ge=0, description="Auto-stop after N hours (0 = unbounded)")
    reencode: bool = Field(False, description="Re-encode instead of stream copy")

    @field_validator("rtmp_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class StreamCreate(StreamBase):
    """Schema for creating a stream."""

    pass


class StreamUpdate(BaseModel):
    """Schema for updating a stream; unset fields are left alone."""

    title: str | None = Field(None, min_length=1, max_length=255)
    platform: str | None = Field(None, max_length=50)
    rtmp_url: str | None = Field(None, min_length=1)
    stream_key: str | None = Field(None, min_length=1)
    video_file: str | None = Field(None, min_length=1)
    quality: str | None = None
    duration_hours: float | None = Field(None, ge=0)
    reencode: bool | None = None


class StreamConfig(StreamBase):
    """Immutable snapshot of a stream record."""

    id: int
    status: StreamStatusTag = StreamStatusTag.STOPPED

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def ingest_url(self) -> str:
        return f"{self.rtmp_url}/{self.stream_key}"


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


def _check_window_fields(
    schedule_type: ScheduleType, specific_date: date | None, days: list[str] | tuple[str, ...]
) -> None:
    if schedule_type == ScheduleType.ONCE and specific_date is None:
        raise ValueError("A 'once' schedule needs a specific_date")
    if schedule_type == ScheduleType.RECURRING and not days:
        raise ValueError("At least one day must be selected")


class ScheduleCreate(BaseModel):
    """Schema for creating a schedule."""

    title: str = Field(..., min_length=1, max_length=255)
    stream_id: int = Field(..., ge=1)
    schedule_type: ScheduleType = ScheduleType.RECURRING
    specific_date: date | None = None
    days: list[str] = Field(default_factory=list)
    start_time: str
    end_time: str
    active: bool = True

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("days")
    @classmethod
    def _normalize_days(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for day in value:
            code = normalize_weekday(day)
            if code not in seen:
                seen.append(code)
        return seen

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_hhmm(cls, value: str) -> str:
        return parse_hhmm(value).strftime("%H:%M")

    @model_validator(mode="after")
    def _type_fields(self) -> "ScheduleCreate":
        _check_window_fields(self.schedule_type, self.specific_date, self.days)
        return self


class ScheduleUpdate(BaseModel):
    """Schema for updating a schedule; unset fields are left alone."""

    title: str | None = Field(None, min_length=1, max_length=255)
    stream_id: int | None = Field(None, ge=1)
    schedule_type: ScheduleType | None = None
    specific_date: date | None = None
    days: list[str] | None = None
    start_time: str | None = None
    end_time: str | None = None
    active: bool | None = None


class ScheduleConfig(BaseModel):
    """Immutable snapshot of a schedule record."""

    id: int
    title: str
    stream_id: int
    schedule_type: ScheduleType
    specific_date: date | None = None
    days: tuple[str, ...] = ()
    start_time: str
    end_time: str
    active: bool = True
    last_run: datetime | None = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("last_run")
    @classmethod
    def _aware_last_run(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @field_validator("days", mode="before")
    @classmethod
    def _days_tuple(cls, value: Any) -> tuple[str, ...]:
        return tuple(value or ())


# ---------------------------------------------------------------------------
# Runtime reporting
# ---------------------------------------------------------------------------


class LogEntry(BaseModel):
    """One timestamped line of relay output or lifecycle event."""

    timestamp: datetime
    message: str

    model_config = ConfigDict(frozen=True)


class StreamStatus(BaseModel):
    """Point-in-time view of one stream's runtime state."""

    stream_id: int
    is_running: bool
    state: StreamState
    mode: RelayMode | None = None
    start_time: datetime | None = None
    uptime_seconds: float | None = None
    uptime: str | None = None
    retry_count: int = 0
    auto_restart: bool = False
    last_error: str | None = None
