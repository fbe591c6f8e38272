"""
Persisted configuration records for Loopcast.

Rows are owned by the config store; the runtime only ever sees the immutable
snapshots built from them in :mod:`loopcast.shared.schemas`.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..infra.db import Base


class StreamRecord(Base):
    """One streaming target: a source video relayed to an ingest endpoint."""

    __tablename__ = "streams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False, default="youtube")
    rtmp_url: Mapped[str] = mapped_column(String(500), nullable=False)
    stream_key: Mapped[str] = mapped_column(String(255), nullable=False)
    video_file: Mapped[str] = mapped_column(String(500), nullable=False)
    quality: Mapped[str] = mapped_column(String(10), nullable=False, default="1080p")
    duration_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reencode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="stopped")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (CheckConstraint("duration_hours >= 0", name="duration_non_negative"),)

    def __repr__(self) -> str:
        return f"<StreamRecord(id={self.id}, title='{self.title}', status='{self.status}')>"


class ScheduleRecord(Base):
    """A declared activation window bound to one stream."""

    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    stream_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("streams.id"), nullable=False, index=True
    )
    schedule_type: Mapped[str] = mapped_column(String(20), nullable=False, default="recurring")
    specific_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    days: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("schedule_type IN ('once', 'recurring')", name="schedule_type_valid"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduleRecord(id={self.id}, stream_id={self.stream_id}, "
            f"type='{self.schedule_type}', active={self.active})>"
        )
