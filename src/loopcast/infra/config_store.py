"""
Config store for stream and schedule records.

This module provides a thin wrapper around SQLAlchemy operations for
``StreamRecord`` and ``ScheduleRecord``, following the Unit of Work pattern in
:mod:`loopcast.infra.uow`. Every read returns a frozen pydantic snapshot, so
callers never hold a live ORM row across threads.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError as SchemaError
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..domain.entities import ScheduleRecord, StreamRecord
from ..shared.schemas import (
    ScheduleConfig,
    ScheduleCreate,
    ScheduleUpdate,
    StreamConfig,
    StreamCreate,
    StreamUpdate,
)
from ..shared.types import StreamStatusTag
from .db import create_schema, get_sessionmaker
from .exceptions import ScheduleNotFound, StreamNotFound, ValidationError
from .uow import session

_logger = logging.getLogger(__name__)

_M = TypeVar("_M", StreamCreate, ScheduleCreate)


def _validated(model: type[_M], data: dict[str, Any]) -> _M:
    """Validate a merged update, reporting schema errors as ValidationError."""
    try:
        return model.model_validate(data)
    except SchemaError as e:
        raise ValidationError(str(e)) from e


class ConfigStore:
    """
    Durable key-value records for streams and schedules.

    Args:
        engine: SQLAlchemy engine; tables are created on construction.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        create_schema(engine)
        self._factory = get_sessionmaker(engine)

    # Streams -------------------------------------------------------------------
    def get_stream(self, stream_id: int) -> StreamConfig:
        """Raises StreamNotFound for an unknown id."""
        with session(self._factory) as db:
            return StreamConfig.model_validate(self._stream_row(db, stream_id))

    def list_streams(self) -> list[StreamConfig]:
        with session(self._factory) as db:
            rows = db.scalars(select(StreamRecord).order_by(StreamRecord.id)).all()
            return [StreamConfig.model_validate(row) for row in rows]

    def create_stream(self, data: StreamCreate) -> StreamConfig:
        with session(self._factory) as db:
            row = StreamRecord(**data.model_dump(), status=StreamStatusTag.STOPPED.value)
            db.add(row)
            db.flush()
            _logger.info("Stream created: id=%s title=%r", row.id, row.title)
            return StreamConfig.model_validate(row)

    def update_stream(self, stream_id: int, changes: StreamUpdate) -> StreamConfig:
        """Apply the fields set on ``changes``. The id never changes."""
        with session(self._factory) as db:
            row = self._stream_row(db, stream_id)
            merged = _validated(
                StreamCreate,
                {**StreamConfig.model_validate(row).model_dump(), **changes.model_dump(exclude_unset=True)},
            )
            for key, value in merged.model_dump().items():
                setattr(row, key, value)
            db.flush()
            return StreamConfig.model_validate(row)

    def delete_stream(self, stream_id: int) -> None:
        """Raises ValidationError while schedules still reference the stream."""
        with session(self._factory) as db:
            row = self._stream_row(db, stream_id)
            referencing = db.scalars(
                select(ScheduleRecord.id).where(ScheduleRecord.stream_id == stream_id)
            ).all()
            if referencing:
                raise ValidationError(
                    f"Stream {stream_id} is used by schedules {sorted(referencing)}; delete them first"
                )
            db.delete(row)

    def set_stream_status(self, stream_id: int, status: StreamStatusTag) -> None:
        with session(self._factory) as db:
            row = db.get(StreamRecord, stream_id)
            if row is None:
                return  # deleted meanwhile
            row.status = status.value

    # Schedules -----------------------------------------------------------------
    def get_schedule(self, schedule_id: int) -> ScheduleConfig:
        """Raises ScheduleNotFound for an unknown id."""
        with session(self._factory) as db:
            return ScheduleConfig.model_validate(self._schedule_row(db, schedule_id))

    def list_schedules(self) -> list[ScheduleConfig]:
        with session(self._factory) as db:
            rows = db.scalars(select(ScheduleRecord).order_by(ScheduleRecord.id)).all()
            return [ScheduleConfig.model_validate(row) for row in rows]

    def create_schedule(self, data: ScheduleCreate) -> ScheduleConfig:
        """Raises StreamNotFound when ``data.stream_id`` is unknown."""
        with session(self._factory) as db:
            self._stream_row(db, data.stream_id)
            row = ScheduleRecord(**data.model_dump(), last_run=None)
            db.add(row)
            db.flush()
            _logger.info(
                "Schedule created: id=%s title=%r %s-%s", row.id, row.title, row.start_time, row.end_time
            )
            return ScheduleConfig.model_validate(row)

    def update_schedule(self, schedule_id: int, changes: ScheduleUpdate) -> ScheduleConfig:
        with session(self._factory) as db:
            row = self._schedule_row(db, schedule_id)
            current = ScheduleConfig.model_validate(row).model_dump(
                exclude={"id", "last_run"}
            )
            current["days"] = list(current["days"])
            merged = _validated(ScheduleCreate, {**current, **changes.model_dump(exclude_unset=True)})
            if merged.stream_id != row.stream_id:
                self._stream_row(db, merged.stream_id)
            for key, value in merged.model_dump().items():
                setattr(row, key, value)
            db.flush()
            return ScheduleConfig.model_validate(row)

    def delete_schedule(self, schedule_id: int) -> None:
        with session(self._factory) as db:
            db.delete(self._schedule_row(db, schedule_id))

    def toggle_schedule(self, schedule_id: int) -> ScheduleConfig:
        """Flip the active flag."""
        with session(self._factory) as db:
            row = self._schedule_row(db, schedule_id)
            row.active = not row.active
            db.flush()
            return ScheduleConfig.model_validate(row)

    def update_schedule_last_run(self, schedule_id: int, timestamp: datetime) -> None:
        with session(self._factory) as db:
            self._schedule_row(db, schedule_id).last_run = timestamp

    # Helpers -------------------------------------------------------------------
    @staticmethod
    def _stream_row(db: Session, stream_id: int) -> StreamRecord:
        row = db.get(StreamRecord, stream_id)
        if row is None:
            raise StreamNotFound(stream_id)
        return row

    @staticmethod
    def _schedule_row(db: Session, schedule_id: int) -> ScheduleRecord:
        row = db.get(ScheduleRecord, schedule_id)
        if row is None:
            raise ScheduleNotFound(schedule_id)
        return row
