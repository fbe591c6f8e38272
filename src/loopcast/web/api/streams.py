"""
REST API endpoints for streams.

Blocking handlers (start waits out the liveness probe, stop waits out the
grace period) are plain ``def`` so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ...runtime.station import Station
from ...shared.schemas import LogEntry, StreamCreate, StreamStatus, StreamUpdate
from ...usecases import stream_control
from .deps import get_station

router = APIRouter(prefix="/api/streams", tags=["streams"])


class StartRequest(BaseModel):
    """Request model for starting a stream."""

    reencode: bool | None = Field(None, description="Override the stream's re-encode flag")


class StatusResponse(StreamStatus):
    """Status plus the most recent log entries."""

    logs: list[LogEntry]


@router.get("")
def list_streams(station: Station = Depends(get_station)) -> list[dict[str, Any]]:
    """List all streams with their running flag."""
    return stream_control.list_streams(station)


@router.post("", status_code=201)
def create_stream(data: StreamCreate, station: Station = Depends(get_station)) -> dict[str, Any]:
    return stream_control.create_stream(station, data)


@router.get("/{stream_id}")
def get_stream(stream_id: int, station: Station = Depends(get_station)) -> dict[str, Any]:
    return stream_control.get_stream(station, stream_id)


@router.put("/{stream_id}")
def update_stream(
    stream_id: int, changes: StreamUpdate, station: Station = Depends(get_station)
) -> dict[str, Any]:
    """Update a stream. Rejected with 409 while it is running."""
    return stream_control.update_stream(station, stream_id, changes)


@router.delete("/{stream_id}")
def delete_stream(stream_id: int, station: Station = Depends(get_station)) -> dict[str, Any]:
    stream_control.delete_stream(station, stream_id)
    return {"status": "ok", "deleted": stream_id}


@router.post("/{stream_id}/start")
def start_stream(
    stream_id: int,
    body: StartRequest | None = None,
    station: Station = Depends(get_station),
) -> StreamStatus:
    reencode = body.reencode if body is not None else None
    return stream_control.start_stream(station, stream_id, reencode=reencode)


@router.post("/{stream_id}/stop")
def stop_stream(stream_id: int, station: Station = Depends(get_station)) -> StreamStatus:
    return stream_control.stop_stream(station, stream_id)


@router.get("/{stream_id}/status")
def get_status(
    stream_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Number of recent log entries"),
    station: Station = Depends(get_station),
) -> StatusResponse:
    status = stream_control.get_status(station, stream_id)
    logs = stream_control.get_logs(station, stream_id, limit)
    return StatusResponse(**status.model_dump(), logs=logs)


@router.get("/{stream_id}/logs")
def get_logs(
    stream_id: int,
    limit: int | None = Query(None, ge=1, description="Only the most recent N entries"),
    station: Station = Depends(get_station),
) -> list[LogEntry]:
    return stream_control.get_logs(station, stream_id, limit)
