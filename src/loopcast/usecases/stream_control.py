"""
Stream use cases: configuration CRUD plus start/stop/status/logs.

Config mutations are rejected while the stream has runtime state. The check
and the write happen under the stream's runtime lock, so a concurrent start
cannot slip in between them.
"""

from __future__ import annotations

from typing import Any

from ..infra.exceptions import ConfigLocked
from ..infra.logging import get_logger
from ..runtime.station import Station
from ..shared.schemas import LogEntry, StreamConfig, StreamCreate, StreamStatus, StreamUpdate

_log = get_logger(__name__)


def mask_key(stream_key: str) -> str:
    """Show only the last four characters of a stream key."""
    if len(stream_key) <= 4:
        return "*" * len(stream_key)
    return "*" * (len(stream_key) - 4) + stream_key[-4:]


def describe_stream(config: StreamConfig, is_running: bool) -> dict[str, Any]:
    data = config.model_dump(mode="json")
    data["stream_key"] = mask_key(config.stream_key)
    data["is_running"] = is_running
    return data


def list_streams(station: Station) -> list[dict[str, Any]]:
    return [
        describe_stream(config, station.orchestrator.is_running(config.id))
        for config in station.store.list_streams()
    ]


def get_stream(station: Station, stream_id: int) -> dict[str, Any]:
    config = station.store.get_stream(stream_id)
    return describe_stream(config, station.orchestrator.is_running(stream_id))


def create_stream(station: Station, data: StreamCreate) -> dict[str, Any]:
    config = station.store.create_stream(data)
    _log.info("stream_created", stream_id=config.id, title=config.title)
    return describe_stream(config, False)


def update_stream(station: Station, stream_id: int, changes: StreamUpdate) -> dict[str, Any]:
    """Raises ConfigLocked while the stream is running."""
    with station.table.lock_for(stream_id):
        if station.orchestrator.is_running(stream_id):
            raise ConfigLocked(stream_id)
        config = station.store.update_stream(stream_id, changes)
    _log.info("stream_updated", stream_id=stream_id, fields=sorted(changes.model_fields_set))
    return describe_stream(config, False)


def delete_stream(station: Station, stream_id: int) -> None:
    """Raises ConfigLocked while the stream is running."""
    with station.table.lock_for(stream_id):
        if station.orchestrator.is_running(stream_id):
            raise ConfigLocked(stream_id)
        station.store.delete_stream(stream_id)
        station.table.forget(stream_id)
    _log.info("stream_deleted", stream_id=stream_id)


def start_stream(station: Station, stream_id: int, reencode: bool | None = None) -> StreamStatus:
    """Start the relay for a stored stream. ``reencode`` overrides the stored flag."""
    config = station.store.get_stream(stream_id)
    status = station.orchestrator.start(config, reencode=reencode)
    _log.info("stream_started", stream_id=stream_id, mode=status.mode.value if status.mode else None)
    return status


def stop_stream(station: Station, stream_id: int) -> StreamStatus:
    station.store.get_stream(stream_id)
    status = station.orchestrator.stop(stream_id)
    _log.info("stream_stopped", stream_id=stream_id)
    return status


def is_running(station: Station, stream_id: int) -> bool:
    return station.orchestrator.is_running(stream_id)


def get_status(station: Station, stream_id: int) -> StreamStatus:
    """Runtime status of a known stream. Raises StreamNotFound otherwise."""
    station.store.get_stream(stream_id)
    return station.orchestrator.status(stream_id)


def get_logs(station: Station, stream_id: int, limit: int | None = None) -> list[LogEntry]:
    station.store.get_stream(stream_id)
    return station.orchestrator.logs(stream_id, limit)
