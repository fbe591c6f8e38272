"""
Schedule use cases.

These are pure config mutations: nothing here starts or stops a stream. The
effect of a new, changed or toggled schedule shows up on the evaluator's next
tick.
"""

from __future__ import annotations

from typing import Any

from ..infra.logging import get_logger
from ..runtime.schedule_evaluator import ScheduleDecision
from ..runtime.station import Station
from ..shared.schemas import ScheduleConfig, ScheduleCreate, ScheduleUpdate

_log = get_logger(__name__)


def describe_schedule(station: Station, schedule: ScheduleConfig) -> dict[str, Any]:
    data = schedule.model_dump(mode="json")
    data["is_running"] = station.orchestrator.is_running(schedule.stream_id)
    return data


def list_schedules(station: Station) -> list[dict[str, Any]]:
    return [describe_schedule(station, s) for s in station.store.list_schedules()]


def get_schedule(station: Station, schedule_id: int) -> dict[str, Any]:
    return describe_schedule(station, station.store.get_schedule(schedule_id))


def create_schedule(station: Station, data: ScheduleCreate) -> dict[str, Any]:
    schedule = station.store.create_schedule(data)
    _log.info(
        "schedule_created",
        schedule_id=schedule.id,
        stream_id=schedule.stream_id,
        window=f"{schedule.start_time}-{schedule.end_time}",
    )
    return describe_schedule(station, schedule)


def update_schedule(station: Station, schedule_id: int, changes: ScheduleUpdate) -> dict[str, Any]:
    schedule = station.store.update_schedule(schedule_id, changes)
    _log.info("schedule_updated", schedule_id=schedule_id, fields=sorted(changes.model_fields_set))
    return describe_schedule(station, schedule)


def delete_schedule(station: Station, schedule_id: int) -> None:
    station.store.delete_schedule(schedule_id)
    _log.info("schedule_deleted", schedule_id=schedule_id)


def toggle_schedule(station: Station, schedule_id: int) -> dict[str, Any]:
    schedule = station.store.toggle_schedule(schedule_id)
    _log.info("schedule_toggled", schedule_id=schedule_id, active=schedule.active)
    return describe_schedule(station, schedule)


def check_schedules(station: Station) -> list[ScheduleDecision]:
    """Evaluate every schedule for "now" without starting or stopping anything."""
    return station.evaluator.tick(dry_run=True)
