"""
REST API endpoints for schedule management.

Every mutation here only touches the config store; the schedule evaluator
picks the change up on its next tick.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends

from ...runtime.station import Station
from ...shared.schemas import ScheduleCreate, ScheduleUpdate
from ...usecases import schedule_admin
from .deps import get_station

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


@router.get("")
async def list_schedules(station: Station = Depends(get_station)) -> list[dict[str, Any]]:
    """List all schedules with the running flag of their stream."""
    return schedule_admin.list_schedules(station)


@router.post("", status_code=201)
async def create_schedule(
    data: ScheduleCreate, station: Station = Depends(get_station)
) -> dict[str, Any]:
    return schedule_admin.create_schedule(station, data)


@router.get("/check")
async def check_schedules(station: Station = Depends(get_station)) -> list[dict[str, Any]]:
    """What the evaluator would do right now, without doing it."""
    return [asdict(decision) for decision in schedule_admin.check_schedules(station)]


@router.get("/{schedule_id}")
async def get_schedule(schedule_id: int, station: Station = Depends(get_station)) -> dict[str, Any]:
    return schedule_admin.get_schedule(station, schedule_id)


@router.put("/{schedule_id}")
async def update_schedule(
    schedule_id: int, changes: ScheduleUpdate, station: Station = Depends(get_station)
) -> dict[str, Any]:
    return schedule_admin.update_schedule(station, schedule_id, changes)


@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: int, station: Station = Depends(get_station)) -> dict[str, Any]:
    schedule_admin.delete_schedule(station, schedule_id)
    return {"status": "ok", "deleted": schedule_id}


@router.post("/{schedule_id}/toggle")
async def toggle_schedule(schedule_id: int, station: Station = Depends(get_station)) -> dict[str, Any]:
    """Flip a schedule between active and paused."""
    return schedule_admin.toggle_schedule(station, schedule_id)
