from __future__ import annotations

from dataclasses import asdict
from datetime import date

import typer

from ...infra.exceptions import LoopcastError
from ...shared.schemas import ScheduleCreate
from ...shared.types import ScheduleType
from ...usecases import schedule_admin as _uc_schedule
from ..context import get_station
from ._output import emit_json, fail

app = typer.Typer(name="schedule", help="Schedule window operations")


def _describe_days(schedule: dict) -> str:
    if schedule["schedule_type"] == ScheduleType.ONCE.value:
        return f"on {schedule['specific_date']}"
    return ",".join(schedule["days"])


@app.command("list")
def list_schedules(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """List schedules and whether their stream is running."""
    try:
        schedules = _uc_schedule.list_schedules(get_station())
    except LoopcastError as e:
        fail(e, json_output, "listing schedules")

    if json_output:
        emit_json({"status": "ok", "total": len(schedules), "schedules": schedules})
        return
    if not schedules:
        typer.echo("No schedules found")
        return
    typer.echo("Schedules:")
    for s in schedules:
        mark = "✓" if s["active"] else "✗"
        running = " (running)" if s["is_running"] else ""
        typer.echo(
            f"  [{mark}] {s['id']}: {s['title']} {s['start_time']} - {s['end_time']} "
            f"{_describe_days(s)} -> stream {s['stream_id']}{running}"
        )
    typer.echo(f"\nTotal: {len(schedules)} schedules")


@app.command("add")
def add_schedule(
    title: str = typer.Option(..., "--title", help="Schedule title"),
    stream_id: int = typer.Option(..., "--stream", help="Stream id to control"),
    start_time: str = typer.Option(..., "--start", help="Start time in HH:MM format"),
    end_time: str = typer.Option(..., "--end", help="End time in HH:MM (earlier than start = overnight)"),
    days: str | None = typer.Option(None, "--days", help="Recurring days: comma-separated (mon,tue,...)"),
    on_date: str | None = typer.Option(None, "--date", help="One-off date (YYYY-MM-DD)"),
    active: bool = typer.Option(True, "--active/--paused", help="Schedule active status"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Create a recurring (--days) or one-off (--date) schedule.

    Examples:
        loopcast schedule add --title "Weeknights" --stream 1 --start 22:00 --end 06:00 --days mon,tue,wed
        loopcast schedule add --title "Launch" --stream 1 --start 09:00 --end 10:00 --date 2026-11-02
    """
    try:
        if on_date is not None and days is not None:
            raise ValueError("Use either --days or --date, not both")
        if on_date is not None:
            data = ScheduleCreate(
                title=title,
                stream_id=stream_id,
                schedule_type=ScheduleType.ONCE,
                specific_date=date.fromisoformat(on_date),
                start_time=start_time,
                end_time=end_time,
                active=active,
            )
        else:
            data = ScheduleCreate(
                title=title,
                stream_id=stream_id,
                schedule_type=ScheduleType.RECURRING,
                days=[d.strip() for d in (days or "").split(",") if d.strip()],
                start_time=start_time,
                end_time=end_time,
                active=active,
            )
        schedule = _uc_schedule.create_schedule(get_station(), data)
    except (LoopcastError, ValueError) as e:
        fail(e, json_output, "creating schedule")

    if json_output:
        emit_json({"status": "ok", "schedule": schedule})
    else:
        typer.echo(f"Schedule created: [{schedule['id']}] {schedule['title']}")
        typer.echo(f"  Window: {schedule['start_time']} - {schedule['end_time']} {_describe_days(schedule)}")


@app.command("delete")
def delete_schedule(
    schedule_id: int = typer.Argument(..., help="Schedule id"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Delete a schedule. A stream it started keeps running."""
    try:
        _uc_schedule.delete_schedule(get_station(), schedule_id)
    except LoopcastError as e:
        fail(e, json_output, "deleting schedule")

    if json_output:
        emit_json({"status": "ok", "deleted": schedule_id})
    else:
        typer.echo(f"Schedule {schedule_id} deleted")


@app.command("toggle")
def toggle_schedule(
    schedule_id: int = typer.Argument(..., help="Schedule id"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Switch a schedule between active and paused."""
    try:
        schedule = _uc_schedule.toggle_schedule(get_station(), schedule_id)
    except LoopcastError as e:
        fail(e, json_output, "toggling schedule")

    if json_output:
        emit_json({"status": "ok", "schedule": schedule})
    else:
        state = "active" if schedule["active"] else "paused"
        typer.echo(f"Schedule {schedule_id} is now {state}")


@app.command("check")
def check_schedules(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Show what the evaluator would start or stop right now (dry run)."""
    try:
        decisions = _uc_schedule.check_schedules(get_station())
    except LoopcastError as e:
        fail(e, json_output, "checking schedules")

    if json_output:
        emit_json({"status": "ok", "decisions": [asdict(d) for d in decisions]})
        return
    if not decisions:
        typer.echo("No schedules found")
        return
    for d in decisions:
        typer.echo(
            f"  schedule {d.schedule_id} -> stream {d.stream_id}: {d.action.upper()} ({d.reason})"
        )
