from __future__ import annotations

import pytest

from loopcast.infra.exceptions import ScheduleNotFound, StreamNotFound
from loopcast.runtime.station import Station
from loopcast.shared.schemas import ScheduleCreate, ScheduleUpdate, StreamCreate, StreamUpdate
from loopcast.usecases import schedule_admin, stream_control
from tests.conftest import VIDEO
from tests.support import DeferredExecutor


@pytest.fixture
def stream_id(station) -> int:
    return station.store.create_stream(StreamCreate(title="Lofi", stream_key="k", video_file=VIDEO)).id


def _window(stream_id: int, **overrides) -> ScheduleCreate:
    # The station clock sits at Tuesday 09:30 UTC
    data = {
        "title": "Morning",
        "stream_id": stream_id,
        "days": ["tue"],
        "start_time": "09:00",
        "end_time": "10:00",
    }
    data.update(overrides)
    return ScheduleCreate(**data)


def test_create_and_list_report_stream_state(station, stream_id):
    created = schedule_admin.create_schedule(station, _window(stream_id))

    assert created["days"] == ["tue"]
    assert created["schedule_type"] == "recurring"
    assert created["last_run"] is None
    assert created["is_running"] is False

    stream_control.start_stream(station, stream_id)

    listed = schedule_admin.list_schedules(station)
    assert [s["id"] for s in listed] == [created["id"]]
    assert listed[0]["is_running"] is True


def test_create_for_unknown_stream(station):
    with pytest.raises(StreamNotFound):
        schedule_admin.create_schedule(station, _window(77))


def test_mutations_never_touch_the_relay(station, stream_id, launcher):
    created = schedule_admin.create_schedule(station, _window(stream_id))

    schedule_admin.update_schedule(station, created["id"], ScheduleUpdate(end_time="11:00"))
    toggled = schedule_admin.toggle_schedule(station, created["id"])

    assert toggled["active"] is False
    assert toggled["end_time"] == "11:00"
    assert launcher.launched == []

    schedule_admin.delete_schedule(station, created["id"])
    with pytest.raises(ScheduleNotFound):
        schedule_admin.get_schedule(station, created["id"])


def test_check_is_a_dry_run(station, stream_id, launcher, executor):
    created = schedule_admin.create_schedule(station, _window(stream_id))

    decisions = schedule_admin.check_schedules(station)

    assert [(d.schedule_id, d.action, d.desired) for d in decisions] == [(created["id"], "start", True)]
    assert launcher.launched == []
    assert executor.submitted == 0
    assert station.store.get_schedule(created["id"]).last_run is None


def test_check_reports_paused_schedules(station, stream_id):
    created = schedule_admin.create_schedule(station, _window(stream_id, active=False))

    decision = schedule_admin.check_schedules(station)[0]

    assert decision.schedule_id == created["id"]
    assert decision.action == "skip"


def test_scheduled_start_spawns_config_stored_at_spawn_time(test_settings, launcher, timers, clock):
    executor = DeferredExecutor()
    station = Station(
        test_settings, launcher=launcher, timers=timers, clock=clock, executor=executor, sleep=lambda _: None
    )
    try:
        stream_id = station.store.create_stream(
            StreamCreate(title="Lofi", stream_key="old-key", video_file=VIDEO)
        ).id
        schedule_admin.create_schedule(station, _window(stream_id))

        station.evaluator.tick()
        # An edit lands while the start call is still queued
        stream_control.update_stream(station, stream_id, StreamUpdate(stream_key="new-key"))
        executor.run_pending()

        assert launcher.latest.cmd[-1].endswith("/new-key")
        assert station.orchestrator.is_running(stream_id)
    finally:
        station.shutdown()
