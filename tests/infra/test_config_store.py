from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError as SchemaError

from loopcast.infra.exceptions import ScheduleNotFound, StreamNotFound, ValidationError
from loopcast.shared.schemas import (
    DEFAULT_RTMP_URL,
    ScheduleCreate,
    ScheduleUpdate,
    StreamCreate,
    StreamUpdate,
)
from loopcast.shared.types import ScheduleType, StreamStatusTag


class TestStreams:
    def test_create_applies_defaults(self, store):
        stream = store.create_stream(StreamCreate(title="Rain", stream_key="k", video_file="rain.mp4"))

        assert stream.id >= 1
        assert stream.platform == "youtube"
        assert stream.rtmp_url == DEFAULT_RTMP_URL
        assert stream.quality == "1080p"
        assert stream.duration_hours == 0
        assert stream.reencode is False
        assert stream.status == StreamStatusTag.STOPPED
        assert stream.ingest_url == f"{DEFAULT_RTMP_URL}/k"

    def test_snapshots_are_frozen(self, stored_stream):
        with pytest.raises(SchemaError):
            stored_stream.title = "changed"

    def test_list_in_id_order(self, store):
        for title in ("a", "b", "c"):
            store.create_stream(StreamCreate(title=title, stream_key="k", video_file="v.mp4"))
        assert [s.title for s in store.list_streams()] == ["a", "b", "c"]

    def test_update_keeps_id_and_unset_fields(self, store, stored_stream):
        updated = store.update_stream(stored_stream.id, StreamUpdate(title="Renamed", quality="720p"))

        assert updated.id == stored_stream.id
        assert updated.title == "Renamed"
        assert updated.quality == "720p"
        assert updated.stream_key == stored_stream.stream_key

    def test_unknown_stream(self, store):
        with pytest.raises(StreamNotFound):
            store.get_stream(999)
        with pytest.raises(StreamNotFound):
            store.update_stream(999, StreamUpdate(title="x"))
        with pytest.raises(StreamNotFound):
            store.delete_stream(999)

    def test_delete_referenced_stream_is_rejected(self, store, stored_stream):
        store.create_schedule(
            ScheduleCreate(
                title="s", stream_id=stored_stream.id, days=["mon"], start_time="09:00", end_time="10:00"
            )
        )
        with pytest.raises(ValidationError):
            store.delete_stream(stored_stream.id)
        assert store.get_stream(stored_stream.id)

    def test_delete(self, store, stored_stream):
        store.delete_stream(stored_stream.id)
        assert store.list_streams() == []

    def test_set_status(self, store, stored_stream):
        store.set_stream_status(stored_stream.id, StreamStatusTag.LIVE)
        assert store.get_stream(stored_stream.id).status == StreamStatusTag.LIVE

        store.set_stream_status(12345, StreamStatusTag.LIVE)  # deleted meanwhile: ignored


class TestSchedules:
    def test_create_recurring_normalizes_days(self, store, stored_stream):
        schedule = store.create_schedule(
            ScheduleCreate(
                title="Weeknights",
                stream_id=stored_stream.id,
                days=["Monday", "TUE", "mon"],
                start_time="22:00",
                end_time="06:00",
            )
        )

        assert schedule.schedule_type == ScheduleType.RECURRING
        assert schedule.days == ("mon", "tue")
        assert schedule.last_run is None
        assert schedule.active is True

    def test_create_once(self, store, stored_stream):
        schedule = store.create_schedule(
            ScheduleCreate(
                title="Launch",
                stream_id=stored_stream.id,
                schedule_type=ScheduleType.ONCE,
                specific_date=date(2026, 11, 2),
                start_time="09:00",
                end_time="10:00",
            )
        )
        assert schedule.specific_date == date(2026, 11, 2)
        assert schedule.start_time == "09:00"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"days": []},
            {"days": ["funday"]},
            {"start_time": "24:00"},
            {"end_time": "9am"},
            {"schedule_type": "once"},
        ],
    )
    def test_invalid_payloads(self, overrides):
        data = {"title": "t", "stream_id": 1, "days": ["mon"], "start_time": "09:00", "end_time": "10:00"}
        data.update(overrides)
        with pytest.raises(SchemaError):
            ScheduleCreate(**data)

    def test_unknown_stream_reference(self, store):
        with pytest.raises(StreamNotFound):
            store.create_schedule(
                ScheduleCreate(title="t", stream_id=42, days=["mon"], start_time="09:00", end_time="10:00")
            )

    def test_update_toggle_delete(self, store, stored_stream):
        schedule = store.create_schedule(
            ScheduleCreate(
                title="t", stream_id=stored_stream.id, days=["mon"], start_time="09:00", end_time="10:00"
            )
        )

        updated = store.update_schedule(schedule.id, ScheduleUpdate(end_time="11:30", days=["fri"]))
        assert updated.end_time == "11:30"
        assert updated.days == ("fri",)
        assert updated.start_time == "09:00"

        assert store.toggle_schedule(schedule.id).active is False
        assert store.toggle_schedule(schedule.id).active is True

        store.delete_schedule(schedule.id)
        with pytest.raises(ScheduleNotFound):
            store.get_schedule(schedule.id)

    def test_update_rejects_invalid_merge(self, store, stored_stream):
        schedule = store.create_schedule(
            ScheduleCreate(
                title="t", stream_id=stored_stream.id, days=["mon"], start_time="09:00", end_time="10:00"
            )
        )
        with pytest.raises(ValidationError):
            store.update_schedule(schedule.id, ScheduleUpdate(schedule_type=ScheduleType.ONCE))

    def test_last_run_round_trips_as_utc(self, store, stored_stream):
        schedule = store.create_schedule(
            ScheduleCreate(
                title="t", stream_id=stored_stream.id, days=["mon"], start_time="09:00", end_time="10:00"
            )
        )
        stamp = datetime(2026, 10, 20, 9, 30, 15, tzinfo=timezone.utc)

        store.update_schedule_last_run(schedule.id, stamp)

        assert store.get_schedule(schedule.id).last_run == stamp
        with pytest.raises(ScheduleNotFound):
            store.update_schedule_last_run(999, stamp)
