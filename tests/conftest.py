"""
Global test configuration for Loopcast.

Fixtures wire the orchestrator, the evaluator and the station against an
in-memory SQLite store, fake relay processes, manual timers and a stepped
clock pinned to Tuesday 2026-10-20 09:30 UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
import structlog

from loopcast.infra.config_store import ConfigStore
from loopcast.infra.db import get_engine
from loopcast.infra.settings import Settings
from loopcast.runtime.clock import SteppedClock
from loopcast.runtime.orchestrator import OrchestratorPolicy, StreamOrchestrator
from loopcast.runtime.runtime_table import RuntimeTable
from loopcast.runtime.schedule_evaluator import ScheduleEvaluator
from loopcast.runtime.station import Station
from loopcast.runtime.timers import ManualTimerService
from loopcast.shared.schemas import StreamConfig, StreamCreate
from tests.support import FakeLauncher, InlineExecutor, StatusRecorder

# Tuesday
T0 = datetime(2026, 10, 20, 9, 30, tzinfo=timezone.utc)

VIDEO = "loop.mp4"


def _no_sleep(_: float) -> None:
    pass


@pytest.fixture(autouse=True)
def _structlog_to_stdlib():
    """Route structlog events through stdlib logging so caplog sees them and stdout stays clean."""
    structlog.configure(
        processors=[structlog.stdlib.render_to_log_kwargs],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock() -> SteppedClock:
    return SteppedClock(T0)


@pytest.fixture
def timers(clock) -> ManualTimerService:
    return ManualTimerService(clock=clock)


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def videos_dir(tmp_path) -> Path:
    path = tmp_path / "videos"
    path.mkdir()
    (path / VIDEO).write_bytes(b"\x00")
    return path


@pytest.fixture
def sink() -> StatusRecorder:
    return StatusRecorder()


@pytest.fixture
def table() -> RuntimeTable:
    return RuntimeTable()


@pytest.fixture
def orchestrator(table, videos_dir, launcher, timers, clock, sink):
    orch = StreamOrchestrator(
        table,
        videos_dir,
        launcher=launcher,
        timers=timers,
        clock=clock,
        policy=OrchestratorPolicy(),
        status_sink=sink,
        sleep=_no_sleep,
    )
    yield orch
    orch.stop_all()


@pytest.fixture
def make_stream():
    """Build a StreamConfig without touching the store."""

    def _make(stream_id: int = 1, **overrides) -> StreamConfig:
        data = {
            "id": stream_id,
            "title": f"Stream {stream_id}",
            "stream_key": f"key-{stream_id}",
            "video_file": VIDEO,
        }
        data.update(overrides)
        return StreamConfig(**data)

    return _make


@pytest.fixture
def store() -> ConfigStore:
    return ConfigStore(get_engine("sqlite://"))


@pytest.fixture
def stored_stream(store) -> StreamConfig:
    return store.create_stream(StreamCreate(title="Lofi", stream_key="secret-key-1234", video_file=VIDEO))


@pytest.fixture
def evaluator(store, table, videos_dir, launcher, timers, clock, executor):
    orch = StreamOrchestrator(
        table,
        videos_dir,
        launcher=launcher,
        timers=timers,
        clock=clock,
        status_sink=store.set_stream_status,
        sleep=_no_sleep,
    )
    ev = ScheduleEvaluator(
        store,
        orch,
        clock=clock,
        tz="UTC",
        tick_seconds=60,
        startup_delay_seconds=0,
        executor=executor,
    )
    yield ev
    ev.stop()
    orch.stop_all()


@pytest.fixture
def test_settings(videos_dir) -> Settings:
    return Settings(
        database_url="sqlite://",
        videos_dir=str(videos_dir),
        timezone="UTC",
        stop_grace_seconds=1.0,
        schedule_startup_delay_seconds=0,
    )


@pytest.fixture
def station(test_settings, launcher, timers, clock, executor):
    st = Station(
        test_settings,
        launcher=launcher,
        timers=timers,
        clock=clock,
        executor=executor,
        sleep=_no_sleep,
    )
    yield st
    st.shutdown()
