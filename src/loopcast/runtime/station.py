"""
Station: the composition root of a running Loopcast process.

Builds the config store, the shared runtime table, the orchestrator and the
schedule evaluator from :class:`Settings`, and owns their lifecycle. The web
API and the CLI only ever talk to a ``Station``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor
from datetime import timedelta
from typing import Callable

from sqlalchemy.engine import Engine

from ..infra.config_store import ConfigStore
from ..infra.db import get_engine
from ..infra.settings import Settings
from ..infra.settings import settings as default_settings
from .clock import Clock, MasterClock
from .orchestrator import OrchestratorPolicy, StreamOrchestrator
from .process_launcher import ProcessLauncher
from .runtime_table import RuntimeTable
from .schedule_evaluator import ScheduleEvaluator
from .timers import TimerService

_logger = logging.getLogger(__name__)


class Station:
    """
    Wire the stream orchestrator and schedule evaluator around one store.

    Every collaborator can be replaced for tests; anything left as None is
    built from ``settings``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: Engine | None = None,
        launcher: ProcessLauncher | None = None,
        timers: TimerService | None = None,
        clock: Clock | None = None,
        executor: Executor | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or default_settings
        self.clock = clock or MasterClock()
        self.engine = engine or get_engine(self.settings.database_url)
        self.store = ConfigStore(self.engine)
        self.table = RuntimeTable()
        self.orchestrator = StreamOrchestrator(
            self.table,
            self.settings.videos_path,
            launcher=launcher,
            timers=timers,
            clock=self.clock,
            policy=OrchestratorPolicy.from_settings(self.settings),
            status_sink=self.store.set_stream_status,
            config_source=self.store.get_stream,
            ffmpeg_binary=self.settings.ffmpeg_binary,
            sleep=sleep,
        )
        self.evaluator = ScheduleEvaluator(
            self.store,
            self.orchestrator,
            clock=self.clock,
            tz=self.settings.timezone or None,
            tick_seconds=self.settings.schedule_tick_seconds,
            startup_delay_seconds=self.settings.schedule_startup_delay_seconds,
            attribution_window=timedelta(hours=self.settings.schedule_attribution_hours),
            executor=executor,
        )
        self._started = False

    def start(self) -> None:
        """Start the schedule evaluator. Streams are started by use cases or schedules."""
        if self._started:
            return
        self.settings.videos_path.mkdir(parents=True, exist_ok=True)
        self.evaluator.start()
        self._started = True
        _logger.info("Station started (videos in %s)", self.settings.videos_path)

    def shutdown(self) -> None:
        """Stop the evaluator, then every active relay."""
        self.evaluator.stop()
        stopped = self.orchestrator.stop_all()
        self._started = False
        _logger.info("Station stopped; %d stream(s) shut down", len(stopped))
