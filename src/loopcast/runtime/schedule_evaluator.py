"""
Schedule evaluator.

A periodic reconciler: every tick it reads the schedules from the config
store, computes each one's desired run-state for "now" and issues start/stop
calls against the orchestrator. It keeps no memory between ticks; a failed
start is simply re-derived and retried on the next tick.

Attribution rule: a schedule only stops a running stream when its own
``last_run`` lies within the trailing attribution window (24h by default).
Streams started by hand, which no schedule has a recent ``last_run`` for, are
never stopped by the evaluator.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Protocol

from ..infra.exceptions import LoopcastError, StreamNotFound
from ..shared.schemas import ScheduleConfig, StreamConfig, StreamStatus
from .clock import Clock, MasterClock, resolve_timezone
from .schedule_window import is_desired

_logger = logging.getLogger(__name__)


class ScheduleSource(Protocol):
    """Config store operations the evaluator consumes."""

    def list_schedules(self) -> list[ScheduleConfig]: ...

    def get_stream(self, stream_id: int) -> StreamConfig: ...

    def update_schedule_last_run(self, schedule_id: int, timestamp: datetime) -> None: ...


class StreamController(Protocol):
    """Orchestrator operations the evaluator drives."""

    def is_running(self, stream_id: int) -> bool: ...

    def start(self, config: StreamConfig, reencode: bool | None = None) -> StreamStatus: ...

    def stop(self, stream_id: int) -> StreamStatus: ...


@dataclass(frozen=True)
class ScheduleDecision:
    """Outcome of evaluating one schedule in one tick."""

    schedule_id: int
    stream_id: int
    desired: bool
    running: bool
    action: str  # "start" | "stop" | "none" | "skip"
    reason: str


class ScheduleEvaluator:
    """
    Reconcile declared schedule windows with running relays.

    Args:
        store: Source of schedules and streams; receives ``last_run`` updates
        orchestrator: Receives start/stop calls
        clock: Source of "now"
        tz: Timezone the schedule windows are written in (None = host local)
        tick_seconds: Interval between reconciliation passes
        startup_delay_seconds: Delay before the first pass
        attribution_window: How recent ``last_run`` must be for a stop
        executor: Runs start/stop calls so a slow liveness probe never stalls
            the tick. Defaults to a small thread pool.
    """

    def __init__(
        self,
        store: ScheduleSource,
        orchestrator: StreamController,
        *,
        clock: Clock | None = None,
        tz: str | tzinfo | None = None,
        tick_seconds: float = 60.0,
        startup_delay_seconds: float = 5.0,
        attribution_window: timedelta = timedelta(hours=24),
        executor: Executor | None = None,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.clock = clock or MasterClock()
        self.tz = resolve_timezone(tz)
        self.tick_seconds = tick_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self.attribution_window = attribution_window
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="loopcast-schedule"
        )
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # Loop ----------------------------------------------------------------------
    def start(self) -> None:
        """Begin ticking in a background thread after the startup delay."""
        if self._thread is not None and self._thread.is_alive():
            _logger.warning("Schedule evaluator is already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="loopcast-schedule-evaluator", daemon=True
        )
        self._thread.start()
        _logger.info(
            "Schedule evaluator active, checking every %gs (timezone %s)", self.tick_seconds, self.tz
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _run(self) -> None:
        if self._stop_event.wait(self.startup_delay_seconds):
            return
        while True:
            try:
                self.tick()
            except Exception:
                _logger.exception("Schedule check failed")
            if self._stop_event.wait(self.tick_seconds):
                return

    # Reconciliation ------------------------------------------------------------
    def tick(self, *, dry_run: bool = False) -> list[ScheduleDecision]:
        """
        Run one reconciliation pass.

        Start/stop calls are submitted to the executor and not awaited. With
        ``dry_run`` the decisions are computed and returned but nothing is issued.
        """
        now_utc = self.clock.now_utc()
        now_local = now_utc.astimezone(self.tz)
        schedules = self.store.list_schedules()
        _logger.debug("Checking %d schedule(s) at %s", len(schedules), now_local.isoformat())

        evaluated: list[tuple[ScheduleConfig, StreamConfig | None, bool]] = []
        wanted: set[int] = set()
        for schedule in schedules:
            if not schedule.active:
                evaluated.append((schedule, None, False))
                continue
            try:
                stream = self.store.get_stream(schedule.stream_id)
            except StreamNotFound:
                evaluated.append((schedule, None, False))
                continue
            desired = is_desired(schedule, now_local)
            if desired:
                wanted.add(stream.id)
            evaluated.append((schedule, stream, desired))

        decisions: list[ScheduleDecision] = []
        issued: set[int] = set()
        for schedule, stream, desired in evaluated:
            decision = self._decide(schedule, stream, desired, now_utc, wanted, issued)
            decisions.append(decision)
            if decision.action in ("start", "stop"):
                issued.add(decision.stream_id)
                _logger.info(
                    "Schedule %s (%r): %s stream %s (%s)",
                    schedule.id,
                    schedule.title,
                    decision.action.upper(),
                    decision.stream_id,
                    decision.reason,
                )
                if not dry_run:
                    self._issue(decision, schedule, stream)
        return decisions

    def _decide(
        self,
        schedule: ScheduleConfig,
        stream: StreamConfig | None,
        desired: bool,
        now_utc: datetime,
        wanted: set[int],
        issued: set[int],
    ) -> ScheduleDecision:
        def decision(action: str, reason: str, running: bool = False) -> ScheduleDecision:
            return ScheduleDecision(
                schedule_id=schedule.id,
                stream_id=schedule.stream_id,
                desired=desired,
                running=running,
                action=action,
                reason=reason,
            )

        if not schedule.active:
            return decision("skip", "schedule is paused")
        if stream is None:
            return decision("skip", "stream not found")

        running = self.orchestrator.is_running(stream.id)
        if stream.id in issued:
            return decision("none", "another schedule already acted on this stream", running)
        if desired and not running:
            return decision("start", "inside window", running)
        if not desired and running:
            if stream.id in wanted:
                return decision("none", "another schedule wants this stream running", running)
            if not self.is_attributed(schedule, now_utc):
                return decision("none", "running stream not started by this schedule", running)
            return decision("stop", "outside window", running)
        return decision("none", "running as expected" if running else "outside window", running)

    def is_attributed(self, schedule: ScheduleConfig, now_utc: datetime) -> bool:
        """True when the schedule's last start lies within the attribution window."""
        if schedule.last_run is None:
            return False
        return now_utc - schedule.last_run <= self.attribution_window

    # Actions -------------------------------------------------------------------
    def _issue(
        self, decision: ScheduleDecision, schedule: ScheduleConfig, stream: StreamConfig | None
    ) -> None:
        if decision.action == "start" and stream is not None:
            self._executor.submit(self._start_stream, schedule, stream)
        elif decision.action == "stop":
            self._executor.submit(self._stop_stream, schedule)

    def _start_stream(self, schedule: ScheduleConfig, stream: StreamConfig) -> None:
        try:
            self.orchestrator.start(stream)
        except LoopcastError as e:
            _logger.error("Schedule %s failed to start stream %s: %s", schedule.id, stream.id, e)
            return
        try:
            self.store.update_schedule_last_run(schedule.id, self.clock.now_utc())
        except LoopcastError as e:
            # Schedule deleted while its stream was starting
            _logger.warning("Schedule %s: could not record last run: %s", schedule.id, e)
        _logger.info("Schedule %s started stream %s", schedule.id, stream.id)

    def _stop_stream(self, schedule: ScheduleConfig) -> None:
        try:
            self.orchestrator.stop(schedule.stream_id)
        except LoopcastError as e:
            _logger.error(
                "Schedule %s failed to stop stream %s: %s", schedule.id, schedule.stream_id, e
            )
            return
        _logger.info("Schedule %s stopped stream %s", schedule.id, schedule.stream_id)
