"""
Stream orchestrator.

Supervises one relay process per stream id as an explicit state machine::

    STOPPED --start--> STARTING --probe ok--> RUNNING
                          |                      |
                     probe failed          non-clean exit
                          v                      v
                       STOPPED              RESTARTING --retry timer--> STARTING
                                                 |
                                         retries exhausted
                                                 v
                                               FAILED

``stop`` from any live state discards the runtime state and disables
auto-restart. Every transition happens while holding the stream's lock from
the shared :class:`RuntimeTable`, and every path that discards runtime state
cancels the stream's restart, stability and duration-expiry timers.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..infra.exceptions import MaxRetriesExceeded, NotRunning, SourceVideoMissing, SpawnFailed
from ..infra.settings import Settings
from ..shared.schemas import LogEntry, StreamConfig, StreamStatus
from ..shared.types import RelayMode, StreamState, StreamStatusTag
from ..streaming.ffmpeg_cmd import build_relay_cmd, get_cmd_summary
from .clock import Clock, MasterClock
from .log_buffer import DEFAULT_LOG_CAPACITY, LogBuffer
from .process_launcher import PopenLauncher, ProcessLauncher, RelayProcess, terminate_relay
from .runtime_table import RuntimeState, RuntimeTable
from .timers import ThreadingTimerService, TimerService

_logger = logging.getLogger(__name__)

StatusSink = Callable[[int, StreamStatusTag], None]
ConfigSource = Callable[[int], StreamConfig]


@dataclass(frozen=True)
class OrchestratorPolicy:
    """Fixed timings and bounds for supervision."""

    liveness_probe_seconds: float = 2.0
    stop_grace_seconds: float = 5.0
    max_retries: int = 5
    retry_delay_seconds: float = 5.0
    stability_window_seconds: float = 300.0
    log_capacity: int = DEFAULT_LOG_CAPACITY
    clean_exit_code: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> OrchestratorPolicy:
        return cls(
            liveness_probe_seconds=settings.liveness_probe_seconds,
            stop_grace_seconds=settings.stop_grace_seconds,
            max_retries=settings.max_retries,
            retry_delay_seconds=settings.retry_delay_seconds,
            stability_window_seconds=settings.stability_window_seconds,
            log_capacity=settings.log_buffer_capacity,
        )


def format_uptime(seconds: float) -> str:
    """``3723`` -> ``"1h 02m 03s"``."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class StreamOrchestrator:
    """
    Start, stop and supervise relay processes.

    Args:
        table: Shared runtime table (also read by the schedule evaluator)
        videos_dir: Directory that ``StreamConfig.video_file`` is relative to
        launcher: Spawns relay processes
        timers: Arms restart, stability and duration-expiry timers
        clock: Source of "now" for timestamps and uptime
        policy: Probe, grace, retry and stability timings
        status_sink: Called with ``(stream_id, status)`` whenever the persisted
            stream status should change. Failures are logged, never raised.
        config_source: Loads the stored config of a stream id. When given, start
            re-reads the config under the stream lock so a concurrent update
            cannot slip in between the caller's read and the spawn.
        ffmpeg_binary: Relay executable
        sleep: Used for the liveness probe wait
    """

    def __init__(
        self,
        table: RuntimeTable,
        videos_dir: str | Path,
        *,
        launcher: ProcessLauncher | None = None,
        timers: TimerService | None = None,
        clock: Clock | None = None,
        policy: OrchestratorPolicy | None = None,
        status_sink: StatusSink | None = None,
        config_source: ConfigSource | None = None,
        ffmpeg_binary: str = "ffmpeg",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.table = table
        self.videos_dir = Path(videos_dir)
        self.launcher = launcher or PopenLauncher()
        self.timers = timers or ThreadingTimerService()
        self.clock = clock or MasterClock()
        self.policy = policy or OrchestratorPolicy()
        self._status_sink = status_sink
        self._config_source = config_source
        self._ffmpeg_binary = ffmpeg_binary
        self._sleep = sleep

    # Commands ------------------------------------------------------------------
    def start(self, config: StreamConfig, reencode: bool | None = None) -> StreamStatus:
        """
        Spawn the relay for ``config`` and wait out the liveness probe.

        ``reencode`` overrides the config's own flag when given. With a
        ``config_source`` the stored record is re-read under the stream lock
        and takes precedence over ``config``.

        Raises:
            SourceVideoMissing: The source video is not on disk.
            AlreadyRunning: The stream already has runtime state.
            SpawnFailed: The relay could not be executed or exited during the probe.
        """
        stream_id = config.id
        with self.table.lock_for(stream_id):
            if self._config_source is not None:
                config = self._config_source(stream_id)
            use_reencode = config.reencode if reencode is None else reencode
            mode = RelayMode.REENCODE if use_reencode else RelayMode.COPY
            video_path = self._video_path(config)
            if not video_path.is_file():
                raise SourceVideoMissing(config.video_file)

            runtime = RuntimeState(
                stream_id=stream_id,
                config=config,
                mode=mode,
                logs=LogBuffer(self.policy.log_capacity, now_fn=self.clock.now_utc),
                started_at=self.clock.now_utc(),
            )
            self.table.install(runtime)  # raises AlreadyRunning
            try:
                self._spawn(runtime)
            except SpawnFailed as e:
                runtime.logs.append(str(e))
                self.table.discard(stream_id, StreamState.STOPPED, last_error=str(e))
                _logger.error("Stream %s failed to start: %s", stream_id, e.detail)
                raise
            except Exception as e:
                self._abandon(runtime)
                self.table.discard(stream_id, StreamState.STOPPED, last_error=f"Start failed: {e}")
                _logger.exception("Stream %s failed to start", stream_id)
                raise

            runtime.state = StreamState.RUNNING
            if config.duration_hours > 0:
                # Counted from the start call, not from the end of the liveness wait
                elapsed = (self.clock.now_utc() - runtime.started_at).total_seconds()
                runtime.expiry_timer = self.timers.call_later(
                    max(0.0, config.duration_hours * 3600.0 - elapsed),
                    lambda: self._on_duration_expired(runtime),
                    name=f"expiry-{stream_id}",
                )
                runtime.logs.append(f"Auto-stop armed for {config.duration_hours:g}h")
            _logger.info("Stream %s started in %s mode", stream_id, mode.value)
            self._publish(stream_id, StreamStatusTag.LIVE)
            return self._status_of(runtime)

    def stop(self, stream_id: int) -> StreamStatus:
        """
        Stop the relay and disable auto-restart.

        Sends SIGTERM, escalating to SIGKILL after the grace period, and blocks
        for at most that long.

        Raises:
            NotRunning: The stream has no runtime state.
        """
        return self._stop(stream_id, expected=None, reason="Stop requested")

    def stop_all(self) -> list[int]:
        """Stop every active stream. Returns the ids that were stopped."""
        stopped: list[int] = []
        for stream_id in self.table.ids():
            try:
                self.stop(stream_id)
                stopped.append(stream_id)
            except NotRunning:
                continue
        return stopped

    # Queries -------------------------------------------------------------------
    def is_running(self, stream_id: int) -> bool:
        """True while the stream is starting, running or pending restart."""
        return stream_id in self.table

    def running_stream_ids(self) -> list[int]:
        return self.table.ids()

    def status(self, stream_id: int) -> StreamStatus:
        runtime = self.table.get(stream_id)
        if runtime is not None:
            return self._status_of(runtime)
        outcome = self.table.outcome(stream_id)
        if outcome is not None:
            return StreamStatus(
                stream_id=stream_id,
                is_running=False,
                state=outcome.state,
                retry_count=outcome.retry_count,
                last_error=outcome.last_error,
            )
        return StreamStatus(stream_id=stream_id, is_running=False, state=StreamState.STOPPED)

    def logs(self, stream_id: int, limit: int | None = None) -> list[LogEntry]:
        """Current log buffer contents, oldest first."""
        runtime = self.table.get(stream_id)
        if runtime is not None:
            return runtime.logs.snapshot(limit)
        outcome = self.table.outcome(stream_id)
        if outcome is not None:
            return outcome.logs.snapshot(limit)
        return []

    # Transitions ---------------------------------------------------------------
    def _spawn(self, runtime: RuntimeState) -> None:
        """STARTING: launch the relay and probe it. Caller holds the stream lock."""
        runtime.state = StreamState.STARTING
        config = runtime.config
        cmd = build_relay_cmd(
            self._video_path(config),
            config.ingest_url,
            mode=runtime.mode,
            quality=config.quality,
            ffmpeg_binary=self._ffmpeg_binary,
        )
        _logger.info("Starting stream %s: %s", runtime.stream_id, get_cmd_summary(cmd))
        try:
            process = self.launcher.launch(cmd)
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise SpawnFailed(runtime.stream_id, str(e)) from e

        runtime.process = process
        runtime.logs.append(f"Relay started ({runtime.mode.value} mode, PID {process.pid})")
        watcher = threading.Thread(
            target=self._watch,
            args=(runtime, process),
            name=f"loopcast-relay-{runtime.stream_id}",
            daemon=True,
        )
        watcher.start()

        if self.policy.liveness_probe_seconds > 0:
            self._sleep(self.policy.liveness_probe_seconds)
        code = process.poll()
        if code is not None:
            runtime.process = None
            raise SpawnFailed(runtime.stream_id, f"process exited with code {code} during startup")

    def _watch(self, runtime: RuntimeState, process: RelayProcess) -> None:
        """Watcher thread: pump relay output into the log buffer, then report the exit."""
        try:
            if process.stdout is not None:
                for line in process.stdout:
                    runtime.logs.append(line)
        except (OSError, ValueError) as e:
            _logger.warning("Stream %s: relay output unreadable: %s", runtime.stream_id, e)
        code = process.wait()
        self._on_exit(runtime, process, code)

    def _on_exit(self, runtime: RuntimeState, process: RelayProcess, code: int) -> None:
        stream_id = runtime.stream_id
        with self.table.lock_for(stream_id):
            if self.table.get(stream_id) is not runtime or runtime.process is not process:
                return  # stopped, or a probe failure already handled by the spawner

            runtime.logs.append(f"Process exited with code {code}")
            runtime.process = None
            if runtime.stability_timer is not None:
                runtime.stability_timer.cancel()
                runtime.stability_timer = None

            if code == self.policy.clean_exit_code or not runtime.auto_restart:
                self.table.discard(stream_id, StreamState.STOPPED)
                _logger.info("Stream %s exited with code %s; not restarting", stream_id, code)
                self._publish(stream_id, StreamStatusTag.STOPPED)
                return

            _logger.warning("Stream %s crashed with code %s", stream_id, code)
            self._schedule_restart(runtime)

    def _schedule_restart(self, runtime: RuntimeState) -> None:
        """RESTARTING or FAILED, depending on the retry budget. Caller holds the stream lock."""
        stream_id = runtime.stream_id
        if runtime.retry_count >= self.policy.max_retries:
            runtime.auto_restart = False
            error = MaxRetriesExceeded(stream_id, runtime.retry_count)
            runtime.logs.append(str(error))
            self.table.discard(stream_id, StreamState.FAILED, last_error=str(error))
            _logger.error("%s", error)
            self._publish(stream_id, StreamStatusTag.FAILED)
            return

        runtime.retry_count += 1
        runtime.state = StreamState.RESTARTING
        delay = self.policy.retry_delay_seconds
        runtime.logs.append(
            f"Restarting in {delay:g}s (attempt {runtime.retry_count}/{self.policy.max_retries})"
        )
        runtime.restart_timer = self.timers.call_later(
            delay, lambda: self._restart(runtime), name=f"restart-{stream_id}"
        )

    def _restart(self, runtime: RuntimeState) -> None:
        stream_id = runtime.stream_id
        with self.table.lock_for(stream_id):
            if self.table.get(stream_id) is not runtime or runtime.state != StreamState.RESTARTING:
                return
            runtime.restart_timer = None
            try:
                self._spawn(runtime)
            except SpawnFailed as e:
                runtime.logs.append(str(e))
                _logger.warning("Stream %s restart attempt failed: %s", stream_id, e.detail)
                self._schedule_restart(runtime)
                return
            except Exception as e:
                self._abandon(runtime)
                runtime.auto_restart = False
                error = f"Restart failed: {e}"
                runtime.logs.append(error)
                self.table.discard(stream_id, StreamState.FAILED, last_error=error)
                _logger.exception("Stream %s restart failed", stream_id)
                self._publish(stream_id, StreamStatusTag.FAILED)
                return

            runtime.state = StreamState.RUNNING
            process = runtime.process
            runtime.stability_timer = self.timers.call_later(
                self.policy.stability_window_seconds,
                lambda: self._on_stable(runtime, process),
                name=f"stability-{stream_id}",
            )
            _logger.info("Stream %s restarted (attempt %d)", stream_id, runtime.retry_count)

    def _on_stable(self, runtime: RuntimeState, process: RelayProcess | None) -> None:
        with self.table.lock_for(runtime.stream_id):
            if self.table.get(runtime.stream_id) is not runtime or runtime.process is not process:
                return
            runtime.stability_timer = None
            if runtime.retry_count:
                runtime.logs.append("Relay stable; retry counter reset")
                runtime.retry_count = 0

    def _on_duration_expired(self, runtime: RuntimeState) -> None:
        hours = runtime.config.duration_hours
        _logger.info("Stream %s reached its %gh duration", runtime.stream_id, hours)
        try:
            self._stop(runtime.stream_id, expected=runtime, reason=f"Duration of {hours:g}h reached")
        except NotRunning:
            pass

    def _stop(self, stream_id: int, expected: RuntimeState | None, reason: str) -> StreamStatus:
        with self.table.lock_for(stream_id):
            runtime = self.table.get(stream_id)
            if runtime is None or (expected is not None and runtime is not expected):
                raise NotRunning(stream_id)

            runtime.auto_restart = False
            runtime.cancel_timers()
            runtime.logs.append(reason)
            process = runtime.process
            if process is not None:
                _logger.info("Stopping stream %s (PID %s)", stream_id, process.pid)
                code = terminate_relay(process, self.policy.stop_grace_seconds)
                runtime.logs.append(f"Process exited with code {code}")
            self.table.discard(stream_id, StreamState.STOPPED)
            self._publish(stream_id, StreamStatusTag.STOPPED)
            return self.status(stream_id)

    # Helpers -------------------------------------------------------------------
    def _abandon(self, runtime: RuntimeState) -> None:
        """Terminate a relay whose start or restart could not be completed."""
        process, runtime.process = runtime.process, None
        if process is not None:
            terminate_relay(process, self.policy.stop_grace_seconds)

    def _video_path(self, config: StreamConfig) -> Path:
        return self.videos_dir / config.video_file

    def _status_of(self, runtime: RuntimeState) -> StreamStatus:
        uptime = None
        if runtime.started_at is not None:
            uptime = max(0.0, (self.clock.now_utc() - runtime.started_at).total_seconds())
        return StreamStatus(
            stream_id=runtime.stream_id,
            is_running=True,
            state=runtime.state,
            mode=runtime.mode,
            start_time=runtime.started_at,
            uptime_seconds=uptime,
            uptime=format_uptime(uptime) if uptime is not None else None,
            retry_count=runtime.retry_count,
            auto_restart=runtime.auto_restart,
        )

    def _publish(self, stream_id: int, status: StreamStatusTag) -> None:
        if self._status_sink is None:
            return
        try:
            self._status_sink(stream_id, status)
        except Exception:
            _logger.exception("Failed to record status %s for stream %s", status.value, stream_id)
