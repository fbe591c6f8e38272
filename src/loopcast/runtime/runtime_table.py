"""
Owned table of per-stream runtime state.

One ``RuntimeTable`` is built by the station and handed to both the
orchestrator (which mutates it) and the schedule evaluator (which only asks
whether a stream is running). Every mutation for a stream id happens while
holding that id's lock from :meth:`RuntimeTable.lock_for`; different ids never
contend.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

from ..infra.exceptions import AlreadyRunning
from ..shared.schemas import StreamConfig
from ..shared.types import RelayMode, StreamState
from .log_buffer import LogBuffer
from .process_launcher import RelayProcess
from .timers import TimerHandle


@dataclass
class RuntimeState:
    """Live state of one stream while its relay is starting, running or pending restart."""

    stream_id: int
    config: StreamConfig
    mode: RelayMode
    logs: LogBuffer
    state: StreamState = StreamState.STARTING
    process: RelayProcess | None = None
    started_at: datetime | None = None
    retry_count: int = 0
    auto_restart: bool = True
    expiry_timer: TimerHandle | None = None
    restart_timer: TimerHandle | None = None
    stability_timer: TimerHandle | None = None

    def cancel_timers(self) -> None:
        for attr in ("expiry_timer", "restart_timer", "stability_timer"):
            timer = getattr(self, attr)
            if timer is not None:
                timer.cancel()
                setattr(self, attr, None)


@dataclass
class StreamOutcome:
    """What is left of a stream after its runtime state was discarded."""

    state: StreamState
    logs: LogBuffer
    last_error: str | None = None
    retry_count: int = 0


class RuntimeTable:
    """Map of stream id to :class:`RuntimeState` with per-id serialization."""

    def __init__(self) -> None:
        self._states: dict[int, RuntimeState] = {}
        self._outcomes: dict[int, StreamOutcome] = {}
        self._locks: dict[int, threading.Lock] = {}
        # Guards the dicts only; never held while waiting on a stream lock
        self._guard = threading.Lock()

    def lock_for(self, stream_id: int) -> threading.Lock:
        """Return the lock that serializes start/stop/exit handling for ``stream_id``."""
        with self._guard:
            lock = self._locks.get(stream_id)
            if lock is None:
                lock = self._locks[stream_id] = threading.Lock()
            return lock

    def get(self, stream_id: int) -> RuntimeState | None:
        with self._guard:
            return self._states.get(stream_id)

    def install(self, runtime: RuntimeState) -> None:
        """Register ``runtime``. Caller holds the stream's lock."""
        with self._guard:
            if runtime.stream_id in self._states:
                raise AlreadyRunning(runtime.stream_id)
            self._states[runtime.stream_id] = runtime
            self._outcomes.pop(runtime.stream_id, None)

    def discard(
        self,
        stream_id: int,
        final_state: StreamState,
        last_error: str | None = None,
    ) -> RuntimeState | None:
        """Drop the runtime state, cancel its timers and keep its logs as the outcome."""
        with self._guard:
            runtime = self._states.pop(stream_id, None)
            if runtime is None:
                return None
            self._outcomes[stream_id] = StreamOutcome(
                state=final_state,
                logs=runtime.logs,
                last_error=last_error,
                retry_count=runtime.retry_count,
            )
        runtime.cancel_timers()
        runtime.state = final_state
        runtime.process = None
        return runtime

    def outcome(self, stream_id: int) -> StreamOutcome | None:
        with self._guard:
            return self._outcomes.get(stream_id)

    def forget(self, stream_id: int) -> None:
        """Remove every trace of a stream that is not running (e.g. after deletion)."""
        with self._guard:
            if stream_id not in self._states:
                self._outcomes.pop(stream_id, None)

    def ids(self) -> list[int]:
        with self._guard:
            return list(self._states.keys())

    def __contains__(self, stream_id: object) -> bool:
        with self._guard:
            return stream_id in self._states

    def __len__(self) -> int:
        with self._guard:
            return len(self._states)
