"""
Cancelable one-shot timers.

The orchestrator arms three kinds of per-stream timers (restart delay,
duration expiry, stability window). Each is a ``TimerHandle`` it can cancel on
any path that discards the stream's runtime state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Protocol

from .clock import SteppedClock

_logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running. No-op once it has fired."""


class TimerService(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None], *, name: str) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""


class ThreadingTimerService:
    """Timers backed by daemon :class:`threading.Timer` threads."""

    def call_later(self, delay: float, callback: Callable[[], None], *, name: str) -> TimerHandle:
        def _run() -> None:
            try:
                callback()
            except Exception:
                _logger.exception("Timer %s callback failed", name)

        timer = threading.Timer(max(0.0, delay), _run)
        timer.name = f"loopcast-timer-{name}"
        timer.daemon = True
        timer.start()
        return timer


@dataclass
class ManualTimer:
    due: float
    callback: Callable[[], None]
    name: str
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualTimerService:
    """Deterministic timer service for tests.

    Timers fire only from :meth:`advance`, in due order, on the caller's
    thread. When a :class:`SteppedClock` is attached it is moved forward in
    step with the timers so callbacks observe a consistent "now".
    """

    clock: SteppedClock | None = None
    elapsed: float = 0.0
    timers: list[ManualTimer] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None], *, name: str) -> ManualTimer:
        timer = ManualTimer(due=self.elapsed + max(0.0, delay), callback=callback, name=name)
        self.timers.append(timer)
        return timer

    def pending(self, name_prefix: str = "") -> list[ManualTimer]:
        return [
            t
            for t in self.timers
            if not t.cancelled and not t.fired and t.name.startswith(name_prefix)
        ]

    def advance(self, seconds: float) -> None:
        """Move time forward by ``seconds`` and fire every timer that comes due."""
        target = self.elapsed + seconds
        while True:
            due = [t for t in self.pending() if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._move_to(timer.due)
            timer.fired = True
            timer.callback()
        self._move_to(target)

    def _move_to(self, point: float) -> None:
        if point > self.elapsed:
            if self.clock is not None:
                self.clock.advance(point - self.elapsed)
            self.elapsed = point
