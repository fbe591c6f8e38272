"""
Test doubles for relay processes.

No test spawns a real ffmpeg: ``FakeLauncher`` hands out ``FakeProcess``
objects whose output and exit are driven by the test.
"""

from __future__ import annotations

import itertools
import queue
import subprocess
import threading
import time
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Iterator

_pids = itertools.count(4000)


class FakeProcess:
    """Stand-in for ``subprocess.Popen`` with merged text output."""

    def __init__(self, cmd: list[str], exit_code: int | None = None) -> None:
        self.cmd = cmd
        self.pid = next(_pids)
        self.returncode: int | None = None
        self.terminated = False
        self.killed = False
        self.ignore_terminate = False
        self._lines: queue.Queue[str | None] = queue.Queue()
        self._exited = threading.Event()
        self.stdout: Iterator[str] = self._read()
        if exit_code is not None:
            self.exit(exit_code)

    def _read(self) -> Iterator[str]:
        while True:
            line = self._lines.get()
            if line is None:
                return
            yield line

    def emit(self, *lines: str) -> None:
        for line in lines:
            self._lines.put(line + "\n")

    def exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._lines.put(None)
            self._exited.set()

    def poll(self) -> int | None:
        return self.returncode

    def wait(self, timeout: float | None = None) -> int:
        if not self._exited.wait(timeout):
            raise subprocess.TimeoutExpired(self.cmd, timeout)
        assert self.returncode is not None
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        if not self.ignore_terminate:
            self.exit(-15)

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)


class FakeLauncher:
    """
    Launcher returning ``FakeProcess`` objects.

    Queue outcomes with :meth:`plan`: an int makes the next process exit with
    that code immediately (failing the liveness probe), an exception is raised
    from ``launch``. Unplanned launches produce a long-running process.
    """

    def __init__(self) -> None:
        self.launched: list[FakeProcess] = []
        self._plan: deque[int | BaseException] = deque()
        self._lock = threading.Lock()
        self.on_launch: Callable[[FakeProcess], None] | None = None

    def plan(self, *outcomes: int | BaseException) -> None:
        self._plan.extend(outcomes)

    def launch(self, cmd: list[str]) -> FakeProcess:
        with self._lock:
            outcome = self._plan.popleft() if self._plan else None
            if isinstance(outcome, BaseException):
                raise outcome
            process = FakeProcess(cmd, exit_code=outcome)
            self.launched.append(process)
        if self.on_launch is not None:
            self.on_launch(process)
        return process

    @property
    def latest(self) -> FakeProcess:
        return self.launched[-1]


class InlineExecutor:
    """Executor that runs submitted calls on the caller's thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True, **_: Any) -> None:
        pass


def wait_for(predicate: Callable[[], Any], timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` until it is truthy; watcher threads report exits asynchronously."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(interval)
    raise AssertionError("condition not met within timeout")


class StatusRecorder:
    """Status sink that remembers what the orchestrator published."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, str]] = []

    def __call__(self, stream_id: int, status: Any) -> None:
        self.calls.append((stream_id, status.value))

    def last(self, stream_id: int) -> str | None:
        for sid, value in reversed(self.calls):
            if sid == stream_id:
                return value
        return None


class DeferredExecutor:
    """Executor that queues submitted calls until :meth:`run_pending`."""

    def __init__(self) -> None:
        self.queued: list[tuple[Callable[..., Any], tuple[Any, ...], dict[str, Any]]] = []

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        self.queued.append((fn, args, kwargs))
        return Future()

    def run_pending(self) -> None:
        queued, self.queued = self.queued, []
        for fn, args, kwargs in queued:
            fn(*args, **kwargs)

    def shutdown(self, wait: bool = True, **_: Any) -> None:
        pass
