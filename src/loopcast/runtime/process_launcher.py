"""
Relay (ffmpeg) process management.

The orchestrator spawns one relay process per running stream and terminates it
on stop. Relay stdout and stderr are merged into one text pipe; the
orchestrator's watcher thread reads it line by line into the stream's log
buffer, so nothing here writes log files.
"""

from __future__ import annotations

import logging
import subprocess
from typing import IO, Iterable, Protocol

_logger = logging.getLogger(__name__)

# SIGKILL cannot be ignored; this only bounds reaping
KILL_REAP_SECONDS = 1.0


class RelayProcess(Protocol):
    """The subset of :class:`subprocess.Popen` the orchestrator relies on."""

    pid: int
    stdout: IO[str] | Iterable[str] | None
    returncode: int | None

    def poll(self) -> int | None: ...

    def wait(self, timeout: float | None = None) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


class ProcessLauncher(Protocol):
    def launch(self, cmd: list[str]) -> RelayProcess:
        """Spawn ``cmd``. Raises OSError if it cannot be executed."""


class PopenLauncher:
    """Launch relays with :class:`subprocess.Popen`."""

    def launch(self, cmd: list[str]) -> RelayProcess:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,  # ffmpeg reports on stderr
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
        _logger.info("Relay process started with PID: %s", process.pid)
        return process


def terminate_relay(process: RelayProcess, grace_seconds: float) -> int | None:
    """
    Terminate a relay process: SIGTERM, then SIGKILL after ``grace_seconds``.

    Blocks for at most ``grace_seconds`` plus :data:`KILL_REAP_SECONDS`.

    Args:
        process: Process handle from a launcher
        grace_seconds: How long to wait for a graceful exit

    Returns:
        The exit code, or None if the process could not be reaped.
    """
    if process.poll() is not None:  # Already exited
        return process.returncode
    try:
        process.terminate()
        return process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        _logger.warning(
            "Relay PID %s did not exit within %.1fs, force killing", process.pid, grace_seconds
        )
        process.kill()
        try:
            return process.wait(timeout=KILL_REAP_SECONDS)
        except subprocess.TimeoutExpired:
            _logger.error("Relay PID %s survived SIGKILL", process.pid)
            return None
    except ProcessLookupError:
        return process.poll()


__all__ = [
    "PopenLauncher",
    "ProcessLauncher",
    "RelayProcess",
    "terminate_relay",
]
