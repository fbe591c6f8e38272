"""Wall clock abstractions used by the orchestrator and the schedule evaluator.

Both components ask the clock for aware datetimes instead of calling
:func:`datetime.now` directly, so tests can pin "now" to 09:30 on a Tuesday.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from threading import Lock
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@runtime_checkable
class Clock(Protocol):
    """Protocol implemented by clock providers."""

    def now_utc(self) -> datetime:
        """Return current UTC time as an aware datetime."""


class MasterClock:
    """System clock providing timezone-aware timestamps."""

    def now_utc(self) -> datetime:
        """Return current UTC time as an aware datetime."""
        return datetime.now(timezone.utc)


class SteppedClock(MasterClock):
    """Deterministic clock used for tests.

    Time advances only when :meth:`advance` or :meth:`set` is called.
    """

    def __init__(self, start: datetime) -> None:
        ensure_aware(start)
        self._current = start.astimezone(timezone.utc)
        self._lock = Lock()

    def now_utc(self) -> datetime:
        with self._lock:
            return self._current

    def set(self, dt: datetime) -> None:
        ensure_aware(dt)
        with self._lock:
            self._current = dt.astimezone(timezone.utc)

    def advance(self, seconds: float) -> datetime:
        """Advance the clock by ``seconds`` (must be non-negative)."""
        if seconds < 0.0:
            raise ValueError("seconds must be non-negative")
        with self._lock:
            self._current += timedelta(seconds=seconds)
            return self._current


def ensure_aware(dt: datetime) -> None:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError("Datetime must be timezone-aware")


def resolve_timezone(tz: str | tzinfo | None) -> tzinfo:
    if tz is None or tz == "":
        return datetime.now().astimezone().tzinfo or timezone.utc
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc
