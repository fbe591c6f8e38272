"""
Shared enums for Loopcast.
"""

from __future__ import annotations

from enum import Enum


class RelayMode(str, Enum):
    """How the relay process forwards the source video."""

    COPY = "copy"
    REENCODE = "reencode"


class StreamState(str, Enum):
    """Per-stream orchestrator state."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    FAILED = "failed"


class StreamStatusTag(str, Enum):
    """Status written back to the stream record."""

    STOPPED = "stopped"
    LIVE = "live"
    FAILED = "failed"


class ScheduleType(str, Enum):
    ONCE = "once"
    RECURRING = "recurring"


# Index matches datetime.date.weekday()
WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_WEEKDAY_NAMES = {
    name: code
    for code, full in zip(
        WEEKDAYS,
        ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"),
    )
    for name in (code, full)
}


def normalize_weekday(value: str) -> str:
    """Map ``"Monday"``, ``"MON"`` or ``"mon"`` to ``"mon"``.

    Raises ValueError for anything that is not a weekday name.
    """
    try:
        return _WEEKDAY_NAMES[value.strip().lower()]
    except KeyError:
        raise ValueError(f"Invalid weekday '{value}'") from None
