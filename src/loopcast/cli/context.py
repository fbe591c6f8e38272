"""Station shared by CLI commands within one invocation."""

from __future__ import annotations

from ..runtime.station import Station

_station: Station | None = None


def get_station() -> Station:
    """Return the current station, building one from settings on first use."""
    global _station
    if _station is None:
        _station = Station()
    return _station


def use_station(station: Station | None) -> None:
    """Replace the current station (None resets to lazy construction)."""
    global _station
    _station = station
