from __future__ import annotations

from fastapi import Request

from ...runtime.station import Station


def get_station(request: Request) -> Station:
    """Station the application was built around."""
    return request.app.state.station
