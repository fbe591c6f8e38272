"""
Web server for Loopcast.

A thin FastAPI boundary over the stream and schedule use cases. Typed errors
from the core are mapped to HTTP status codes in one place.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..infra.exceptions import (
    AlreadyRunning,
    ConfigLocked,
    LoopcastError,
    NotFound,
    NotRunning,
    SpawnFailed,
    ValidationError,
)
from ..runtime.station import Station
from .api import schedules, streams

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[LoopcastError], int]] = [
    (NotFound, 404),
    (AlreadyRunning, 409),
    (NotRunning, 409),
    (ConfigLocked, 409),
    (ValidationError, 422),
    (SpawnFailed, 502),
]


def status_for(error: LoopcastError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


async def _loopcast_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, LoopcastError)
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "type": type(exc).__name__},
    )


def create_app(station: Station, *, manage_lifecycle: bool = True) -> FastAPI:
    """
    Build the API application around ``station``.

    With ``manage_lifecycle`` the station's evaluator is started with the app
    and every relay is stopped on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            station.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                station.shutdown()

    app = FastAPI(title="Loopcast", description="Looped video relay to RTMP", lifespan=lifespan)
    app.state.station = station
    app.add_exception_handler(LoopcastError, _loopcast_error_handler)
    app.include_router(streams.router)
    app.include_router(schedules.router)

    @app.get("/api/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "running_streams": station.orchestrator.running_stream_ids(),
        }

    return app


def serve(station: Station, host: str, port: int) -> None:
    """Run the API with uvicorn until interrupted."""
    app = create_app(station)
    logger.info("Loopcast API listening on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
