"""
Main CLI application using Typer with router-based command dispatch.

This module provides the command-line interface for Loopcast: `serve` runs the
API together with the schedule evaluator, the `stream` and `schedule` groups
manage configuration.

All command groups are registered through the centralized CliRouter.
"""

from __future__ import annotations

import typer

from ..infra.logging import configure_logging
from ..infra.settings import settings
from .commands import schedule, stream
from .context import get_station
from .router import get_router

app = typer.Typer(help="Loopcast operator CLI")

# Initialize router and register all command groups
router = get_router(app)

router.register(
    "stream",
    stream.app,
    help_text="Stream configuration and relay operations",
)

router.register(
    "schedule",
    schedule.app,
    help_text="Schedule window operations",
)


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
    log_format: str = typer.Option(None, "--log-format", help="json or console"),
):
    """Configure logging before any command runs."""
    configure_logging(level=log_level, fmt=log_format)


@app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Override API_HOST"),
    port: int = typer.Option(None, "--port", help="Override API_PORT"),
):
    """
    Run the HTTP API and the schedule evaluator until interrupted.

    Every running relay is stopped on shutdown.
    """
    from ..web.server import serve as serve_api

    station = get_station()
    serve_api(station, host or settings.api_host, port or settings.api_port)


def cli() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    cli()
