"""Shared output helpers for CLI commands."""

from __future__ import annotations

import json
import re
from typing import Any, NoReturn

import typer

from ...infra.exceptions import LoopcastError


def error_code(error: Exception) -> str:
    """``StreamNotFound`` -> ``STREAM_NOT_FOUND``."""
    if not isinstance(error, LoopcastError):
        return "UNKNOWN_ERROR"
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(error).__name__).upper()


def emit_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def fail(error: Exception, json_output: bool, action: str) -> NoReturn:
    """Report ``error`` and exit with status 1."""
    if json_output:
        emit_json({"status": "error", "code": error_code(error), "message": str(error)})
    else:
        typer.echo(f"Error {action}: {error}", err=True)
    raise typer.Exit(1)
