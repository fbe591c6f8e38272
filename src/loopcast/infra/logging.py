"""
Logging configuration for Loopcast.

This module configures structlog for JSON logging across the application.
Stdlib ``logging.getLogger(__name__)`` call sites are routed through the same
processor chain, so runtime modules and use cases render identically.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog

from .settings import settings

# Keys whose values are never rendered
SECRET_KEYS = ("stream_key", "secret", "token", "password", "api_key", "database_url")

# rtmp://host/app/<key> -> rtmp://host/app/***
_RTMP_KEY_PATTERN = re.compile(r"(rtmps?://[^\s/]+(?:/[^\s/]+)*)/[^\s/]+")


def redact_text(value: str) -> str:
    """Mask the stream-key segment of RTMP URLs and key=value secrets in a string."""
    value = _RTMP_KEY_PATTERN.sub(lambda m: m.group(1) + "/***", value)
    value = re.sub(r"(?i)(token|password|key)=[^&\s]+", lambda m: m.group(1) + "=***", value)
    return value


def redact_secrets(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Redact sensitive information from log events."""

    def redact_value(value: Any) -> Any:
        if isinstance(value, str):
            return redact_text(value)
        elif isinstance(value, dict):
            return {k: redact_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [redact_value(item) for item in value]
        return value

    for key in list(event_dict.keys()):
        if any(secret in key.lower() for secret in SECRET_KEYS):
            event_dict[key] = "***REDACTED***"
        else:
            event_dict[key] = redact_value(event_dict[key])

    return event_dict


def _shared_processors() -> list[Any]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,  # Redact secrets before rendering
    ]


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog (and the stdlib root logger) for JSON or console output."""
    level_name = (level or settings.log_level).upper()
    renderer: Any
    if (fmt or settings.log_format) == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # keep uvicorn visible through the same pipeline
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger with service context.

    The logger stays lazy until first use, so module-level loggers pick up
    whatever :func:`configure_logging` installs later.
    """
    return structlog.get_logger(name, service="loopcast", env=settings.env)
