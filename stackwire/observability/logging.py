"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

LOG_FORMATS = ("json", "console")


def setup_logging(
    level: str = "info",
    log_format: str = "json",
    stream: TextIO | None = None,
    cache_loggers: bool = True,
) -> None:
    """Configure structlog to write to *stream* (stderr by default).

    ``json`` renders one object per line with an ISO ``ts``; ``console`` is
    the human-readable renderer for terminals. Plans and run reports go to
    stdout, so logs never mix with them.

    Pass ``cache_loggers=False`` when logging may be reconfigured later in
    the same process (repeated CLI invocations).
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {log_format}. Must be one of {LOG_FORMATS}")
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: Any = (
        structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=cache_loggers,
    )


def bind_run_context(**values: Any) -> None:
    """Attach *values* (command, stack path) to every later log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
