"""Structured logging configuration using structlog.

Event names are snake_case and run-level events carry the estimate `key`.
What each level shows:

- INFO: one line per run (`progress_run_started`, `progress_run_completed`
  with expected, elapsed and learned milliseconds), plus `estimate_cleared`
  and backend/client initialization.
- WARNING: degradations that never reach the caller. These are unreadable or
  invalid estimates (`estimate_read_failed`, `estimate_value_invalid`),
  failed writes (`estimate_update_failed`, `estimate_clear_failed`), failing
  listeners and tick callbacks, failed publishes, and `progress_task_failed`
  for the wrapped task's own error.
- DEBUG: per-run internals such as `countdown_started`, `countdown_stopped`,
  `estimate_updated` and `progress_published`.

Development (DEBUG=true) renders colored console output at DEBUG level.
Production (DEBUG=false) renders JSON at INFO level for log aggregation.
"""

from __future__ import annotations

import logging
import sys
from typing import cast

import structlog

from adaptive_progress.core.config import get_settings


def configure_logging() -> None:
    """Configure structured logging for the application.

    In development (DEBUG=true):
        - Pretty console output with colors
        - DEBUG level, so countdown and estimate events are visible

    In production (DEBUG=false):
        - JSON output for log aggregation
        - INFO level
    """
    settings = get_settings()

    log_level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.debug:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            # JSONRenderer must be last
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name. If None, uses the calling module's name.

    Returns:
        A structured logger instance.
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
