from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    """Create a print logger bound to whatever `sys.stderr` is right now.

    Example:
        ```python
        _stderr_logger().msg("hello")
        ```
    """
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO", *, stream: TextIO | None = None) -> None:
    """Route structlog events to stderr so stdout stays free for the stdio transport.

    Example:
        ```python
        configure_logging("DEBUG")
        ```
    """
    numeric_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=_stderr_logger if stream is None else structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
