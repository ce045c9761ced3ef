"""structlog configuration shared by the controller and its embedding process."""

from __future__ import annotations

import sys

import structlog


def configure_logging(json_output: bool | None = None) -> None:
    """Install the structlog processor pipeline writing to stderr.

    Args:
        json_output: Force JSON (True) or console (False) rendering. None picks
            the console renderer when stderr is a terminal and JSON otherwise.
    """
    if json_output is None:
        json_output = not sys.stderr.isatty()
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
