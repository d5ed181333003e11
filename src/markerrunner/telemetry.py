"""Logging setup for MarkerRunner.

stdout carries the marker protocol, so every log line goes to stderr.
"""

import logging
import sys

import structlog

BASE_LOGGER_NAME = "markerrunner"


def setup_logging(verbose: bool = False) -> None:
    """Configures structlog for the entire application."""
    level = logging.DEBUG if verbose else logging.WARNING

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # resolve stderr per call, it may be swapped after configuration
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    structlog.get_logger(BASE_LOGGER_NAME).debug("Logging configured", level=logging.getLevelName(level))
