"""
corpusgate/core/logs.py

Structured logging setup.

Every module logs through ``get_logger(__name__)`` with a snake_case
event name and keyword context:

    log.info("rule_table_published", version=3, rule_count=16)
"""

import logging
import sys

import structlog


def _stderr_logger(*args):
    # Resolved per call so redirected or replaced stderr streams are honoured.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        json:  Render one JSON object per line instead of key=value text.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json else
        structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str):
    """Return a structlog logger bound to the module name."""
    return structlog.get_logger(component=name)
