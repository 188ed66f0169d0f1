"""
Centralized logging configuration.

Configure once at the entry point (the cli does it), not per module.
Modules just call structlog.get_logger(__name__).
"""

import logging
import sys

import structlog


def configure_logging(level: str | int = logging.WARNING) -> None:
    """
    Configure stdlib logging and route structlog through it.

    Safe to call more than once: stdlib handlers are only installed when the
    root logger has none, structlog is reconfigured each time so the level
    can change.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(message)s",
            handlers=[logging.StreamHandler(sys.stderr)],
        )
    root_logger.setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
