"""structlog setup for BillPort services.

Modules log through ``structlog.get_logger()``; this module decides the
level filter and renderer once at startup.
"""

import logging

import structlog

from billport_agents.config import BillPortConfig


def configure_logging(config: BillPortConfig) -> None:
    """Configure structlog from ``config``.

    Production renders one JSON object per line; other environments use
    the console renderer. ``is_debug`` forces the DEBUG level.
    """
    level_name = "DEBUG" if config.is_debug else config.log_level
    level = logging.getLevelName(level_name)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if config.is_production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
