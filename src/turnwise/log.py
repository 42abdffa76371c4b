"""
Logging setup.

Everything in turnwise logs through ``structlog.get_logger()``; this module
installs the processor chain once per process.
"""

import logging

import structlog

from .config import get_settings


def configure_logging(level: str | None = None, colors: bool = True) -> None:
    """Configure structlog on top of the stdlib logging module."""
    level_name = (level or get_settings().log_level).upper()

    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
