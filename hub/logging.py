"""structlog setup for the hub.

Modules log with ``structlog.get_logger(__name__)`` and event names in
``component.event`` form. Call ``configure_logging`` once at process start.
"""
from __future__ import annotations

import logging

import structlog

from hub.config import HubSettings


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install structlog processors: JSON in production, console otherwise."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))

    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: HubSettings) -> None:
    configure_logging(settings.log_level, settings.log_json)
