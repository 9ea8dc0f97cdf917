"""
Structured logging for the Floodgate batching engine.

Every entry carries the app identifier, the component that emitted it and
any bound domain context (action, instance key, batch number):

    {
        "app": "floodgate",
        "component": "batch-manager",
        "action": "promoteAction",
        "event": "batch_created",
        "batch_number": 3,
        ...
    }
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict

APP_NAME = "floodgate"


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the application identifier to every log entry."""
    event_dict["app"] = APP_NAME
    return event_dict


def add_severity_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Map the log level to a cloud-logging severity."""
    level = event_dict.get("level")
    if level:
        event_dict["severity"] = level.upper()
    return event_dict


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structlog on top of the standard logging module.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON output when True, colored console output otherwise
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors: list[Any] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        add_severity_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    name: str | None = None,
    component: str | None = None,
    **initial_context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a logger with the component and any extra context bound.

    Usage:
        >>> log = get_logger(__name__, component="batch-manager", action="promoteAction")
        >>> log.info("batch_created", batch_number=2)
    """
    logger = structlog.get_logger(name)

    context: dict[str, Any] = {}
    if component:
        context["component"] = component
    if name:
        context["module"] = name
    context.update(initial_context)

    if context:
        logger = logger.bind(**context)
    return logger
