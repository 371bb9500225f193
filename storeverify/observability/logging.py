"""
Structured Logging with Structlog.

Library modules call ``structlog.get_logger(__name__)`` and emit events;
the host application decides how they are rendered by calling
``setup_logging()`` (or by configuring structlog itself).
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from storeverify.config import settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add library-level context to all log entries."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.version
    return event_dict


def setup_logging() -> None:
    """
    Configure structured logging with structlog.

    Logs are formatted as JSON for machine parsing with the following structure:
    {
        "event": "appstore_receipt_verified",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "storeverify.services.appstore_provider",
        "service": "storeverify",
        "version": "0.1.0",
        ...additional context
    }
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("playstore_product_fetched", product_id=product_id)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def redact(secret: str | None, keep: int = 8) -> str:
    """Shorten a token or receipt so it can be logged."""
    if not secret:
        return ""
    if len(secret) <= keep:
        return "***"
    return secret[:keep] + "..."


class log_context:
    """
    Context manager for adding structured logging context.

    Usage:
        with log_context(order_id="GPA.1234", package_name="com.example"):
            client.get_product(...)
            # All logs within this context will include order_id and package_name
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        """Enter context - bind context variables."""
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context - clear context variables."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())
