"""
Structured logging for the terminal service.

Every event goes through structlog and ends up on stdout, as JSON on
deployed terminals and coloured key/value pairs on a developer console.
Credential fields (PINs, PIN hashes, bearer tokens) are masked before any
renderer sees the event. Code that needs to correlate a token logs
`token_hash` instead, which is a short digest and left as is.
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from licensegate.config import settings

REDACTED = "***"

SENSITIVE_KEYS = frozenset(
    {
        "pin",
        "admin_pin",
        "kitchen_pin",
        "new_kitchen_pin",
        "adminPin",
        "kitchenPin",
        "newKitchenPin",
        "admin_pin_hash",
        "kitchen_pin_hash",
        "token",
        "authorization",
        "secret",
    }
)


def add_service_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.service_name)
    event_dict.setdefault("version", settings.api_version)
    return event_dict


def redact_credentials(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace any non-null credential value at the top level of the event."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _exception_processor(debug: bool) -> Processor:
    # Structured tracebacks are verbose; only worth it while debugging
    if debug:
        return structlog.processors.ExceptionRenderer()
    return structlog.processors.format_exc_info


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """
    Route stdlib logging and structlog to stdout at LOG_LEVEL.

    A JSON line looks like:
        {"event": "login_succeeded", "level": "info", "logger": "...",
         "service": "licensegate-api", "version": "1.0.0",
         "request_id": "...", "restaurant_id": "...", "timestamp": "..."}
    """
    level = logging.getLevelName(settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_service_fields,
            redact_credentials,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            _exception_processor(level == logging.DEBUG),
            _renderer(settings.log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def log_context(**values: Any) -> AbstractContextManager[Any]:
    """
    Bind values to every log line emitted inside the block.

    Usage:
        with log_context(request_id=request_id):
            logger.info("request_started")
    """
    return structlog.contextvars.bound_contextvars(**values)
