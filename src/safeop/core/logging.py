"""
Structured logging for safeop.

Standard structlog configuration plus the bridge that turns a
:class:`~safeop.core.errors.StructuredError` into structured log fields.
The library itself only emits events; presentation is decided by
:func:`configure_logging` in the host application.

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="billing")
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars
          3. add_log_level / add_logger_name
          4. StackInfoRenderer / set_exc_info
          5. add_service_metadata
          6. elasticsearch_compatible (JSON only)
          7. JSONRenderer (or ConsoleRenderer for dev)

        log_error(logger, err)
            │
            ▼
        {"event": "operation_failed", "error_kind": "NOT_FOUND",
         "error_message": "...", "error_context": {...},
         "error_retryable": false, "error_depth": 2,
         "error_chain": ["NOT_FOUND", "TIMEOUT"]}

Examples:
    >>> from safeop.core.logging import configure_logging, get_logger, log_error
    >>> configure_logging(level="DEBUG", json_format=True, service="billing")

    Or from the environment (SAFEOP_LOG_LEVEL, SAFEOP_LOG_JSON):

    >>> configure_logging_from_settings(service="billing")
    >>> logger = get_logger(__name__)
    >>> logger.info("invoice_loaded", invoice_id="inv-1")

Tags:
    logging, structlog, observability, json-logging, safeop
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from safeop.core.errors import StructuredError
from safeop.core.settings import SafeopSettings, get_settings


# Store service name for metadata
_SERVICE_NAME = "safeop"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "safeop",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        shared_processors.append(_elasticsearch_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def configure_logging_from_settings(
    settings: SafeopSettings | None = None,
    service: str = "safeop",
) -> None:
    """Configure logging from ``SAFEOP_LOG_LEVEL`` / ``SAFEOP_LOG_JSON``.

    Uses the cached settings unless an explicit instance is passed.
    """
    if settings is None:
        settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json, service=service)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(operation="load_invoice", invoice_id="inv-1"):
            outcome = safe_call(load, EXPECT_FILE)
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())

    async def __aenter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    async def __aexit__(self, *args) -> None:
        unbind_context(*self._context.keys())


def error_fields(error: StructuredError) -> dict[str, Any]:
    """Flatten a StructuredError into log fields."""
    return {
        "error_kind": error.kind.value,
        "error_message": error.message,
        "error_context": dict(error.context),
        "error_retryable": error.retryable,
        "error_depth": error.depth,
        "error_chain": [link.kind.value for link in error.chain()],
    }


def log_error(
    logger: Any,
    error: StructuredError,
    event: str = "operation_failed",
    level: str = "warning",
    **extra: Any,
) -> None:
    """Emit a StructuredError as one structured log event.

    The raw exception the error was classified from, if any, is attached as
    ``exc_info`` so renderers can show its traceback.
    """
    fields = error_fields(error)
    fields.update(extra)
    if error.origin is not None:
        fields["exc_info"] = error.origin
    getattr(logger, level)(event, **fields)


__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    "error_fields",
    "log_error",
]
