"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
from typing import Any, Callable

import structlog

from src.core.config import get_settings


_CONFIGURED = False

Processor = Callable[[Any, str, dict[str, Any]], dict[str, Any]]


def _service_context(service: str, env: str) -> Processor:
    def _add_default_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        del logger, method_name
        event_dict.setdefault("service", service)
        event_dict.setdefault("env", env)
        event_dict.setdefault("request_id", None)
        return event_dict

    return _add_default_context


def configure_logging() -> None:
    """Initialize structlog once for JSON-formatted logs."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(level=level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _service_context(settings.app_name, settings.env),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **extra: Any) -> None:
    """Attach the request id (and optional provider/generation ids) to every log line."""

    structlog.contextvars.bind_contextvars(request_id=request_id, **extra)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
