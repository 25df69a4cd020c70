"""Structured logging configuration for the feed generator.

This module sets up structured logging with:
- JSON output for serverless/cloud hosts (Vercel, Cloud Run, Lambda)
- Human-readable output for local development
- Per-run context binding (feed id, run id) through contextvars
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

_NOISY_LIBRARIES = (
    "urllib3",
    "selenium",
    "undetected_chromedriver",
    "cloudscraper",
    "httpx",
)


def is_cloud_environment() -> bool:
    """Check if running on a hosted runtime (Vercel, Cloud Run, Lambda, k8s)."""
    return bool(
        os.getenv("VERCEL")
        or os.getenv("K_SERVICE")  # Cloud Run
        or os.getenv("AWS_LAMBDA_FUNCTION_NAME")
        or os.getenv("KUBERNETES_SERVICE_HOST")
    )


_handler: logging.Handler | None = None


def _shared_processors() -> list[Any]:
    # Run for structlog calls and for plain ``logging`` records alike.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def setup_logging(
    level: str = "INFO",
    force_json: bool = False,
    service_name: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Modules log through ``logging.getLogger(__name__)``; their records are
    rendered by the same structlog pipeline as ``get_logger`` calls, so the
    bound run/request context shows up on every line.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        force_json: Force JSON output even in non-cloud environments
        service_name: Name of the service for log identification
    """
    global _handler

    log_level = getattr(logging, level.upper(), logging.INFO)
    use_json = force_json or is_cloud_environment()

    if service_name:
        structlog.contextvars.bind_contextvars(service=service_name)

    shared = _shared_processors()
    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if use_json:
        renderers: list[Any] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(formatter)
    root.addHandler(_handler)
    root.setLevel(log_level)

    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_run_context(feed: str, run_id: str, **kwargs: Any) -> None:
    """Bind the identifiers of one pipeline run to the current context."""
    structlog.contextvars.bind_contextvars(feed=feed, run_id=run_id, **kwargs)


def unbind_run_context() -> None:
    """Drop the per-run identifiers bound by :func:`bind_run_context`."""
    structlog.contextvars.unbind_contextvars("feed", "run_id")


def bind_request_context(
    request_id: str | None = None,
    **kwargs: Any,
) -> None:
    """Bind HTTP request context to the current execution context.

    Args:
        request_id: Unique request identifier
        **kwargs: Additional context to bind
    """
    context: dict[str, Any] = {}
    if request_id:
        context["request_id"] = request_id
    context.update(kwargs)

    if context:
        structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context from the current execution context."""
    structlog.contextvars.clear_contextvars()
