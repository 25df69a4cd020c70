"""Shared utilities for CLI command modules."""

from __future__ import annotations

from src.config import LOG_FORMAT_JSON
from src.utils.logging_config import setup_logging as configure_structlog


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging for CLI commands.

    Parameters
    ----------
    log_level:
        Logging level name (e.g., ``"INFO"``).
    """
    configure_structlog(
        level=log_level,
        force_json=LOG_FORMAT_JSON,
        service_name="feed-generator",
    )
