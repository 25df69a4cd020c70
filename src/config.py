"""Centralized configuration for the institutional feed generator.

This module reads environment variables (optionally from a .env file) and
exposes simple constants plus a couple of helpers to access configuration
values. Timeout budgets are grouped into named profiles so the same pipeline
can run under a hard wall-clock ceiling or in an unconstrained host.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# If a .env file is present, load it before reading any values.
_env_path = Path(".") / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=str(_env_path))

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}

# Presence of any of these means we are on a host with a per-invocation
# wall-clock ceiling.
_CONSTRAINED_HOST_MARKERS = ("VERCEL", "VERCEL_ENV", "K_SERVICE", "AWS_LAMBDA_FUNCTION_NAME")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass(frozen=True)
class TimeoutProfile:
    """Timeout budget (seconds) applied at each pipeline granularity."""

    name: str
    navigation: float
    strategy_navigation: float
    selector_wait: float
    challenge_wait: float
    locate_retry_delay: float
    strategy_retry_delay: float
    network_idle_quiet: float
    http_request: float
    enrich_details: bool
    simulate_human: bool
    strategies: tuple[str, ...]


# ``strategies`` name entries of ``NAVIGATION_STRATEGIES`` in
# ``src.crawler.acquirer``; order is the order they are tried in.
TIMEOUT_PROFILES: Dict[str, TimeoutProfile] = {
    "constrained": TimeoutProfile(
        name="constrained",
        navigation=8.0,
        strategy_navigation=6.0,
        selector_wait=2.0,
        challenge_wait=3.0,
        locate_retry_delay=0.5,
        strategy_retry_delay=0.5,
        network_idle_quiet=0.5,
        http_request=6.0,
        enrich_details=False,
        simulate_human=False,
        strategies=("direct_content_loaded", "direct_load"),
    ),
    "standard": TimeoutProfile(
        name="standard",
        navigation=45.0,
        strategy_navigation=40.0,
        selector_wait=15.0,
        challenge_wait=18.0,
        locate_retry_delay=3.0,
        strategy_retry_delay=2.0,
        network_idle_quiet=0.5,
        http_request=30.0,
        enrich_details=True,
        simulate_human=True,
        strategies=(
            "direct_network_idle",
            "direct_content_loaded",
            "referer_network_idle",
            "delayed_load",
        ),
    ),
}


def _detect_timeout_profile() -> str:
    explicit = (os.getenv("TIMEOUT_PROFILE") or "").strip().lower()
    if explicit in TIMEOUT_PROFILES:
        return explicit
    if any(os.getenv(marker) for marker in _CONSTRAINED_HOST_MARKERS):
        return "constrained"
    return "standard"


# Runtime / deployment context
APP_ENV: str = os.getenv("APP_ENV", os.getenv("ENVIRONMENT", "local"))
TIMEOUT_PROFILE: str = _detect_timeout_profile()

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT_JSON: bool = _env_bool("LOG_FORMAT_JSON", False)

# Result cache
CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "1800"))

# Publication-date plausibility window, relative to the current year unless
# explicit bounds are given.
DATE_WINDOW_YEARS_BACK: int = int(os.getenv("DATE_WINDOW_YEARS_BACK", "6"))
DATE_WINDOW_YEARS_AHEAD: int = int(os.getenv("DATE_WINDOW_YEARS_AHEAD", "4"))
DATE_MIN_YEAR: Optional[int] = _env_int("DATE_MIN_YEAR")
DATE_MAX_YEAR: Optional[int] = _env_int("DATE_MAX_YEAR")

# Browser automation
CHROME_BIN: Optional[str] = os.getenv("CHROME_BIN") or os.getenv("GOOGLE_CHROME_BIN")
CHROMEDRIVER_PATH: Optional[str] = os.getenv("CHROMEDRIVER_PATH")
SELENIUM_PROXY: Optional[str] = os.getenv("SELENIUM_PROXY")
USE_UNDETECTED_CHROME: bool = _env_bool("USE_UNDETECTED_CHROME", True)

# Plain HTTP acquisition
REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))

# Public base used for atom:link self references
PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")


def get_timeout_profile(name: Optional[str] = None) -> TimeoutProfile:
    """Return the named timeout profile (defaults to the detected one)."""

    key = (name or TIMEOUT_PROFILE).strip().lower()
    try:
        return TIMEOUT_PROFILES[key]
    except KeyError:
        raise ValueError(
            f"Unknown timeout profile {name!r}; "
            f"expected one of {sorted(TIMEOUT_PROFILES)}"
        ) from None


def get_date_window(now: Optional[datetime] = None) -> tuple[int, int]:
    """Return the inclusive (min_year, max_year) plausibility window."""

    current_year = (now or datetime.now(timezone.utc)).year
    min_year = (
        DATE_MIN_YEAR
        if DATE_MIN_YEAR is not None
        else current_year - DATE_WINDOW_YEARS_BACK
    )
    max_year = (
        DATE_MAX_YEAR
        if DATE_MAX_YEAR is not None
        else current_year + DATE_WINDOW_YEARS_AHEAD
    )
    return min_year, max_year


def get_config() -> Dict[str, Any]:
    """Return a dict of the most important configuration values.

    Useful for logging at startup, health endpoints, or tests.
    """
    min_year, max_year = get_date_window()

    return {
        "runtime": {
            "environment": APP_ENV,
            "timeout_profile": TIMEOUT_PROFILE,
        },
        "log_level": LOG_LEVEL,
        "log_format_json": LOG_FORMAT_JSON,
        "cache_ttl_seconds": CACHE_TTL_SECONDS,
        "date_window": {"min_year": min_year, "max_year": max_year},
        "browser": {
            "chrome_bin": CHROME_BIN,
            "chromedriver_path": CHROMEDRIVER_PATH,
            "proxy_configured": bool(SELENIUM_PROXY),
            "undetected_chrome": USE_UNDETECTED_CHROME,
        },
        "request_timeout": REQUEST_TIMEOUT,
        "public_base_url": PUBLIC_BASE_URL,
        "timeouts": asdict(get_timeout_profile()),
    }
