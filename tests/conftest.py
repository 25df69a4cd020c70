"""Pytest-wide fixtures and hooks for feed generator tests."""

from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

# Pin the timeout profile and drop hosted-runtime markers BEFORE any import
# of src.config so detection does not depend on the machine running tests.
for key in ("VERCEL", "VERCEL_ENV", "K_SERVICE", "AWS_LAMBDA_FUNCTION_NAME"):
    os.environ.pop(key, None)
os.environ.setdefault("TIMEOUT_PROFILE", "constrained")
for key in ("DATE_MIN_YEAR", "DATE_MAX_YEAR"):
    os.environ.pop(key, None)

from src.config import get_timeout_profile  # noqa: E402
from src.services.result_cache import InMemoryResultCache  # noqa: E402
from tests.helpers.externals import FakeClock  # noqa: E402

FIXED_NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)
WIDE_WINDOW = (2000, 2100)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def constrained_profile():
    return get_timeout_profile("constrained")


@pytest.fixture
def standard_profile():
    return get_timeout_profile("standard")


@pytest.fixture
def memory_cache(fake_clock) -> InMemoryResultCache:
    return InMemoryResultCache(ttl_seconds=1800, clock=fake_clock)


@pytest.fixture
def clean_app_state():
    """Fixture to ensure FastAPI app.state is clean between tests.

    Any resources attached to app.state during one test are removed
    afterwards, and dependency overrides are cleared.
    """
    from backend.app.main import app

    # Starlette keeps attributes in State._state, not in dir(app.state).
    original_state = dict(app.state._state)

    yield app

    app.state._state.clear()
    app.state._state.update(original_state)
    app.dependency_overrides.clear()
