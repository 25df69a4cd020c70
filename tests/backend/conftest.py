"""Fixtures for exercising the feed API without a browser."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from backend.app.lifecycle import get_pipeline
from src.crawler.locator import ContentLocator
from src.pipeline.sources import AcquisitionMode
from src.services.orchestrator import FeedPipeline
from src.services.result_cache import InMemoryResultCache
from tests.helpers.externals import FakeAcquirer, no_sleep
from tests.helpers.pages import ECA_LISTING

PIPELINE_NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_acquirer():
    return FakeAcquirer(ECA_LISTING)


@pytest.fixture
def fake_pipeline(fake_acquirer, constrained_profile):
    return FeedPipeline(
        InMemoryResultCache(ttl_seconds=1800),
        profile=constrained_profile,
        acquirers={
            AcquisitionMode.BROWSER: fake_acquirer,
            AcquisitionMode.HTTP: fake_acquirer,
        },
        locator=ContentLocator(retry_delay=0, sleep=no_sleep),
        now=lambda: PIPELINE_NOW,
        sleep=no_sleep,
    )


@pytest.fixture
def api_client(clean_app_state, fake_pipeline):
    """TestClient whose routes run against ``fake_pipeline``."""
    app = clean_app_state
    app.dependency_overrides[get_pipeline] = lambda: fake_pipeline
    with TestClient(app) as client:
        yield client
