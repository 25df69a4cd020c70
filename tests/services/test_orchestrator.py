from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from selenium.common.exceptions import WebDriverException

from src.crawler.errors import (
    AcquisitionError,
    AcquisitionErrorKind,
    LocateErrorKind,
    NormalizeErrorKind,
)
from src.crawler.locator import ContentLocator
from src.models import NewsItem
from src.pipeline.sources import AcquisitionMode, get_source
from src.services.orchestrator import (
    FALLBACK_CATEGORY,
    FeedPipeline,
    PipelineState,
    synthesize_unavailable_item,
)
from tests.helpers.externals import FakeAcquirer, no_sleep
from tests.helpers.pages import (
    CONSILIUM_LISTING,
    ECA_LISTING,
    EMPTY_LISTING,
    LINKLESS_LISTING,
)

NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)
ECA = get_source("eca")


def _pipeline(cache, acquirer, profile):
    return FeedPipeline(
        cache,
        profile=profile,
        acquirers={AcquisitionMode.BROWSER: acquirer, AcquisitionMode.HTTP: acquirer},
        locator=ContentLocator(retry_delay=0, sleep=no_sleep),
        now=lambda: NOW,
        sleep=no_sleep,
    )


def _navigation_failure():
    return AcquisitionError(
        AcquisitionErrorKind.NAVIGATION_FAILED, "net::ERR_TIMED_OUT", url=ECA.url
    )


def test_listing_becomes_three_items_newest_first(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(ECA_LISTING)
    pipeline = _pipeline(memory_cache, acquirer, constrained_profile)

    result = asyncio.run(pipeline.run("eca"))

    assert [item.title for item in result.items] == [
        "Special report 12/2025: EU support for farmers",
        "ECA Journal 2025-01",
        "Annual report on the EU budget",
    ]
    assert [item.publication_date.date().isoformat() for item in result.items] == [
        "2025-07-15",
        "2025-06-30",
        "2025-05-01",
    ]
    assert result.transitions == [
        PipelineState.CACHE_CHECK,
        PipelineState.ACQUIRING,
        PipelineState.LOCATING,
        PipelineState.EXTRACTING,
        PipelineState.NORMALIZING,
        PipelineState.CACHED,
        PipelineState.DONE,
    ]
    assert result.state is PipelineState.DONE
    assert not result.fallback
    assert result.selector == "ul.news-list li .card.card-news"
    assert result.confidence == 1.0
    assert memory_cache.get(ECA.cache_key) == result.items
    assert acquirer.opened == acquirer.closed == 1


def test_session_receives_source_fingerprint_options(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(ECA_LISTING)

    asyncio.run(_pipeline(memory_cache, acquirer, constrained_profile).run(get_source("coe")))

    assert acquirer.session_kwargs[0]["mobile"] is True
    assert acquirer.session_kwargs[0]["referer"].startswith("https://www.google.com/")


def test_second_run_within_ttl_is_served_from_cache(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(ECA_LISTING)
    pipeline = _pipeline(memory_cache, acquirer, constrained_profile)

    first = asyncio.run(pipeline.run(ECA))
    second = asyncio.run(pipeline.run(ECA))

    assert second.from_cache
    assert second.items == first.items
    assert second.transitions == [PipelineState.CACHE_CHECK, PipelineState.DONE]
    assert acquirer.opened == 1


def test_expired_entry_triggers_a_fresh_run(memory_cache, fake_clock, constrained_profile):
    acquirer = FakeAcquirer(ECA_LISTING)
    pipeline = _pipeline(memory_cache, acquirer, constrained_profile)

    asyncio.run(pipeline.run(ECA))
    fake_clock.advance(memory_cache.ttl_seconds + 1)
    result = asyncio.run(pipeline.run(ECA))

    assert not result.from_cache
    assert acquirer.opened == 2


def test_acquisition_is_retried_once_with_a_fresh_session(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(ECA_LISTING, errors=[_navigation_failure()])
    pipeline = _pipeline(memory_cache, acquirer, constrained_profile)

    result = asyncio.run(pipeline.run(ECA))

    assert not result.fallback
    assert len(result.items) == 3
    assert acquirer.opened == acquirer.closed == 2
    assert result.transitions.count(PipelineState.ACQUIRING) == 2


def test_unreachable_source_yields_exactly_one_notice_item(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(
        ECA_LISTING, errors=[_navigation_failure(), _navigation_failure()]
    )
    pipeline = _pipeline(memory_cache, acquirer, constrained_profile)

    result = asyncio.run(pipeline.run(ECA))

    assert result.fallback and not result.stale
    assert result.error.kind is AcquisitionErrorKind.NAVIGATION_FAILED
    assert len(result.items) == 1
    notice = result.items[0]
    assert notice.link == ECA.url
    assert ECA.url in notice.description
    assert notice.guid == f"{ECA.url}#source-unavailable"
    assert notice.category == FALLBACK_CATEGORY
    assert notice.publication_date == NOW
    assert PipelineState.FALLBACK in result.transitions
    assert result.state is PipelineState.DONE
    # Fallback output is written through.
    assert memory_cache.get(ECA.cache_key) == result.items
    assert acquirer.opened == acquirer.closed == 2


def test_stale_entry_is_served_when_source_fails(memory_cache, fake_clock, constrained_profile):
    previous = [
        NewsItem(
            title="Earlier report",
            link="https://www.eca.europa.eu/en/news/earlier",
            description="From the last good run",
            publication_date=datetime(2025, 5, 1, tzinfo=timezone.utc),
            category="ECA News",
        )
    ]
    memory_cache.set(ECA.cache_key, previous)
    fake_clock.advance(memory_cache.ttl_seconds * 3)
    acquirer = FakeAcquirer(errors=[_navigation_failure(), _navigation_failure()])

    result = asyncio.run(_pipeline(memory_cache, acquirer, constrained_profile).run(ECA))

    assert result.fallback and result.stale
    assert result.items == previous
    # Re-served stale content starts a new TTL.
    assert memory_cache.get(ECA.cache_key) == previous


def test_init_failure_is_retried_then_falls_back(memory_cache, constrained_profile):
    init_failed = AcquisitionError(AcquisitionErrorKind.INIT_FAILED, "chrome not found")
    acquirer = FakeAcquirer(ECA_LISTING, errors=[init_failed, init_failed])

    result = asyncio.run(_pipeline(memory_cache, acquirer, constrained_profile).run(ECA))

    assert result.fallback
    assert result.error.kind is AcquisitionErrorKind.INIT_FAILED
    assert acquirer.opened == 0


def test_locate_failure_is_not_retried_at_pipeline_level(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(EMPTY_LISTING)

    result = asyncio.run(_pipeline(memory_cache, acquirer, constrained_profile).run(ECA))

    assert result.fallback
    assert result.error.kind is LocateErrorKind.NO_CONTENT_FOUND
    assert acquirer.opened == acquirer.closed == 1
    assert len(result.items) == 1


def test_empty_extraction_falls_back(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(LINKLESS_LISTING)

    result = asyncio.run(_pipeline(memory_cache, acquirer, constrained_profile).run(ECA))

    assert result.fallback
    assert result.error.kind is NormalizeErrorKind.EMPTY_RESULT
    assert result.items[0].guid.endswith("#source-unavailable")


def test_unexpected_errors_still_produce_a_feed(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(errors=[RuntimeError("driver crashed")])

    result = asyncio.run(_pipeline(memory_cache, acquirer, constrained_profile).run(ECA))

    assert result.fallback
    assert result.error is None
    assert len(result.items) == 1
    assert acquirer.opened == acquirer.closed == 1


def test_crashed_detail_page_keeps_the_extracted_items(memory_cache, standard_profile):
    detail_url = (
        "https://www.consilium.europa.eu/en/press/press-releases/2025/08/11/sanctions/"
    )
    acquirer = FakeAcquirer(
        CONSILIUM_LISTING,
        details={detail_url: WebDriverException("chrome not reachable")},
    )

    result = asyncio.run(
        _pipeline(memory_cache, acquirer, standard_profile).run("consilium")
    )

    assert not result.fallback
    assert [item.title for item in result.items] == ["Council prolongs sanctions"]
    assert result.items[0].description.startswith("The Council today decided")
    assert acquirer.sessions[0].fetched == [detail_url]
    assert memory_cache.get(get_source("consilium").cache_key) == result.items


def test_sources_run_concurrently_without_sharing_sessions(memory_cache, constrained_profile):
    acquirer = FakeAcquirer(ECA_LISTING)
    pipeline = _pipeline(memory_cache, acquirer, constrained_profile)

    results = asyncio.run(pipeline.run_many(["eca", "curia"]))

    assert [r.feed_id for r in results] == ["eca", "curia"]
    assert acquirer.opened == acquirer.closed == 2
    # The ECA markup has no curia links, so curia falls back on its own.
    assert not results[0].fallback
    assert results[1].fallback


def test_unknown_feed_raises_key_error(memory_cache, constrained_profile):
    pipeline = _pipeline(memory_cache, FakeAcquirer(), constrained_profile)

    with pytest.raises(KeyError):
        asyncio.run(pipeline.run("unknown"))


def test_notice_item_names_the_failure_kind():
    item = synthesize_unavailable_item(ECA, NOW, _navigation_failure())

    assert "NavigationFailed" in item.description
    assert item.title == "European Court of Auditors feed temporarily unavailable"
