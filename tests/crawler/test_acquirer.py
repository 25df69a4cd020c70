from __future__ import annotations

import asyncio
import random
from unittest.mock import PropertyMock

import pytest
from selenium.common.exceptions import WebDriverException

from src.crawler.acquirer import (
    NAVIGATION_STRATEGIES,
    BrowserPageAcquirer,
    BrowserSession,
    WaitCondition,
)
from src.crawler.errors import AcquisitionError, AcquisitionErrorKind
from src.crawler.stealth import choose_fingerprint
from tests.helpers.externals import make_driver
from tests.helpers.pages import ATTENTION_PAGE, CHALLENGE_PAGE, ECA_LISTING

URL = "https://www.eca.europa.eu/en/all-news"


def _session(driver, profile, clock, **kwargs):
    return BrowserSession(
        driver,
        choose_fingerprint(random.Random(7)),
        profile,
        sleep=clock.sleep,
        clock=clock,
        rng=random.Random(7),
        **kwargs,
    )


def test_acquire_returns_rendered_document(constrained_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL)

    document = asyncio.run(
        _session(driver, constrained_profile, fake_clock).acquire(URL, ".card-news")
    )

    assert document.url == URL
    assert document.status == 200
    assert document.strategy == "direct_content_loaded"
    assert "card-news" in document.html
    driver.get.assert_called_once_with(URL)
    # Request headers are pinned through CDP before navigating.
    cdp_commands = [call.args[0] for call in driver.execute_cdp_cmd.call_args_list]
    assert "Network.setExtraHTTPHeaders" in cdp_commands


def test_missing_status_counts_as_success(constrained_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL, statuses=[None])

    document = asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert document.status is None


def test_error_status_moves_to_next_strategy(constrained_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL, statuses=[503, 200])

    document = asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert document.strategy == "direct_load"
    assert driver.get.call_count == 2
    assert constrained_profile.strategy_retry_delay in fake_clock.sleeps


def test_all_strategies_failing_raises_navigation_failed(constrained_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL, statuses=[403])

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert excinfo.value.kind is AcquisitionErrorKind.NAVIGATION_FAILED
    assert "HTTP 403" in str(excinfo.value)
    assert driver.get.call_count == len(constrained_profile.strategies)


def test_document_never_ready_times_out_each_strategy(constrained_profile, fake_clock):
    driver = make_driver(ready_state="loading")

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert excinfo.value.kind is AcquisitionErrorKind.NAVIGATION_FAILED
    assert "not reached" in str(excinfo.value)


def test_driver_errors_are_reported_as_navigation_failures(constrained_profile, fake_clock):
    driver = make_driver()
    driver.get.side_effect = WebDriverException("net::ERR_NAME_NOT_RESOLVED")

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert "ERR_NAME_NOT_RESOLVED" in str(excinfo.value)


def test_unresolved_challenge_is_reported_as_such(constrained_profile, fake_clock):
    driver = make_driver(html=CHALLENGE_PAGE, url=URL)

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert excinfo.value.kind is AcquisitionErrorKind.CHALLENGE_UNRESOLVED


def test_resolved_challenge_continues_with_page(constrained_profile, fake_clock):
    driver = make_driver(
        html=[CHALLENGE_PAGE, ECA_LISTING],
        url=URL,
        titles=["Just a moment...", "All news | European Court of Auditors"],
    )

    document = asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert document.strategy == "direct_content_loaded"
    assert document.html == ECA_LISTING


def test_static_challenge_without_just_a_moment_title_is_unresolved(
    constrained_profile, fake_clock
):
    driver = make_driver(
        html=ATTENTION_PAGE,
        url=URL,
        titles=["Attention Required! | Cloudflare"],
        body_text="Please enable JavaScript and cookies to continue",
        ready_without_challenge=True,
    )

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert excinfo.value.kind is AcquisitionErrorKind.CHALLENGE_UNRESOLVED


def test_challenge_markup_left_after_a_signal_is_not_returned(
    constrained_profile, fake_clock
):
    # The title changes, but the page source is still the interstitial.
    driver = make_driver(
        html=CHALLENGE_PAGE,
        url=URL,
        titles=["Just a moment...", "Attention Required! | Cloudflare"],
    )

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(_session(driver, constrained_profile, fake_clock).acquire(URL))

    assert excinfo.value.kind is AcquisitionErrorKind.CHALLENGE_UNRESOLVED
    assert driver.get.call_count == len(constrained_profile.strategies)


def test_network_idle_waits_for_quiet_period(standard_profile, fake_clock):
    driver = make_driver(resource_count=12)
    session = _session(driver, standard_profile, fake_clock)

    assert asyncio.run(session._wait_until(WaitCondition.NETWORK_IDLE, 10.0))
    assert fake_clock.now >= standard_profile.network_idle_quiet


def test_missing_wait_hint_does_not_fail_the_load(constrained_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL, selector_present=False)

    document = asyncio.run(
        _session(driver, constrained_profile, fake_clock).acquire(URL, ".never-there")
    )

    assert document.html == ECA_LISTING
    assert fake_clock.now >= constrained_profile.selector_wait


def test_referer_strategy_sends_organic_referer(standard_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL)
    session = _session(driver, standard_profile, fake_clock)

    asyncio.run(session._navigate(URL, NAVIGATION_STRATEGIES["referer_network_idle"]))

    headers = driver.execute_cdp_cmd.call_args_list[-1].args[1]["headers"]
    assert headers["Referer"] == "https://www.google.com/"
    # Human pacing sleeps before navigating.
    assert 1.0 <= fake_clock.sleeps[0] <= 2.0


def test_fetch_html_raises_on_error_status(constrained_profile, fake_clock):
    driver = make_driver(statuses=[404])

    with pytest.raises(AcquisitionError):
        asyncio.run(
            _session(driver, constrained_profile, fake_clock).fetch_html(URL + "/detail")
        )


def test_fetch_html_wraps_page_source_errors(constrained_profile, fake_clock):
    driver = make_driver()
    type(driver).page_source = PropertyMock(
        side_effect=WebDriverException("chrome not reachable")
    )

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(
            _session(driver, constrained_profile, fake_clock).fetch_html(URL + "/detail")
        )

    assert excinfo.value.kind is AcquisitionErrorKind.NAVIGATION_FAILED
    assert "chrome not reachable" in str(excinfo.value)


def test_session_scope_quits_driver_on_success_and_error(constrained_profile, fake_clock):
    driver = make_driver(html=ECA_LISTING, url=URL)
    acquirer = BrowserPageAcquirer(
        constrained_profile,
        driver_factory=lambda fingerprint, page_load_timeout: driver,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )

    async def use_session(fail: bool) -> None:
        async with acquirer.session() as session:
            await session.acquire(URL)
            if fail:
                raise RuntimeError("boom")

    asyncio.run(use_session(False))
    assert driver.quit.call_count == 1

    with pytest.raises(RuntimeError):
        asyncio.run(use_session(True))
    assert driver.quit.call_count == 2


def test_driver_factory_failure_is_init_failed(constrained_profile):
    def broken_factory(fingerprint, page_load_timeout):
        raise WebDriverException("chrome not reachable")

    acquirer = BrowserPageAcquirer(constrained_profile, driver_factory=broken_factory)

    async def scenario() -> None:
        async with acquirer.session():
            pass

    with pytest.raises(AcquisitionError) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.kind is AcquisitionErrorKind.INIT_FAILED


def test_session_passes_mobile_fingerprint_to_factory(constrained_profile, fake_clock):
    seen = {}

    def factory(fingerprint, page_load_timeout):
        seen["fingerprint"] = fingerprint
        seen["timeout"] = page_load_timeout
        return make_driver()

    acquirer = BrowserPageAcquirer(constrained_profile, driver_factory=factory)

    async def scenario() -> None:
        async with acquirer.session(mobile=True):
            pass

    asyncio.run(scenario())

    assert seen["fingerprint"].mobile
    assert seen["timeout"] == constrained_profile.navigation
