"""Browser-driven page acquisition.

A :class:`BrowserPageAcquirer` hands out one :class:`BrowserSession` per
pipeline run through an async context manager; the Chrome process is quit
on every exit path. Selenium is blocking, so every driver call runs in a
worker thread via :func:`asyncio.to_thread`, serialized by a per-session
lock.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Sequence,
    Tuple,
)

from selenium.common.exceptions import WebDriverException

from src.config import TimeoutProfile, get_timeout_profile
from src.crawler.challenge import ChallengeWaiter, is_challenge
from src.crawler.document import RenderedDocument
from src.crawler.errors import AcquisitionError, AcquisitionErrorKind
from src.crawler.stealth import (
    Fingerprint,
    choose_fingerprint,
    create_driver,
    set_request_headers,
)

logger = logging.getLogger(__name__)

ORGANIC_REFERER = "https://www.google.com/"

READY_STATE_JS = "return document.readyState;"
RESOURCE_COUNT_JS = "return performance.getEntriesByType('resource').length;"
NAVIGATION_STATUS_JS = (
    "const entries = performance.getEntriesByType('navigation');"
    "return entries.length && entries[0].responseStatus ? entries[0].responseStatus : null;"
)
SELECTOR_PRESENT_JS = "return document.querySelector(arguments[0]) !== null;"
SCROLL_DOWN_JS = "window.scrollBy(0, arguments[0]);"
SCROLL_TOP_JS = "window.scrollTo(0, 0);"


class WaitCondition(str, Enum):
    CONTENT_LOADED = "content-loaded"
    LOAD = "load"
    NETWORK_IDLE = "network-idle"


@dataclass(frozen=True)
class NavigationStrategy:
    name: str
    wait_until: WaitCondition
    with_referer: bool = False
    pre_delay: Tuple[float, float] = (0.5, 1.5)


NAVIGATION_STRATEGIES: Dict[str, NavigationStrategy] = {
    strategy.name: strategy
    for strategy in (
        NavigationStrategy("direct_network_idle", WaitCondition.NETWORK_IDLE),
        NavigationStrategy("direct_content_loaded", WaitCondition.CONTENT_LOADED),
        NavigationStrategy("direct_load", WaitCondition.LOAD),
        NavigationStrategy(
            "referer_network_idle",
            WaitCondition.NETWORK_IDLE,
            with_referer=True,
            pre_delay=(1.0, 2.0),
        ),
        NavigationStrategy("delayed_load", WaitCondition.LOAD, pre_delay=(2.0, 4.0)),
    )
}


class BrowserSession:
    """One exclusively owned Chrome driver plus the navigation protocol."""

    poll_interval = 0.25

    def __init__(
        self,
        driver: Any,
        fingerprint: Fingerprint,
        profile: TimeoutProfile,
        *,
        referer: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.driver = driver
        self.fingerprint = fingerprint
        self.profile = profile
        self.referer = referer
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()
        self._closed = False

    # Driver access -------------------------------------------------------

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    async def evaluate(self, script: str, *args: Any) -> Any:
        return await self._call(self.driver.execute_script, script, *args)

    async def page_source(self) -> str:
        return await self._call(lambda: self.driver.page_source)

    async def current_url(self) -> str:
        return await self._call(lambda: self.driver.current_url)

    async def _wait_for(
        self, check: Callable[[], Awaitable[bool]], timeout: float
    ) -> bool:
        deadline = self._clock() + timeout
        while True:
            if await check():
                return True
            if self._clock() >= deadline:
                return False
            await self._sleep(self.poll_interval)

    async def _wait_until(self, condition: WaitCondition, timeout: float) -> bool:
        if condition is WaitCondition.CONTENT_LOADED:
            states = ("interactive", "complete")
        else:
            states = ("complete",)

        async def ready() -> bool:
            return await self.evaluate(READY_STATE_JS) in states

        if not await self._wait_for(ready, timeout):
            return False
        if condition is not WaitCondition.NETWORK_IDLE:
            return True

        # Network idle: no new resource entries for ``network_idle_quiet``.
        quiet = self.profile.network_idle_quiet
        last_count = await self.evaluate(RESOURCE_COUNT_JS)
        last_change = self._clock()

        async def idle() -> bool:
            nonlocal last_count, last_change
            count = await self.evaluate(RESOURCE_COUNT_JS)
            now = self._clock()
            if count != last_count:
                last_count, last_change = count, now
                return False
            return now - last_change >= quiet

        return await self._wait_for(idle, timeout)

    # Navigation ----------------------------------------------------------

    async def _pace(self, strategy: NavigationStrategy) -> None:
        if not self.profile.simulate_human:
            return
        low, high = strategy.pre_delay
        await self._sleep(self._rng.uniform(low, high))

    async def _navigate(self, url: str, strategy: NavigationStrategy) -> Optional[int]:
        """Load *url*; returns the HTTP status (``None`` when not exposed).

        Raises ``TimeoutError`` when the wait condition is not met.
        """
        referer = self.referer
        if strategy.with_referer:
            referer = referer or ORGANIC_REFERER
        await self._call(set_request_headers, self.driver, self.fingerprint, referer)
        await self._pace(strategy)
        await self._call(self.driver.get, url)
        if not await self._wait_until(
            strategy.wait_until, self.profile.strategy_navigation
        ):
            raise TimeoutError(
                f"{strategy.wait_until.value} not reached within "
                f"{self.profile.strategy_navigation:.0f}s"
            )
        status = await self.evaluate(NAVIGATION_STATUS_JS)
        return int(status) if status else None

    async def _wait_for_hint(self, wait_hint: str) -> bool:
        async def present() -> bool:
            return bool(await self.evaluate(SELECTOR_PRESENT_JS, wait_hint))

        found = await self._wait_for(present, self.profile.selector_wait)
        if not found:
            logger.warning("Selector wait timed out for %r, continuing", wait_hint)
        return found

    async def _simulate_scrolling(self) -> None:
        try:
            await self.evaluate(SCROLL_DOWN_JS, 400)
            await self._sleep(self._rng.uniform(0.3, 0.6))
            await self.evaluate(SCROLL_TOP_JS)
        except WebDriverException as exc:
            logger.debug("Scroll simulation failed: %s", exc)

    async def acquire(self, url: str, wait_hint: Optional[str] = None) -> RenderedDocument:
        """Navigate through the profile's strategies until one loads *url*."""
        strategies = [NAVIGATION_STRATEGIES[name] for name in self.profile.strategies]
        deadline = self._clock() + self.profile.navigation
        challenge_seen = False
        last_error: Optional[str] = None

        for index, strategy in enumerate(strategies, start=1):
            if index > 1:
                if self._clock() >= deadline:
                    last_error = "overall navigation budget exhausted"
                    break
                await self._sleep(self.profile.strategy_retry_delay)

            logger.info(
                "Navigation attempt %s/%s using %s", index, len(strategies), strategy.name
            )
            try:
                status = await self._navigate(url, strategy)
            except (WebDriverException, TimeoutError) as exc:
                last_error = f"{strategy.name}: {exc}"
                logger.warning("Strategy %s failed: %s", strategy.name, exc)
                continue

            if status is not None and not 200 <= status < 300:
                last_error = f"{strategy.name}: HTTP {status}"
                logger.warning("Strategy %s returned HTTP %s", strategy.name, status)
                continue

            try:
                content = await self.page_source()
                if is_challenge(content):
                    challenge_seen = True
                    logger.info("Challenge page detected on %s", url)
                    waiter = ChallengeWaiter(
                        self.evaluate,
                        interval=self.poll_interval,
                        sleep=self._sleep,
                        clock=self._clock,
                    )
                    if await waiter.wait(self.profile.challenge_wait) is None:
                        last_error = f"{strategy.name}: challenge unresolved"
                        continue
                    if is_challenge(await self.page_source()):
                        last_error = f"{strategy.name}: challenge still present"
                        logger.warning("Challenge markup remains on %s", url)
                        continue

                if wait_hint:
                    await self._wait_for_hint(wait_hint)
                if self.profile.simulate_human:
                    await self._simulate_scrolling()

                html = await self.page_source()
                final_url = await self.current_url()
            except WebDriverException as exc:
                last_error = f"{strategy.name}: {exc}"
                logger.warning("Strategy %s failed after load: %s", strategy.name, exc)
                continue

            logger.info(
                "Loaded %s via %s (status %s, %s bytes)",
                url,
                strategy.name,
                status if status is not None else "n/a",
                len(html),
            )
            return RenderedDocument(
                final_url or url,
                html,
                status=status,
                strategy=strategy.name,
                reload=self.page_source,
            )

        if challenge_seen:
            raise AcquisitionError(
                AcquisitionErrorKind.CHALLENGE_UNRESOLVED, last_error or "", url=url
            )
        raise AcquisitionError(
            AcquisitionErrorKind.NAVIGATION_FAILED,
            last_error or "all navigation strategies failed",
            url=url,
        )

    async def fetch_html(self, url: str) -> str:
        """Load a secondary page with the fastest strategy; used for details."""
        strategy = NAVIGATION_STRATEGIES["direct_content_loaded"]
        try:
            status = await self._navigate(url, strategy)
            if status is not None and not 200 <= status < 300:
                raise AcquisitionError(
                    AcquisitionErrorKind.NAVIGATION_FAILED, f"HTTP {status}", url=url
                )
            return await self.page_source()
        except (WebDriverException, TimeoutError) as exc:
            raise AcquisitionError(
                AcquisitionErrorKind.NAVIGATION_FAILED, str(exc), url=url
            ) from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.to_thread(self.driver.quit)
        except (WebDriverException, OSError) as exc:
            logger.debug("Error closing driver: %s", exc)


DriverFactory = Callable[..., Any]


class BrowserPageAcquirer:
    """Creates stealth browser sessions scoped to one pipeline run."""

    def __init__(
        self,
        profile: Optional[TimeoutProfile] = None,
        *,
        driver_factory: DriverFactory = create_driver,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.profile = profile or get_timeout_profile()
        self.driver_factory = driver_factory
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()

    @asynccontextmanager
    async def session(
        self,
        *,
        referer: Optional[str] = None,
        mobile: bool = False,
        user_agents: Sequence[str] = (),
    ) -> AsyncIterator[BrowserSession]:
        fingerprint = choose_fingerprint(
            self._rng, mobile=mobile, user_agents=user_agents
        )
        try:
            driver = await asyncio.to_thread(
                self.driver_factory,
                fingerprint,
                page_load_timeout=self.profile.navigation,
            )
        except Exception as exc:
            raise AcquisitionError(
                AcquisitionErrorKind.INIT_FAILED, f"browser session: {exc}"
            ) from exc

        session = BrowserSession(
            driver,
            fingerprint,
            self.profile,
            referer=referer,
            sleep=self._sleep,
            clock=self._clock,
            rng=self._rng,
        )
        try:
            yield session
        finally:
            await session.close()
