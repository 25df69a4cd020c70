"""Plain-HTTP acquisition for sources that render server-side.

Uses a ``cloudscraper`` session (a ``requests.Session`` that clears
Cloudflare's JavaScript interstitial) and exposes the same session protocol
as the browser acquirer so the orchestrator does not care which one it has.
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence
from urllib.parse import urlparse

import cloudscraper
import requests

from src.config import REQUEST_TIMEOUT, TimeoutProfile, get_timeout_profile
from src.crawler.challenge import is_challenge
from src.crawler.document import RenderedDocument
from src.crawler.errors import AcquisitionError, AcquisitionErrorKind
from src.crawler.retry import RetryPolicy
from src.crawler.stealth import MOBILE_USER_AGENTS, build_headers, choose_fingerprint

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
MOBILE_FALLBACK_ATTEMPT = 2


def mobile_variant(url: str) -> Optional[str]:
    """``www.`` host swapped for ``m.``; ``None`` when there is no www host."""
    parsed = urlparse(url)
    if not parsed.netloc.startswith("www."):
        return None
    return parsed._replace(netloc="m." + parsed.netloc[4:]).geturl()


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


class HttpSession:
    """One scraper session owned by a pipeline run."""

    def __init__(
        self,
        scraper: Any,
        profile: TimeoutProfile,
        *,
        referer: Optional[str] = None,
        user_agents: Sequence[str] = (),
        mobile: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.scraper = scraper
        self.profile = profile
        self.referer = referer
        self.user_agents = tuple(user_agents)
        self.mobile = mobile
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.timeout = min(float(REQUEST_TIMEOUT), profile.http_request)
        self.policy = RetryPolicy(
            max_attempts=max(DEFAULT_ATTEMPTS, len(self.user_agents)),
            backoff=(profile.strategy_retry_delay,),
            retry_on=(AcquisitionError,),
        )

    def _headers_for(self, attempt: int, url: str) -> dict:
        fingerprint = choose_fingerprint(self._rng, mobile=self.mobile)
        headers = build_headers(fingerprint, self.referer or self._origin(url))
        if self.user_agents:
            headers["User-Agent"] = self.user_agents[(attempt - 1) % len(self.user_agents)]
        return headers

    @staticmethod
    def _origin(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}/"

    async def _get(self, url: str, headers: dict) -> requests.Response:
        try:
            return await asyncio.to_thread(
                self.scraper.get, url, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise AcquisitionError(
                AcquisitionErrorKind.NAVIGATION_FAILED, str(exc), url=url
            ) from exc

    async def _try_mobile(self, url: str) -> Optional[requests.Response]:
        mobile_url = mobile_variant(url)
        if mobile_url is None:
            return None
        headers = build_headers(choose_fingerprint(self._rng, mobile=True), self.referer)
        headers["User-Agent"] = MOBILE_USER_AGENTS[0]
        logger.info("Trying mobile host %s after 403", mobile_url)
        try:
            response = await self._get(mobile_url, headers)
        except AcquisitionError as exc:
            logger.info("Mobile fallback failed: %s", exc)
            return None
        return response if is_success(response) else None

    def _document(self, response: requests.Response, url: str, attempt: int) -> RenderedDocument:
        text = response.text or ""
        if is_challenge(text):
            raise AcquisitionError(
                AcquisitionErrorKind.CHALLENGE_UNRESOLVED,
                "challenge page served over HTTP",
                url=url,
            )
        return RenderedDocument(
            response.url or url,
            text,
            status=response.status_code,
            strategy=f"http_attempt_{attempt}",
        )

    async def acquire(self, url: str, wait_hint: Optional[str] = None) -> RenderedDocument:
        async def attempt(number: int) -> RenderedDocument:
            response = await self._get(url, self._headers_for(number, url))
            if is_success(response):
                return self._document(response, url, number)
            if response.status_code == 403 and number == MOBILE_FALLBACK_ATTEMPT:
                mobile_response = await self._try_mobile(url)
                if mobile_response is not None:
                    return self._document(mobile_response, url, number)
            raise AcquisitionError(
                AcquisitionErrorKind.NAVIGATION_FAILED,
                f"HTTP {response.status_code}",
                url=url,
            )

        document = await self.policy.run(attempt, label=f"GET {url}", sleep=self._sleep)
        logger.info("Fetched %s (%s bytes)", url, len(document.html))
        return document

    async def fetch_html(self, url: str) -> str:
        response = await self._get(url, self._headers_for(1, url))
        if not is_success(response):
            raise AcquisitionError(
                AcquisitionErrorKind.NAVIGATION_FAILED,
                f"HTTP {response.status_code}",
                url=url,
            )
        return response.text or ""

    async def close(self) -> None:
        await asyncio.to_thread(self.scraper.close)


class HttpPageAcquirer:
    """Creates scraper sessions scoped to one pipeline run."""

    def __init__(
        self,
        profile: Optional[TimeoutProfile] = None,
        *,
        session_factory: Callable[[], Any] = cloudscraper.create_scraper,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.profile = profile or get_timeout_profile()
        self.session_factory = session_factory
        self._sleep = sleep
        self._rng = rng or random.Random()

    @asynccontextmanager
    async def session(
        self,
        *,
        referer: Optional[str] = None,
        mobile: bool = False,
        user_agents: Sequence[str] = (),
    ) -> AsyncIterator[HttpSession]:
        try:
            scraper = self.session_factory()
        except (ValueError, RuntimeError, requests.RequestException) as exc:
            raise AcquisitionError(
                AcquisitionErrorKind.INIT_FAILED, f"http session: {exc}"
            ) from exc

        session = HttpSession(
            scraper,
            self.profile,
            referer=referer,
            user_agents=user_agents,
            mobile=mobile,
            sleep=self._sleep,
            rng=self._rng,
        )
        try:
            yield session
        finally:
            await session.close()
