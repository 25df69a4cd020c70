"""Pipeline orchestration: cache check, acquisition, extraction, fallback.

One :meth:`FeedPipeline.run` call walks the states

    CacheCheck -> Acquiring -> Locating -> Extracting -> Normalizing -> Cached -> Done

and any fatal error moves it to Fallback, which serves the stale cache entry
when there is one and otherwise a single informational item. Either way the
caller gets a non-empty list and the result is written through to the cache.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from src.config import TimeoutProfile, get_timeout_profile
from src.crawler.acquirer import BrowserPageAcquirer
from src.crawler.errors import AcquisitionError, PipelineError
from src.crawler.http_acquirer import HttpPageAcquirer
from src.crawler.locator import ContentLocator
from src.crawler.retry import RetryPolicy
from src.models import ChannelInfo, NewsItem
from src.pipeline.enrichment import enrich_items
from src.pipeline.extractors import FieldExtractor
from src.pipeline.normalizer import normalize
from src.pipeline.sources import AcquisitionMode, SourceConfig, get_source
from src.services.result_cache import ResultCache
from src.utils.logging_config import bind_run_context, unbind_run_context

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "System Notice"
FALLBACK_GUID_SUFFIX = "#source-unavailable"


class PipelineState(str, Enum):
    CACHE_CHECK = "CacheCheck"
    ACQUIRING = "Acquiring"
    LOCATING = "Locating"
    EXTRACTING = "Extracting"
    NORMALIZING = "Normalizing"
    CACHED = "Cached"
    FALLBACK = "Fallback"
    DONE = "Done"


@dataclass
class PipelineResult:
    feed_id: str
    channel: ChannelInfo
    items: List[NewsItem]
    run_id: str
    transitions: List[PipelineState] = field(default_factory=list)
    from_cache: bool = False
    stale: bool = False
    fallback: bool = False
    error: Optional[PipelineError] = None
    selector: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def state(self) -> PipelineState:
        return self.transitions[-1] if self.transitions else PipelineState.CACHE_CHECK

    def summary(self) -> Dict[str, Any]:
        return {
            "feed": self.feed_id,
            "run_id": self.run_id,
            "items": len(self.items),
            "from_cache": self.from_cache,
            "stale": self.stale,
            "fallback": self.fallback,
            "error": str(self.error) if self.error else None,
            "selector": self.selector,
            "confidence": self.confidence,
            "states": [state.value for state in self.transitions],
        }


def synthesize_unavailable_item(
    source: SourceConfig, now: datetime, error: Optional[BaseException] = None
) -> NewsItem:
    """Informational placeholder pointing readers at the source itself."""
    reason = getattr(getattr(error, "kind", None), "value", None) or "unavailable"
    return NewsItem(
        title=f"{source.name} feed temporarily unavailable",
        link=source.url,
        description=(
            f"The latest updates from {source.name} could not be retrieved "
            f"automatically ({reason}). Visit {source.url} directly for the "
            "most recent publications."
        ),
        publication_date=now,
        category=FALLBACK_CATEGORY,
        guid=f"{source.url}{FALLBACK_GUID_SUFFIX}",
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedPipeline:
    """Runs the extraction pipeline for one source per call."""

    def __init__(
        self,
        cache: ResultCache,
        *,
        profile: Optional[TimeoutProfile] = None,
        acquirers: Optional[Mapping[AcquisitionMode, Any]] = None,
        locator: Optional[ContentLocator] = None,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.profile = profile or get_timeout_profile()
        if acquirers is None:
            acquirers = {
                AcquisitionMode.BROWSER: BrowserPageAcquirer(self.profile, sleep=sleep),
                AcquisitionMode.HTTP: HttpPageAcquirer(self.profile, sleep=sleep),
            }
        self.acquirers = dict(acquirers)
        self.locator = locator or ContentLocator(
            retry_delay=self.profile.locate_retry_delay, sleep=sleep
        )
        self._now = now
        self._sleep = sleep
        # One retry with a fresh session, only for acquisition failures.
        self.acquisition_policy = RetryPolicy(
            max_attempts=2,
            backoff=(self.profile.strategy_retry_delay,),
            retry_on=(AcquisitionError,),
        )

    async def run(self, source: Union[SourceConfig, str]) -> PipelineResult:
        if isinstance(source, str):
            source = get_source(source)

        run_id = uuid.uuid4().hex[:12]
        result = PipelineResult(
            feed_id=source.feed_id, channel=source.channel, items=[], run_id=run_id
        )
        bind_run_context(source.feed_id, run_id)
        try:
            await self._run(source, result)
        finally:
            unbind_run_context()
        return result

    async def run_many(self, sources: Iterable[Union[SourceConfig, str]]) -> List[PipelineResult]:
        """Run independent sources concurrently."""
        return list(await asyncio.gather(*(self.run(source) for source in sources)))

    def _enter(self, result: PipelineResult, state: PipelineState) -> None:
        result.transitions.append(state)
        logger.debug("Pipeline %s -> %s", result.feed_id, state.value)

    async def _run(self, source: SourceConfig, result: PipelineResult) -> None:
        key = source.cache_key
        self._enter(result, PipelineState.CACHE_CHECK)
        cached = self.cache.get(key)
        if cached:
            logger.info("Serving %s item(s) for %s from cache", len(cached), source.feed_id)
            result.items = cached
            result.from_cache = True
            self._enter(result, PipelineState.DONE)
            return

        now = self._now()
        try:
            items = await self.acquisition_policy.run(
                lambda attempt: self._attempt(source, result, now, attempt),
                label=f"{source.feed_id} acquisition",
                sleep=self._sleep,
            )
        except PipelineError as exc:
            items = self._fallback(source, result, now, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure running %s", source.feed_id)
            items = self._fallback(source, result, now, exc)

        self.cache.set(key, items)
        result.items = items
        self._enter(result, PipelineState.CACHED)
        self._enter(result, PipelineState.DONE)
        logger.info("Pipeline finished", extra={"summary": result.summary()})

    async def _attempt(
        self,
        source: SourceConfig,
        result: PipelineResult,
        now: datetime,
        attempt: int,
    ) -> List[NewsItem]:
        acquirer = self.acquirers[source.mode]
        self._enter(result, PipelineState.ACQUIRING)
        async with acquirer.session(
            referer=source.referer,
            mobile=source.prefer_mobile,
            user_agents=source.user_agents,
        ) as session:
            document = await session.acquire(source.url, source.wait_hint)

            self._enter(result, PipelineState.LOCATING)
            located = await self.locator.locate(document, source.strategy)
            result.selector = located.selector
            result.confidence = located.confidence

            self._enter(result, PipelineState.EXTRACTING)
            extractor = FieldExtractor(source.hints, now=now)
            extracted = extractor.extract_all(located.elements, source.base_url)
            logger.info(
                "Extracted %s of %s element(s) on attempt %s",
                len(extracted),
                located.count,
                attempt,
            )

            self._enter(result, PipelineState.NORMALIZING)
            items = normalize(extracted, source.max_items, source_url=source.url)
            return await enrich_items(items, session, source, self.profile)

    def _fallback(
        self,
        source: SourceConfig,
        result: PipelineResult,
        now: datetime,
        error: BaseException,
    ) -> List[NewsItem]:
        self._enter(result, PipelineState.FALLBACK)
        result.fallback = True
        if isinstance(error, PipelineError):
            result.error = error
        logger.warning("Falling back for %s: %s", source.feed_id, error)

        stale = self.cache.get_stale(source.cache_key)
        if stale:
            result.stale = True
            logger.info("Serving %s stale item(s) for %s", len(stale), source.feed_id)
            return stale
        return [synthesize_unavailable_item(source, now, error)]
