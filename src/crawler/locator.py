"""Pick the container selector that matches the listing's items."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from bs4 import BeautifulSoup, Tag

from src.crawler.document import RenderedDocument
from src.crawler.errors import LocateError, LocateErrorKind
from src.crawler.retry import RetryPolicy
from src.pipeline.sources import ExtractionStrategy, SelectorCandidate
from src.utils.confidence import rank_confidence, score_to_label

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocateResult:
    selector: str
    count: int
    rank: int
    confidence: float
    retried: bool = False
    elements: List[Tag] = field(default_factory=list, repr=False, compare=False)

    @property
    def confidence_label(self) -> str:
        return score_to_label(self.confidence)


def _as_candidates(
    candidates: Union[ExtractionStrategy, Sequence[SelectorCandidate]],
) -> List[SelectorCandidate]:
    if isinstance(candidates, ExtractionStrategy):
        return list(candidates.candidates)
    return list(candidates)


def scan(
    soup: BeautifulSoup,
    candidates: Sequence[SelectorCandidate],
    *,
    retried: bool = False,
) -> Optional[LocateResult]:
    """Single pass over *candidates*; first one meeting its minimum wins."""
    total = len(candidates)
    for rank, candidate in enumerate(candidates):
        elements = soup.select(candidate.selector)
        count = len(elements)
        if count >= max(1, candidate.min_count):
            return LocateResult(
                selector=candidate.selector,
                count=count,
                rank=rank,
                confidence=rank_confidence(rank, total, retried=retried),
                retried=retried,
                elements=list(elements),
            )
        if count:
            logger.debug(
                "Selector %r matched %s (< %s required)",
                candidate.selector,
                count,
                candidate.min_count,
            )
    return None


class ContentLocator:
    """Scan once, wait ``retry_delay``, re-read the document and scan once more."""

    def __init__(
        self,
        retry_delay: float = 3.0,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = RetryPolicy(
            max_attempts=2,
            backoff=(retry_delay,),
            retry_on=(LocateError,),
        )
        self._sleep = sleep

    async def locate(
        self,
        document: RenderedDocument,
        candidates: Union[ExtractionStrategy, Sequence[SelectorCandidate]],
    ) -> LocateResult:
        ordered = _as_candidates(candidates)

        async def attempt(number: int) -> LocateResult:
            retried = number > 1
            if retried:
                await document.refresh()
            result = scan(document.soup, ordered, retried=retried)
            if result is None:
                raise LocateError(
                    LocateErrorKind.NO_CONTENT_FOUND,
                    f"none of {len(ordered)} selectors matched",
                    url=document.url,
                )
            return result

        result = await self.policy.run(attempt, label="locate", sleep=self._sleep)
        logger.info(
            "Located %s element(s) with %r (rank %s, confidence %s/%s)",
            result.count,
            result.selector,
            result.rank,
            result.confidence,
            result.confidence_label,
        )
        return result
