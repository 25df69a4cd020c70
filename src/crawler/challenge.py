"""Bot-challenge interstitial detection and resolution wait."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

CHALLENGE_MARKERS = (
    "just a moment",
    "cf-browser-verification",
    "checking your browser",
    "ddos protection by cloudflare",
    "please enable javascript and cookies",
)

TITLE_JS = "return document.title || '';"
BODY_TEXT_JS = (
    "return document.body ? (document.body.innerText || document.body.textContent || '') : '';"
)
READY_WITHOUT_CHALLENGE_JS = (
    "return document.readyState === 'complete' && "
    "!document.querySelector('[class*=\"cf-browser-verification\"], #challenge-form');"
)

Evaluate = Callable[[str], Awaitable[Any]]


def is_challenge(content: Optional[str]) -> bool:
    """True when the markup looks like an anti-bot interstitial."""
    if not content:
        return False
    lowered = content.lower()
    return any(marker in lowered for marker in CHALLENGE_MARKERS)


class ChallengeWaiter:
    """Race three completion signals against a shared deadline.

    Signals: the title changes and carries no challenge marker; the body text
    changes and carries no marker; the document is complete with no challenge
    node and no marker left in its text. The first signal to fire wins and
    the others are told to stop.
    """

    def __init__(
        self,
        evaluate: Evaluate,
        *,
        interval: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.evaluate = evaluate
        self.interval = interval
        self._sleep = sleep
        self._clock = clock

    async def _text(self, script: str) -> str:
        return str(await self.evaluate(script) or "")

    async def _poll(
        self,
        name: str,
        check: Callable[[], Awaitable[bool]],
        deadline: float,
        stop: asyncio.Event,
    ) -> Optional[str]:
        while not stop.is_set():
            if await check():
                return name
            if self._clock() >= deadline:
                return None
            await self._sleep(self.interval)
        return None

    async def wait(self, timeout: float) -> Optional[str]:
        """Name of the winning signal, or ``None`` on timeout."""
        initial_title = await self._text(TITLE_JS)
        initial_body = await self._text(BODY_TEXT_JS)

        async def title_cleared() -> bool:
            title = await self._text(TITLE_JS)
            return title != initial_title and not is_challenge(title)

        async def body_changed() -> bool:
            body = await self._text(BODY_TEXT_JS)
            return body != initial_body and not is_challenge(body)

        async def ready_without_challenge() -> bool:
            if not await self.evaluate(READY_WITHOUT_CHALLENGE_JS):
                return False
            return not is_challenge(await self._text(BODY_TEXT_JS))

        deadline = self._clock() + timeout
        stop = asyncio.Event()
        pending = {
            asyncio.ensure_future(self._poll(name, check, deadline, stop))
            for name, check in (
                ("title-change", title_cleared),
                ("body-change", body_changed),
                ("page-ready", ready_without_challenge),
            )
        }
        winner: Optional[str] = None
        try:
            while pending and winner is None:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    result = task.result()
                    if result is not None and winner is None:
                        winner = result
        finally:
            stop.set()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if winner:
            logger.info("Challenge cleared via %s", winner)
        else:
            logger.warning("Challenge did not clear within %.1fs", timeout)
        return winner
