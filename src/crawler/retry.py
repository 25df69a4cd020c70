"""Reusable retry policy for network-bound coroutines."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget shared by the call sites that retry.

    ``backoff`` holds the delay before the second, third, ... attempt; when
    there are more attempts than entries the last delay is reused.
    ``attempt_timeout`` bounds each attempt with :func:`asyncio.wait_for`.
    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately.
    """

    max_attempts: int = 1
    backoff: Sequence[float] = ()
    attempt_timeout: Optional[float] = None
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def delay_for(self, attempt: int) -> float:
        """Delay to sleep before ``attempt`` (1-based)."""
        if attempt <= 1 or not self.backoff:
            return 0.0
        index = min(attempt - 2, len(self.backoff) - 1)
        return max(0.0, float(self.backoff[index]))

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        *,
        label: str = "operation",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Run ``operation(attempt)`` until it succeeds or attempts run out.

        The last error is re-raised once the budget is exhausted.
        """
        attempts = max(1, self.max_attempts)
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            delay = self.delay_for(attempt)
            if delay:
                await sleep(delay)
            try:
                if self.attempt_timeout is not None:
                    return await asyncio.wait_for(
                        operation(attempt), timeout=self.attempt_timeout
                    )
                return await operation(attempt)
            except self.retry_on as exc:
                last_error = exc
                if attempt < attempts:
                    logger.info(
                        "%s failed on attempt %s/%s: %s",
                        label,
                        attempt,
                        attempts,
                        exc,
                    )
                else:
                    logger.warning(
                        "%s failed after %s attempt(s): %s", label, attempts, exc
                    )

        assert last_error is not None
        raise last_error
