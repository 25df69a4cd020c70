"""Time-boxed memoization of pipeline results keyed by source.

Expired entries miss on :meth:`get` but stay readable through
:meth:`get_stale`, which the orchestrator uses only on its fallback path.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from src.config import CACHE_TTL_SECONDS
from src.models import NewsItem


class ResultCache(Protocol):
    ttl_seconds: float

    def get(self, key: str) -> Optional[List[NewsItem]]: ...

    def set(self, key: str, items: List[NewsItem]) -> None: ...

    def get_stale(self, key: str) -> Optional[List[NewsItem]]: ...


@dataclass
class _Entry:
    items: tuple[NewsItem, ...]
    stored_at: float


class InMemoryResultCache:
    """Process-local cache; safe for concurrent access to independent keys."""

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: _Entry) -> bool:
        return (self._clock() - entry.stored_at) < self.ttl_seconds

    def get(self, key: str) -> Optional[List[NewsItem]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(entry):
                return None
            return list(entry.items)

    def get_stale(self, key: str) -> Optional[List[NewsItem]]:
        """Last stored value for *key*, ignoring expiry."""
        with self._lock:
            entry = self._entries.get(key)
            return list(entry.items) if entry is not None else None

    def set(self, key: str, items: List[NewsItem]) -> None:
        with self._lock:
            self._entries[key] = _Entry(tuple(items), self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
