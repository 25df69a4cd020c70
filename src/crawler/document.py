"""Rendered page snapshot handed from the acquirers to the locator."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from bs4 import BeautifulSoup


class RenderedDocument:
    """Markup of a loaded page plus a way to re-read it from the session.

    ``refresh`` pulls the current markup again (a browser page keeps
    rendering after navigation returns); static HTTP documents have no
    reloader and refresh is a no-op.
    """

    def __init__(
        self,
        url: str,
        html: str,
        *,
        status: Optional[int] = None,
        strategy: Optional[str] = None,
        reload: Optional[Callable[[], Awaitable[str]]] = None,
    ):
        self.url = url
        self.html = html or ""
        self.status = status
        self.strategy = strategy
        self._reload = reload
        self._soup: Optional[BeautifulSoup] = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "html.parser")
        return self._soup

    async def refresh(self) -> None:
        if self._reload is None:
            return
        self.html = await self._reload() or ""
        self._soup = None

    def __repr__(self) -> str:
        return (
            f"RenderedDocument(url={self.url!r}, status={self.status!r}, "
            f"strategy={self.strategy!r}, size={len(self.html)})"
        )
