"""Deduplicate, order and cap extracted items."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

from src.crawler.errors import NormalizeError, NormalizeErrorKind
from src.models import NewsItem

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3


def canonical_link(link: str) -> str:
    """Comparison key for a link: lowercase scheme, host and path only."""
    parts = urlsplit(link.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path.lower(), "", ""))


def strip_fragment(link: str) -> str:
    parts = urlsplit(link.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


def normalize(
    items: Iterable[NewsItem],
    max_items: Optional[int] = None,
    *,
    source_url: Optional[str] = None,
) -> List[NewsItem]:
    """Return items unique by canonical link, newest first, capped.

    The first occurrence of a link wins. The sort is stable, so items with
    equal dates keep their listing order. Raises ``NormalizeError`` when
    nothing survives.
    """
    seen: set[str] = set()
    unique: List[NewsItem] = []
    for item in items:
        if len(item.title.strip()) < MIN_TITLE_LENGTH:
            continue
        key = canonical_link(item.link)
        if key in seen:
            continue
        seen.add(key)
        link = strip_fragment(item.link)
        if link != item.link:
            guid = link if item.guid == item.link else item.guid
            item = NewsItem(
                title=item.title,
                link=link,
                description=item.description,
                publication_date=item.publication_date,
                category=item.category,
                guid=guid,
                enclosure=item.enclosure,
            )
        unique.append(item)

    unique.sort(key=lambda item: item.publication_date, reverse=True)
    if max_items is not None and max_items > 0:
        unique = unique[:max_items]

    if not unique:
        raise NormalizeError(
            NormalizeErrorKind.EMPTY_RESULT,
            "no items survived normalization",
            url=source_url,
        )

    logger.debug("Normalized to %s item(s)", len(unique))
    return unique
