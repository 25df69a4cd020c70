"""Replace listing teasers with text from each item's detail page."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from selenium.common.exceptions import WebDriverException

from src.config import TimeoutProfile
from src.crawler.errors import AcquisitionError
from src.models import NewsItem
from src.pipeline.sources import EnrichmentConfig, SourceConfig
from src.pipeline.text_cleaning import clean_description, collapse_whitespace

logger = logging.getLogger(__name__)

_NON_CONTENT_TAGS = ["script", "style", "nav", "header", "footer", "aside", "form"]


def extract_detail_text(
    html: str, content_selectors: Sequence[str], min_length: int = 100
) -> Optional[str]:
    """Text of the first content block longer than ``min_length``."""
    soup = BeautifulSoup(html or "", "html.parser")
    for element in soup(_NON_CONTENT_TAGS):
        element.decompose()

    for selector in content_selectors:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = collapse_whitespace(node.get_text(" ", strip=True))
        if len(text) > min_length:
            return text
    return None


async def enrich_item(item: NewsItem, session: Any, config: EnrichmentConfig) -> NewsItem:
    try:
        html = await session.fetch_html(item.link)
    except (AcquisitionError, WebDriverException) as exc:
        logger.info("Keeping listing description for %s: %s", item.link, exc)
        return item

    text = extract_detail_text(html, config.content_selectors, config.min_text_length)
    if not text:
        return item
    description = clean_description(text, config.description_cap)
    return item.with_description(description or item.title)


async def enrich_items(
    items: List[NewsItem],
    session: Any,
    source: SourceConfig,
    profile: TimeoutProfile,
) -> List[NewsItem]:
    """Enrich the first N same-host items of *source*; others pass through."""
    config = source.enrichment
    if config is None or not profile.enrich_details:
        return items

    host = urlparse(source.base_url).netloc.lower()
    enriched: List[NewsItem] = []
    attempted = 0
    for item in items:
        if attempted < config.max_items and urlparse(item.link).netloc.lower() == host:
            attempted += 1
            item = await enrich_item(item, session, config)
        enriched.append(item)

    logger.info("Enriched %s of %s item(s) for %s", attempted, len(items), source.feed_id)
    return enriched
