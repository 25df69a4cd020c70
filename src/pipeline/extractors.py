"""Turn located listing elements into :class:`NewsItem` objects.

Every field is resolved by its own cascade of strategy descriptors (see
``src.pipeline.cascade``). Elements without a usable title or link are
dropped, never raised.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from src.models import NewsItem
from src.pipeline.cascade import (
    Candidate,
    Computed,
    LongestText,
    SelectAttr,
    SelectText,
    Strategy,
    node_text,
    run_cascade,
    selectors_to_strategies,
)
from src.pipeline.dates import YearWindow, parse_date, scan_text_for_date
from src.pipeline.sources import FieldHints
from src.pipeline.text_cleaning import (
    clean_description,
    collapse_whitespace,
    deslugify_title,
    looks_like_language_code,
    remove_substring,
)

logger = logging.getLogger(__name__)

_MIN_REMAINDER_DESCRIPTION = 20


def absolutize(url: Optional[str], base_url: str) -> Optional[str]:
    """Resolve *url* against *base_url*; ``None`` for non-http targets."""
    if not url:
        return None
    url = url.strip()
    if not url or url.startswith("#"):
        return None
    if url.startswith("//"):
        url = "https:" + url
    resolved = urljoin(base_url.rstrip("/") + "/", url)
    if urlparse(resolved).scheme not in ("http", "https"):
        return None
    return resolved


def _href_near(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    if node.name == "a" and node.get("href"):
        return str(node["href"])
    parent = node.find_parent("a", href=True)
    if parent is not None:
        return str(parent["href"])
    child = node.find("a", href=True)
    if child is not None:
        return str(child["href"])
    return None


class FieldExtractor:
    """Per-source field cascades applied to one listing element at a time."""

    def __init__(
        self,
        hints: FieldHints,
        *,
        now: Optional[datetime] = None,
        window: Optional[YearWindow] = None,
    ):
        self.hints = hints
        self.now = now or datetime.now(timezone.utc)
        self.window = window
        self.title_strategies = self._title_strategies()
        self.date_strategies = self._date_strategies()
        self.description_strategies = self._description_strategies()
        self.image_strategies: List[Strategy] = [
            SelectAttr(selector, attribute, name=f"image:{attribute}")
            for selector in hints.image_selectors
            for attribute in ("src", "data-src")
        ]
        self.category_strategies = selectors_to_strategies(
            hints.category_selectors, name="category_element"
        )

    # Cascade definitions -------------------------------------------------

    def _title_strategies(self) -> List[Strategy]:
        hints = self.hints
        return [
            SelectText(
                hints.primary_title or hints.headings,
                within=hints.main_link,
                name="primary_title_in_link",
            ),
            SelectText(hints.headings, name="heading"),
            SelectText(hints.main_link, include_self=True, name="main_link_text"),
            SelectText("a[href]", include_self=True, name="link_text"),
            LongestText(
                "a[href]",
                include_self=True,
                reject=looks_like_language_code,
                name="longest_link_text",
            ),
        ]

    def _date_strategies(self) -> List[Strategy]:
        strategies: List[Strategy] = []
        for selector in self.hints.date_selectors:
            for attribute in self.hints.date_attributes:
                strategies.append(
                    SelectAttr(selector, attribute, name=f"date_attr:{selector}")
                )
            strategies.append(SelectText(selector, name=f"date_text:{selector}"))
        strategies.append(Computed(node_text, name="date_text_scan"))
        return strategies

    def _description_strategies(self) -> List[Strategy]:
        hints = self.hints
        return selectors_to_strategies(
            hints.description_selectors, name="paragraph"
        ) + selectors_to_strategies(hints.content_selectors, name="content_block")

    # Field resolution ----------------------------------------------------

    def _accept_title(self, text: str) -> bool:
        return len(text) >= self.hints.min_title_length and not looks_like_language_code(
            text
        )

    def _accept_link(self, link: str) -> bool:
        lowered = link.lower()
        if any(marker in lowered for marker in self.hints.link_excludes):
            return False
        if self.hints.link_must_contain and not any(
            marker in link for marker in self.hints.link_must_contain
        ):
            return False
        return True

    def _parse_date_text(self, text: str) -> Optional[datetime]:
        return parse_date(
            text, dayfirst=self.hints.dayfirst, window=self.window
        ) or scan_text_for_date(text, dayfirst=self.hints.dayfirst, window=self.window)

    def resolve_title(self, element: Tag) -> Optional[Candidate]:
        return run_cascade(self.title_strategies, element, accept=self._accept_title)

    def resolve_link(
        self, element: Tag, title: Candidate, base_url: str
    ) -> Optional[str]:
        for href in (
            _href_near(title.node),
            _href_near(element.select_one(self.hints.main_link)),
        ):
            link = absolutize(href, base_url)
            if link and self._accept_link(link):
                return link
        return None

    def resolve_date(self, element: Tag) -> datetime:
        candidate = run_cascade(
            self.date_strategies,
            element,
            accept=lambda text: self._parse_date_text(text) is not None,
        )
        if candidate is not None:
            parsed = self._parse_date_text(candidate.value)
            if parsed is not None:
                return parsed
        return self.now

    def resolve_description(self, element: Tag, raw_title: str, title: str) -> str:
        cap = self.hints.description_cap
        candidate = run_cascade(
            self.description_strategies,
            element,
            accept=lambda text: bool(clean_description(text, cap)),
        )
        if candidate is not None:
            return clean_description(candidate.value, cap)
        remainder = remove_substring(node_text(element), raw_title)
        if len(remainder) > _MIN_REMAINDER_DESCRIPTION:
            return clean_description(remainder, cap)
        return title

    def resolve_category(self, element: Tag, link: str, title: str) -> str:
        candidate = run_cascade(self.category_strategies, element)
        if candidate is not None:
            return candidate.value
        link_lower = link.lower()
        title_lower = title.lower()
        for rule in self.hints.category_rules:
            for keyword in rule.keywords:
                keyword = keyword.lower()
                if keyword in link_lower or (rule.match_title and keyword in title_lower):
                    return rule.label
        return self.hints.default_category

    def resolve_enclosure(self, element: Tag, base_url: str) -> Optional[str]:
        candidate = run_cascade(
            self.image_strategies,
            element,
            accept=lambda src: not src.startswith("data:"),
        )
        if candidate is None:
            return None
        return absolutize(candidate.value, base_url)

    # Public API ----------------------------------------------------------

    def extract_item(self, element: Tag, base_url: str) -> Optional[NewsItem]:
        """Build a :class:`NewsItem` or return ``None`` to drop the element."""
        title_candidate = self.resolve_title(element)
        if title_candidate is None:
            logger.debug("Dropping element without a usable title")
            return None

        link = self.resolve_link(element, title_candidate, base_url)
        if link is None:
            logger.debug("Dropping %r: no resolvable link", title_candidate.value)
            return None

        title = deslugify_title(title_candidate.value, self.hints.title_rewrites)
        if not title:
            return None

        return NewsItem(
            title=title,
            link=link,
            description=self.resolve_description(
                element, title_candidate.value, title
            ),
            publication_date=self.resolve_date(element),
            category=collapse_whitespace(self.resolve_category(element, link, title)),
            guid=link,
            enclosure=self.resolve_enclosure(element, base_url),
        )

    def extract_all(self, elements: Iterable[Tag], base_url: str) -> List[NewsItem]:
        """Extract every element, skipping those that fail."""
        items: List[NewsItem] = []
        dropped = 0
        for index, element in enumerate(elements):
            try:
                item = self.extract_item(element, base_url)
            except (ValueError, TypeError, AttributeError) as exc:
                logger.debug("Item %s failed extraction: %s", index + 1, exc)
                item = None
            if item is None:
                dropped += 1
                continue
            items.append(item)
        if dropped:
            logger.info("Dropped %s element(s) during extraction", dropped)
        return items
