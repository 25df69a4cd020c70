"""Static per-source configuration for the institutional listing pages.

Every source declares where its listing lives, how to acquire it, the
ordered candidate selectors for item containers and per-field hints for the
extractor. Nothing here is user input; the registry is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from src.models import ChannelInfo


class AcquisitionMode(str, Enum):
    BROWSER = "browser"
    HTTP = "http"


@dataclass(frozen=True)
class SelectorCandidate:
    """Container selector plus the match count it must reach to win."""

    selector: str
    min_count: int = 1


@dataclass(frozen=True)
class ExtractionStrategy:
    """Ordered container candidates, most specific first."""

    candidates: Tuple[SelectorCandidate, ...]

    @classmethod
    def of(cls, *entries) -> "ExtractionStrategy":
        """Build from bare selectors or ``(selector, min_count)`` pairs."""
        candidates = []
        for entry in entries:
            if isinstance(entry, SelectorCandidate):
                candidates.append(entry)
            elif isinstance(entry, str):
                candidates.append(SelectorCandidate(entry))
            else:
                selector, min_count = entry
                candidates.append(SelectorCandidate(selector, int(min_count)))
        return cls(tuple(candidates))


@dataclass(frozen=True)
class CategoryRule:
    """Label applied when any keyword occurs in the link (or title)."""

    keywords: Tuple[str, ...]
    label: str
    match_title: bool = True


HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6, .card-title"


@dataclass(frozen=True)
class FieldHints:
    """Per-field selectors and normalization knobs for one source."""

    main_link: str = "a[href]"
    primary_title: Optional[str] = None
    headings: str = HEADING_SELECTOR
    date_selectors: Tuple[str, ...] = ("time[datetime]", "time", ".date")
    date_attributes: Tuple[str, ...] = ("datetime",)
    description_selectors: Tuple[str, ...] = ("p",)
    content_selectors: Tuple[str, ...] = (
        ".card-text",
        ".excerpt",
        ".summary",
        ".content",
    )
    image_selectors: Tuple[str, ...] = ("img",)
    category_selectors: Tuple[str, ...] = ()
    category_rules: Tuple[CategoryRule, ...] = ()
    default_category: str = "News"
    title_rewrites: Tuple[Tuple[str, str], ...] = ()
    description_cap: int = 500
    dayfirst: bool = True
    min_title_length: int = 3
    link_must_contain: Tuple[str, ...] = ()
    link_excludes: Tuple[str, ...] = ("javascript:", "mailto:")


@dataclass(frozen=True)
class EnrichmentConfig:
    """Detail-page fetches that replace listing descriptions."""

    max_items: int
    content_selectors: Tuple[str, ...]
    description_cap: int = 500
    min_text_length: int = 100


@dataclass(frozen=True)
class SourceConfig:
    feed_id: str
    name: str
    channel: ChannelInfo
    url: str
    base_url: str
    mode: AcquisitionMode
    strategy: ExtractionStrategy
    hints: FieldHints = field(default_factory=FieldHints)
    max_items: int = 20
    wait_hint: Optional[str] = None
    referer: Optional[str] = None
    user_agents: Tuple[str, ...] = ()
    prefer_mobile: bool = False
    enrichment: Optional[EnrichmentConfig] = None

    @property
    def cache_key(self) -> str:
        return f"{self.feed_id}-feed"


GOOGLE_REFERER = "https://www.google.com/"

_ECA = SourceConfig(
    feed_id="eca",
    name="European Court of Auditors",
    channel=ChannelInfo(
        title="ECA News - European Court of Auditors",
        description=(
            "Latest news, reports, and publications from the European "
            "Court of Auditors"
        ),
        link="https://www.eca.europa.eu/en/all-news",
    ),
    url="https://www.eca.europa.eu/en/all-news",
    base_url="https://www.eca.europa.eu",
    mode=AcquisitionMode.BROWSER,
    wait_hint=".card-news, ul.news-list, .card",
    strategy=ExtractionStrategy.of(
        "ul.news-list li .card.card-news",
        ".card.card-news",
        ".card-news",
        "ul.news-list li",
        ("ul.row.news-list li", 1),
        (".card", 3),
        ('[class*="card"]', 3),
        ("li:has(a[href*='/news/'])", 1),
    ),
    hints=FieldHints(
        main_link="a.stretched-link",
        primary_title="h5.card-title",
        date_selectors=("time.card-date", "time", ".date", ".card-date"),
        description_selectors=(".card-body p", "p"),
        image_selectors=("img.card-img-top", "img"),
        category_rules=(
            CategoryRule(("journal",), "ECA Journal"),
            CategoryRule(("newsletter",), "Newsletter"),
            CategoryRule(("sr-", "special report"), "Special Report"),
            CategoryRule(("rv-", "review"), "Review"),
            CategoryRule(("opinion",), "Opinion"),
            CategoryRule(("press release",), "Press Release"),
        ),
        default_category="ECA News",
        title_rewrites=(
            (r"^NEWS-JOURNAL-(\d{4})-(\d{2})$", r"ECA Journal \1-\2"),
            (r"^NEWS(\d{4})_(\d{2})_NEWSLETTER_(\d{2})$", r"ECA Newsletter \1-\2-\3"),
        ),
        description_cap=600,
    ),
    max_items=20,
)

_CONSILIUM = SourceConfig(
    feed_id="consilium",
    name="Council of the European Union",
    channel=ChannelInfo(
        title="EU Council Press Releases",
        description="Latest press releases from the Council of the European Union",
        link="https://www.consilium.europa.eu/en/press/press-releases/",
    ),
    url="https://www.consilium.europa.eu/en/press/press-releases/",
    base_url="https://www.consilium.europa.eu",
    mode=AcquisitionMode.BROWSER,
    wait_hint=".gsc-u-list-unstyled, .gsc-excerpt-item",
    strategy=ExtractionStrategy.of(
        ".gsc-u-list-unstyled .gsc-excerpt-item",
        ".gsc-excerpt-item",
        '[data-theme="ceu"]',
        ".excerpt-item",
        'article[data-type*="press"]',
        ".press-release-item",
    ),
    hints=FieldHints(
        main_link=".gsc-excerpt-item__link",
        primary_title=".gsc-excerpt-item__title, .gsc-heading--xsm",
        date_selectors=("time[datetime]", ".gsc-time-badge", "time"),
        description_selectors=("#excerpt-text", ".gsc-excerpt-text", "p"),
        category_selectors=(".gsc-tag",),
        default_category="Press Release",
        description_cap=500,
        # The datetime attribute is US-formatted: "8/11/2025 10:05:00 AM".
        dayfirst=False,
    ),
    max_items=20,
    enrichment=EnrichmentConfig(
        max_items=15,
        content_selectors=(
            ".press-release-content",
            ".main-content",
            ".gsc-rich-text",
            "article .content",
            "main",
        ),
        description_cap=800,
    ),
)

_EEAS = SourceConfig(
    feed_id="eeas",
    name="European External Action Service",
    channel=ChannelInfo(
        title="EEAS Press Material",
        description="European External Action Service Press Releases and Statements",
        link="https://www.eeas.europa.eu/eeas/press-material_en",
    ),
    url="https://www.eeas.europa.eu/eeas/press-material_en",
    base_url="https://www.eeas.europa.eu",
    mode=AcquisitionMode.HTTP,
    strategy=ExtractionStrategy.of(
        ".related-grid .card",
        (".card", 3),
        (".views-row", 3),
    ),
    hints=FieldHints(
        main_link=".card-title a",
        headings=".card-title, h2, h3, h4",
        date_selectors=(".card-footer.node__meta", "time", ".date"),
        category_selectors=(".card-subtitle .field__item",),
        default_category="Press Material",
        description_cap=500,
    ),
    max_items=50,
    enrichment=EnrichmentConfig(
        max_items=20,
        content_selectors=(
            ".node__content",
            "#block-eeas-website-content",
            ".field--name-body",
            "article",
            "main",
        ),
        description_cap=500,
    ),
)

_NATO = SourceConfig(
    feed_id="nato",
    name="NATO",
    channel=ChannelInfo(
        title="NATO News",
        description="Latest news and updates from NATO Headquarters",
        link="https://www.nato.int/cps/en/natohq/news.htm",
    ),
    url="https://www.nato.int/cps/en/natohq/news.htm",
    base_url="https://www.nato.int",
    mode=AcquisitionMode.HTTP,
    referer=GOOGLE_REFERER,
    user_agents=(
        "FeedBurner/1.0 (http://www.FeedBurner.com)",
        "Mozilla/5.0 (compatible; RSS Reader)",
        "Mozilla/5.0 (compatible; archive.org_bot +http://www.archive.org)",
        "Feedfetcher-Google; (+http://www.google.com/feedfetcher.html)",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    ),
    strategy=ExtractionStrategy.of(
        ".news-item",
        ".newsitem",
        ".news-list .item",
        ".news-box",
        ("article", 2),
        (".content-item", 2),
    ),
    hints=FieldHints(
        date_selectors=(".date", ".news-date", "time", ".publish-date"),
        description_selectors=(".summary", ".teaser", "p"),
        default_category="NATO News",
        description_cap=500,
    ),
    max_items=30,
    enrichment=EnrichmentConfig(
        max_items=10,
        content_selectors=("section.content", ".content", "article", "main"),
        description_cap=500,
    ),
)

_COE = SourceConfig(
    feed_id="coe",
    name="Council of Europe",
    channel=ChannelInfo(
        title="Council of Europe Newsroom",
        description="Latest news, press releases, and updates from the Council of Europe",
        link="https://www.coe.int/en/web/portal/newsroom",
    ),
    url="https://www.coe.int/en/web/portal/newsroom",
    base_url="https://www.coe.int",
    mode=AcquisitionMode.BROWSER,
    wait_hint=".news-item, .article, .publication",
    referer="https://www.google.com/search?q=council+of+europe+newsroom",
    prefer_mobile=True,
    strategy=ExtractionStrategy.of(
        ".news-item",
        ".article",
        ".publication",
        ('[class*="news"]', 3),
        ('[class*="article"]', 3),
        ("h2:has(a), h3:has(a)", 3),
        ('li:has(a[href*="/news/"])', 1),
        ('li:has(a[href*="/article/"])', 1),
    ),
    hints=FieldHints(
        date_selectors=(
            ".date",
            ".published",
            ".created",
            '[class*="date"]',
            "time",
        ),
        description_selectors=("p", ".summary", ".excerpt"),
        category_rules=(
            CategoryRule(("press release", "/press/"), "Press Release"),
            CategoryRule(("human rights",), "Human Rights"),
        ),
        default_category="COE News",
        description_cap=600,
        min_title_length=5,
    ),
    max_items=25,
)

_CURIA = SourceConfig(
    feed_id="curia",
    name="Court of Justice of the European Union",
    channel=ChannelInfo(
        title="European Court of Justice - Press Releases",
        description="Latest press releases and judgments from the European Court of Justice",
        link="https://curia.europa.eu/jcms/jcms/Jo2_7052/en/",
    ),
    url="https://curia.europa.eu/jcms/jcms/Jo2_7052/en/",
    base_url="https://curia.europa.eu",
    mode=AcquisitionMode.BROWSER,
    wait_hint='a[href*="p1_"]',
    strategy=ExtractionStrategy.of(
        ('li:has(a[href*="p1_"])', 1),
        ('tr:has(a[href*="p1_"])', 1),
        ('a[href*="p1_"]', 1),
    ),
    hints=FieldHints(
        main_link='a[href*="p1_"]',
        category_rules=(
            CategoryRule(("judgment",), "Judgment"),
            CategoryRule(("opinion",), "Opinion"),
        ),
        default_category="Press Release",
        description_cap=500,
        link_must_contain=("p1_",),
    ),
    max_items=7,
)

SOURCES: Dict[str, SourceConfig] = {
    source.feed_id: source
    for source in (_ECA, _CONSILIUM, _EEAS, _NATO, _COE, _CURIA)
}


def get_source(feed_id: str) -> SourceConfig:
    """Return the configuration of ``feed_id``; ``KeyError`` if unknown."""
    key = (feed_id or "").strip().lower()
    if key not in SOURCES:
        raise KeyError(feed_id)
    return SOURCES[key]


def list_sources() -> List[SourceConfig]:
    return list(SOURCES.values())


# Feeds that are announced but not scraped yet; they serve a single notice.
PLACEHOLDER_FEEDS: Dict[str, str] = {
    "europarl": "European Parliament Q&A",
    "frontex": "Frontex News",
    "europol": "Europol News",
}


def get_placeholder_name(feed_id: str) -> Optional[str]:
    return PLACEHOLDER_FEEDS.get((feed_id or "").strip().lower())
