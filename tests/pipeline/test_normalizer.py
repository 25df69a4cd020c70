from datetime import datetime, timedelta, timezone

import pytest

from src.crawler.errors import NormalizeError, NormalizeErrorKind
from src.models import NewsItem
from src.pipeline.normalizer import canonical_link, normalize, strip_fragment

BASE = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _item(title, link, days=0, **kwargs):
    return NewsItem(
        title=title,
        link=link,
        description=kwargs.pop("description", ""),
        publication_date=BASE + timedelta(days=days),
        category=kwargs.pop("category", "News"),
        **kwargs,
    )


def test_canonical_link_ignores_case_query_fragment_and_trailing_slash():
    assert canonical_link("HTTPS://Example.org/News/A/?page=2#top") == "https://example.org/news/a"


def test_strip_fragment_keeps_query():
    assert strip_fragment("https://example.org/a?id=3#x") == "https://example.org/a?id=3"


def test_first_occurrence_of_a_link_wins():
    items = [
        _item("First copy", "https://example.org/a", days=1),
        _item("Second copy", "https://example.org/a/#comments", days=5),
        _item("Other", "https://example.org/b", days=2),
    ]

    result = normalize(items)

    assert [item.title for item in result] == ["Other", "First copy"]


def test_sorted_newest_first_with_stable_ties():
    items = [
        _item("Tie one", "https://example.org/1", days=3),
        _item("Older", "https://example.org/2", days=1),
        _item("Tie two", "https://example.org/3", days=3),
        _item("Newest", "https://example.org/4", days=9),
    ]

    result = normalize(items)

    assert [item.title for item in result] == ["Newest", "Tie one", "Tie two", "Older"]


def test_cap_keeps_newest():
    items = [_item(f"Item {i}", f"https://example.org/{i}", days=i) for i in range(10)]

    result = normalize(items, max_items=3)

    assert [item.title for item in result] == ["Item 9", "Item 8", "Item 7"]


def test_fragment_removed_from_emitted_link_and_default_guid():
    result = normalize([_item("Anchored", "https://example.org/a?x=1#frag")])

    assert result[0].link == "https://example.org/a?x=1"
    assert result[0].guid == "https://example.org/a?x=1"


def test_explicit_guid_survives_fragment_removal():
    result = normalize([_item("Anchored", "https://example.org/a#frag", guid="urn:item:1")])

    assert result[0].guid == "urn:item:1"


def test_short_titles_are_dropped():
    result = normalize([_item("EN", "https://example.org/en"), _item("Real", "https://example.org/r")])

    assert [item.title for item in result] == ["Real"]


def test_empty_result_raises():
    with pytest.raises(NormalizeError) as excinfo:
        normalize([], source_url="https://example.org/news")

    assert excinfo.value.kind is NormalizeErrorKind.EMPTY_RESULT
    assert excinfo.value.url == "https://example.org/news"
    assert excinfo.value.stage == "normalizing"


def test_normalize_is_idempotent():
    items = [
        _item("Aye", "https://example.org/a", days=2),
        _item("Bee", "https://example.org/b#x", days=4),
        _item("Cee", "https://example.org/c", days=1),
    ]

    once = normalize(items, max_items=2)

    assert normalize(once, max_items=2) == once
