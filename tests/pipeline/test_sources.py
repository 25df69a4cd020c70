import pytest

from src.config import TIMEOUT_PROFILES
from src.crawler.acquirer import NAVIGATION_STRATEGIES
from src.pipeline.sources import (
    AcquisitionMode,
    ExtractionStrategy,
    SelectorCandidate,
    get_placeholder_name,
    get_source,
    list_sources,
)


def test_registry_contains_every_institution():
    assert [source.feed_id for source in list_sources()] == [
        "eca",
        "consilium",
        "eeas",
        "nato",
        "coe",
        "curia",
    ]


def test_get_source_is_case_insensitive_and_rejects_unknown():
    assert get_source(" ECA ").feed_id == "eca"
    with pytest.raises(KeyError):
        get_source("unknown")


def test_announced_feeds_are_not_scraped_sources():
    assert get_placeholder_name(" EUROPOL ") == "Europol News"
    assert get_placeholder_name("eca") is None
    with pytest.raises(KeyError):
        get_source("europarl")


@pytest.mark.parametrize("source", list_sources(), ids=lambda s: s.feed_id)
def test_source_configuration_is_complete(source):
    assert source.url.startswith(source.base_url)
    assert source.strategy.candidates
    assert source.max_items > 0
    assert source.cache_key == f"{source.feed_id}-feed"
    assert source.channel.title
    assert isinstance(source.mode, AcquisitionMode)


def test_acquisition_modes_follow_the_sites():
    assert get_source("eca").mode is AcquisitionMode.BROWSER
    assert get_source("eeas").mode is AcquisitionMode.HTTP
    assert get_source("nato").user_agents
    assert get_source("coe").prefer_mobile


def test_strategy_builder_accepts_mixed_entries():
    strategy = ExtractionStrategy.of(".a", (".b", 3), SelectorCandidate(".c", 2))

    assert strategy.candidates == (
        SelectorCandidate(".a", 1),
        SelectorCandidate(".b", 3),
        SelectorCandidate(".c", 2),
    )


def test_profiles_only_name_known_navigation_strategies():
    for profile in TIMEOUT_PROFILES.values():
        for name in profile.strategies:
            assert name in NAVIGATION_STRATEGIES
