import pytest

from src.pipeline.text_cleaning import (
    clean_description,
    deslugify_title,
    is_slug_like,
    looks_like_language_code,
    remove_boilerplate,
    remove_substring,
    strip_tags,
    truncate_at_word,
)


def test_long_description_is_cut_at_a_word_boundary():
    text = " ".join(f"word{i}" for i in range(400))
    assert len(text) > 2000

    cleaned = clean_description(text, 500)

    assert len(cleaned) <= 503
    assert cleaned.endswith("...")
    body = cleaned[: -len("...")]
    # The last kept token is a whole word from the source.
    assert body.split(" ")[-1] in text.split(" ")


def test_short_description_is_returned_unchanged():
    assert clean_description("  A short   teaser.  ") == "A short teaser."


def test_truncate_hard_cuts_a_single_overlong_word():
    assert truncate_at_word("x" * 20, 10) == "x" * 10 + "..."


def test_clean_description_strips_markup_and_share_widgets():
    raw = (
        '<p>Council adopts <b>conclusions</b> &amp; guidelines.</p>'
        '{"service":"share","url":"x"} PRINT Share this page'
    )

    assert clean_description(raw) == "Council adopts conclusions & guidelines."


def test_remove_boilerplate_drops_press_team_and_copyright_lines():
    text = "Main text. Press and information team of the Council. Â© European Union, 2025."

    assert remove_boilerplate(text).strip() == "Main text."


def test_strip_tags_decodes_entities():
    assert strip_tags("<span>R&eacute;sum&eacute;</span>").strip() == "Résumé"


def test_deslugify_news_journal_identifier():
    assert deslugify_title("NEWS-JOURNAL-2025-01") == "Journal 2025 01"


def test_deslugify_applies_rewrites_before_slug_detection():
    rewrites = ((r"^NEWS-JOURNAL-(\d{4})-(\d{2})$", r"ECA Journal \1-\2"),)

    assert deslugify_title("NEWS-JOURNAL-2025-01", rewrites) == "ECA Journal 2025-01"


def test_natural_titles_pass_through():
    title = "Special report 12/2025: EU support for farmers"

    assert not is_slug_like(title)
    assert deslugify_title(title) == title


def test_underscore_slugs_are_split_and_capitalized():
    assert deslugify_title("annual_activity_REPORT") == "Annual Activity Report"


def test_language_codes_are_recognized():
    assert looks_like_language_code("EN")
    assert looks_like_language_code(" fr ")
    assert not looks_like_language_code("News")
    assert not looks_like_language_code("")


def test_remove_substring_only_removes_first_occurrence():
    assert remove_substring("Title body Title", "Title") == "body Title"


@pytest.mark.parametrize("raw", ["PRINT", "PRINT ", " PRINT\n"])
def test_bare_print_label_cleans_to_nothing(raw):
    assert clean_description(raw) == ""


def test_print_inside_a_word_is_kept():
    assert clean_description("A BLUEPRINT for the Union") == "A BLUEPRINT for the Union"
