"""Utility routines for cleaning scraped listing text."""

from __future__ import annotations

import html
import re
from collections.abc import Iterable

ELLIPSIS = "..."

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Non-content fragments that leak into listing/detail text.
_BOILERPLATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'\{"service":"share"[^}]*\}'),
    re.compile(r"\bPRINT\b\s*"),
    re.compile(r"Press and information team[^.]*\."),
    re.compile(r"(?:Â)?©[^.]*\."),
    re.compile(r"\bShare this page\b:?", re.IGNORECASE),
)

_SLUG_PREFIX_RE = re.compile(r"^NEWS[-_]+", re.IGNORECASE)
_SLUG_SEPARATOR_RE = re.compile(r"[-_]+")
_LANGUAGE_CODE_RE = re.compile(r"^[A-Za-z]{2}$")


def collapse_whitespace(text: str | None) -> str:
    """Return *text* with every whitespace run replaced by one space."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_tags(text: str | None) -> str:
    """Drop markup tags and decode HTML entities."""
    if not text:
        return ""
    return html.unescape(_TAG_RE.sub(" ", text))


def remove_boilerplate(text: str) -> str:
    for pattern in _BOILERPLATE_PATTERNS:
        text = pattern.sub("", text)
    return text


def truncate_at_word(text: str, max_length: int) -> str:
    """Cut *text* at the last space before ``max_length`` and add an ellipsis.

    Text already within the cap is returned unchanged. A single word longer
    than the cap is hard-cut.
    """
    if max_length <= 0 or len(text) <= max_length:
        return text
    head = text[:max_length]
    last_space = head.rfind(" ")
    if last_space > 0:
        head = head[:last_space].rstrip()
    return head + ELLIPSIS


def clean_description(text: str | None, max_length: int = 500) -> str:
    """Strip tags and boilerplate, collapse whitespace, and truncate."""
    if not text:
        return ""
    cleaned = collapse_whitespace(remove_boilerplate(strip_tags(text)))
    return truncate_at_word(cleaned, max_length)


def is_slug_like(title: str) -> bool:
    """True for file/route identifiers such as ``NEWS-JOURNAL-2025-01``."""
    stripped = title.strip()
    if not stripped or any(ch.isspace() for ch in stripped):
        return False
    return "-" in stripped or "_" in stripped


def deslugify_title(
    title: str | None,
    rewrites: Iterable[tuple[str, str]] = (),
) -> str:
    """Turn a technical identifier into a readable, word-capitalized title.

    ``rewrites`` are ``(pattern, replacement)`` regex pairs applied first;
    natural-language titles pass through untouched.
    """
    if not title:
        return ""
    text = collapse_whitespace(title)
    for pattern, replacement in rewrites:
        text = re.sub(pattern, replacement, text)
    if not is_slug_like(text):
        return text

    text = _SLUG_PREFIX_RE.sub("", text)
    words = [word for word in _SLUG_SEPARATOR_RE.split(text) if word]
    if not words:
        return title.strip()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def looks_like_language_code(text: str | None) -> bool:
    """True for language-switcher link texts such as ``EN`` or ``fr``."""
    return bool(text) and bool(_LANGUAGE_CODE_RE.match(text.strip()))


def remove_substring(text: str, fragment: str) -> str:
    """Remove the first occurrence of *fragment* and tidy whitespace."""
    if fragment:
        text = text.replace(fragment, " ", 1)
    return collapse_whitespace(text)
