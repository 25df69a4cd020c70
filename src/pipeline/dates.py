"""Publication-date parsing for listing pages.

Dates arrive as ``DD/MM/YYYY``, ``DD.MM.YYYY``, ISO timestamps, free text
(``30 June 2025``, ``June 30, 2025``) or .NET JSON tokens
(``\\/Date(1751270400000+0200)\\/``). Every result is an aware UTC datetime;
naive values are taken to be UTC. Dates whose year falls outside the
plausibility window are discarded.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from dateutil import parser as dateparser

from src.config import get_date_window

logger = logging.getLogger(__name__)

YearWindow = Tuple[int, int]

_DOTNET_RE = re.compile(r"\\?/Date\((-?\d+)([+-]\d{4})?\)\\?/")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ][\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)?$")
_YEAR_RE = re.compile(r"\b\d{4}\b")

_MONTHS = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)

# Order matters: the first pattern that yields a plausible date wins.
_TEXT_SCAN_PATTERNS: tuple[re.Pattern[str], ...] = (
    _DOTNET_RE,
    re.compile(r"\b\d{4}-\d{2}-\d{2}(?:T[\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)?"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{1,2}\.\d{1,2}\.\d{4}\b"),
    re.compile(rf"\b\d{{1,2}}\s+{_MONTHS}\.?\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(rf"\b{_MONTHS}\.?\s+\d{{1,2}},?\s+\d{{4}}\b", re.IGNORECASE),
)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_plausible(value: datetime, window: Optional[YearWindow] = None) -> bool:
    """True when the year of *value* lies inside the inclusive window."""
    min_year, max_year = window or get_date_window()
    return min_year <= value.year <= max_year


def _parse_dotnet(text: str) -> Optional[datetime]:
    match = _DOTNET_RE.search(text)
    if not match:
        return None
    millis = int(match.group(1))
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def parse_date(
    value: Optional[str],
    *,
    dayfirst: bool = True,
    window: Optional[YearWindow] = None,
) -> Optional[datetime]:
    """Parse one date string; ``None`` when unparseable or implausible."""
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    parsed: Optional[datetime]
    try:
        parsed = _parse_dotnet(text)
        if parsed is None:
            if _ISO_RE.match(text):
                parsed = dateparser.isoparse(text)
            elif _YEAR_RE.search(text):
                parsed = dateparser.parse(text, dayfirst=dayfirst)
    except (ValueError, OverflowError) as exc:
        logger.debug("Unparseable date %r: %s", text, exc)
        return None

    if parsed is None:
        return None
    parsed = to_utc(parsed)
    if not is_plausible(parsed, window):
        logger.debug("Discarding implausible date %s from %r", parsed, text)
        return None
    return parsed


def scan_text_for_date(
    text: Optional[str],
    *,
    dayfirst: bool = True,
    window: Optional[YearWindow] = None,
) -> Optional[datetime]:
    """Find the first plausible date anywhere inside free text."""
    if not text:
        return None
    for pattern in _TEXT_SCAN_PATTERNS:
        for match in pattern.finditer(text):
            parsed = parse_date(match.group(0), dayfirst=dayfirst, window=window)
            if parsed is not None:
                return parsed
    return None
