"""Helpers for scoring how trustworthy a selector match is."""

from __future__ import annotations


def normalize_score(score: float, max_score: float) -> float:
    """Return a 0-1 normalized confidence score.

    Args:
        score: The raw heuristic score.
        max_score: The theoretical maximum score for the heuristic.

    Returns:
        A float between 0.0 and 1.0 inclusive.
    """

    if max_score <= 0:
        return 0.0
    normalized = score / max_score
    if normalized < 0.0:
        return 0.0
    if normalized > 1.0:
        return 1.0
    return normalized


def rank_confidence(rank: int, total: int, *, retried: bool = False) -> float:
    """Confidence for the candidate at ``rank`` (0-based) out of ``total``.

    The most specific candidate scores 1.0 and each step down the cascade
    loses an equal share. A win that needed the rescan is halved.
    """

    if total <= 0 or rank < 0 or rank >= total:
        return 0.0
    score = normalize_score(total - rank, total)
    if retried:
        score /= 2
    return round(score, 3)


def score_to_label(score: float) -> str:
    """Convert a normalized score into qualitative tiers.

    - score >= 0.75 ⇒ "high"
    - score >= 0.4 ⇒ "medium"
    - otherwise "low"
    """

    if score >= 0.75:
        return "high"
    if score >= 0.4:
        return "medium"
    return "low"
