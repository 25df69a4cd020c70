"""Typed strategy descriptors and the single runner that evaluates them.

Each field of an item is resolved by an ordered list of strategies. The
runner tries them in order and returns the first candidate whose value is
accepted, together with the name of the strategy that produced it, so every
cascade can be tested and audited in isolation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence, Union

from bs4 import Tag

from src.pipeline.text_cleaning import collapse_whitespace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A value proposed by a strategy plus the node it was read from."""

    value: str
    node: Optional[Tag] = None
    strategy: str = ""


class Strategy(Protocol):
    name: str

    def resolve(self, element: Tag) -> Optional[Candidate]: ...


def node_text(node: Tag) -> str:
    return collapse_whitespace(node.get_text(" ", strip=True))


def _select(element: Tag, selector: str, include_self: bool) -> list[Tag]:
    nodes = list(element.select(selector))
    if include_self and element.css.match(selector):
        nodes.insert(0, element)
    return nodes


@dataclass(frozen=True)
class SelectText:
    """Text of the first matching node with non-empty text.

    With ``within`` the search is scoped to the first node matching that
    selector, and that scope node is reported as the candidate node (used
    for "title inside the main link").
    """

    selector: str
    name: str = "select_text"
    within: Optional[str] = None
    include_self: bool = False

    def resolve(self, element: Tag) -> Optional[Candidate]:
        scope = element
        if self.within:
            scope = element.select_one(self.within)
            if scope is None:
                return None
        for node in _select(scope, self.selector, self.include_self):
            text = node_text(node)
            if text:
                return Candidate(text, scope if self.within else node, self.name)
        return None


@dataclass(frozen=True)
class SelectAttr:
    """Attribute value of the first matching node that carries it."""

    selector: str
    attribute: str
    name: str = "select_attr"
    include_self: bool = False

    def resolve(self, element: Tag) -> Optional[Candidate]:
        for node in _select(element, self.selector, self.include_self):
            raw = node.get(self.attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
            value = collapse_whitespace(raw) if raw else ""
            if value:
                return Candidate(value, node, self.name)
        return None


@dataclass(frozen=True)
class LongestText:
    """Longest text among the matching nodes, skipping rejected texts."""

    selector: str
    name: str = "longest_text"
    reject: Callable[[str], bool] = field(default=lambda text: False)
    include_self: bool = False

    def resolve(self, element: Tag) -> Optional[Candidate]:
        best: Optional[Candidate] = None
        for node in _select(element, self.selector, self.include_self):
            text = node_text(node)
            if not text or self.reject(text):
                continue
            if best is None or len(text) > len(best.value):
                best = Candidate(text, node, self.name)
        return best


@dataclass(frozen=True)
class Computed:
    """Arbitrary resolver for strategies that are not a plain selection."""

    func: Callable[[Tag], Union[Candidate, str, None]]
    name: str = "computed"

    def resolve(self, element: Tag) -> Optional[Candidate]:
        result = self.func(element)
        if result is None:
            return None
        if isinstance(result, Candidate):
            return result if result.strategy else Candidate(
                result.value, result.node, self.name
            )
        text = collapse_whitespace(result)
        return Candidate(text, element, self.name) if text else None


def run_cascade(
    strategies: Sequence[Strategy],
    element: Tag,
    accept: Optional[Callable[[str], bool]] = None,
) -> Optional[Candidate]:
    """Return the first accepted candidate, or ``None`` if all strategies fail."""
    for strategy in strategies:
        candidate = strategy.resolve(element)
        if candidate is None or not candidate.value:
            continue
        if accept is not None and not accept(candidate.value):
            logger.debug(
                "Strategy %s proposed rejected value %r",
                strategy.name,
                candidate.value[:80],
            )
            continue
        return candidate
    return None


def selectors_to_strategies(
    selectors: Sequence[str], *, name: str, attribute: Optional[str] = None
) -> list[Strategy]:
    """Build one descriptor per selector, preserving order."""
    if attribute:
        return [
            SelectAttr(selector, attribute, name=f"{name}[{idx}]")
            for idx, selector in enumerate(selectors)
        ]
    return [
        SelectText(selector, name=f"{name}[{idx}]")
        for idx, selector in enumerate(selectors)
    ]
