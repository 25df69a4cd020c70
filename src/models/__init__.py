"""Item and channel models produced by the feed pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class NewsItem:
    """One syndicated entry scraped from a source listing page.

    ``guid`` defaults to ``link`` so repeated fetches of the same page yield
    the same identifier downstream. ``publication_date`` is always an aware
    UTC datetime.
    """

    title: str
    link: str
    description: str
    publication_date: datetime
    category: str
    guid: str = ""
    enclosure: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("NewsItem.title must be non-empty")
        if not self.link or not self.link.strip():
            raise ValueError("NewsItem.link must be non-empty")
        if not self.guid:
            object.__setattr__(self, "guid", self.link)
        if self.publication_date.tzinfo is None:
            object.__setattr__(
                self,
                "publication_date",
                self.publication_date.replace(tzinfo=timezone.utc),
            )
        else:
            object.__setattr__(
                self,
                "publication_date",
                self.publication_date.astimezone(timezone.utc),
            )
        if not self.description:
            object.__setattr__(self, "description", self.title)

    def with_description(self, description: str) -> "NewsItem":
        return replace(self, description=description)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["publication_date"] = self.publication_date.isoformat()
        return data


@dataclass(frozen=True)
class ChannelInfo:
    """Channel-level metadata of a generated feed."""

    title: str
    description: str
    link: str
    language: str = "en"
    generator: str = "Institutional Feed Generator"
    ttl_minutes: int = 30

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = ["ChannelInfo", "NewsItem"]
