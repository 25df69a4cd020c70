"""RSS 2.0 serialization of normalized items."""

from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Iterable, List, Optional
from xml.sax.saxutils import escape, quoteattr

from src.models import ChannelInfo, NewsItem

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
DEFAULT_ENCLOSURE_TYPE = "application/octet-stream"


def format_rfc2822(value: datetime) -> str:
    """``Mon, 30 Jun 2025 00:00:00 GMT`` for an aware or naive (UTC) datetime."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def cdata(text: str) -> str:
    # A literal "]]>" would end the section early; split it across two.
    return "<![CDATA[" + (text or "").replace("]]>", "]]]]><![CDATA[>") + "]]>"


def enclosure_type(url: str) -> str:
    guessed, _ = mimetypes.guess_type(url.split("?", 1)[0])
    return guessed or DEFAULT_ENCLOSURE_TYPE


def _item_lines(item: NewsItem) -> List[str]:
    lines = [
        "    <item>",
        f"      <title>{cdata(item.title)}</title>",
        f"      <description>{cdata(item.description or item.title)}</description>",
        f"      <link>{escape(item.link)}</link>",
        f"      <pubDate>{format_rfc2822(item.publication_date)}</pubDate>",
    ]
    if item.category:
        lines.append(f"      <category>{cdata(item.category)}</category>")
    if item.enclosure:
        lines.append(
            f"      <enclosure url={quoteattr(item.enclosure)} length=\"0\" "
            f"type={quoteattr(enclosure_type(item.enclosure))} />"
        )
    guid = item.guid or item.link
    permalink = "true" if guid == item.link else "false"
    lines.append(f'      <guid isPermaLink="{permalink}">{escape(guid)}</guid>')
    lines.append("    </item>")
    return lines


def build_feed(
    channel: ChannelInfo,
    items: Iterable[NewsItem],
    self_link: Optional[str] = None,
    *,
    build_date: Optional[datetime] = None,
) -> str:
    """Render *items* as an RSS 2.0 document for *channel*.

    ``self_link`` is the public URL of the feed itself; the channel link is
    used when it is not given.
    """
    build_date = build_date or datetime.now(timezone.utc)
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<rss version="2.0" xmlns:atom="{ATOM_NAMESPACE}">',
        "  <channel>",
        f"    <title>{cdata(channel.title)}</title>",
        f"    <description>{cdata(channel.description)}</description>",
        f"    <link>{escape(channel.link)}</link>",
        f"    <language>{escape(channel.language)}</language>",
        f"    <generator>{escape(channel.generator)}</generator>",
        f"    <ttl>{int(channel.ttl_minutes)}</ttl>",
        f"    <lastBuildDate>{format_rfc2822(build_date)}</lastBuildDate>",
        f"    <atom:link href={quoteattr(self_link or channel.link)} rel=\"self\" "
        'type="application/rss+xml" />',
    ]
    for item in items:
        lines.extend(_item_lines(item))
    lines.extend(["  </channel>", "</rss>"])
    return "\n".join(lines) + "\n"
