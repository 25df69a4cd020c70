"""List configured feeds and generate one from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from src.config import PUBLIC_BASE_URL, get_timeout_profile
from src.pipeline.sources import get_source, list_sources
from src.rss.builder import build_feed
from src.services.orchestrator import FeedPipeline
from src.services.result_cache import InMemoryResultCache

logger = logging.getLogger(__name__)


def add_list_feeds_parser(subparsers) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "list-feeds",
        help="List the feeds this generator can build",
    )
    parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    parser.set_defaults(func=handle_list_feeds_command)
    return parser


def add_generate_feed_parser(subparsers) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "generate-feed",
        help="Scrape one source and write its feed",
    )
    parser.add_argument("feed", help="Feed identifier (see list-feeds)")
    parser.add_argument(
        "--output",
        "-o",
        help="Write to this file instead of stdout",
    )
    parser.add_argument(
        "--format",
        choices=["rss", "json"],
        default="rss",
        help="Output format (default: rss)",
    )
    parser.set_defaults(func=handle_generate_feed_command)
    return parser


def handle_list_feeds_command(args) -> int:
    sources = list_sources()
    if getattr(args, "format", "table") == "json":
        payload = [
            {
                "feed": source.feed_id,
                "name": source.name,
                "url": source.url,
                "mode": source.mode.value,
                "max_items": source.max_items,
            }
            for source in sources
        ]
        print(json.dumps(payload, indent=2))
        return 0

    print("\n=== Available Feeds ===")
    for source in sources:
        print(f"{source.feed_id:<12} {source.name}")
        print(f"{'':<12} {source.url} ({source.mode.value})")
    return 0


def build_pipeline(profile_name: Optional[str] = None) -> FeedPipeline:
    return FeedPipeline(InMemoryResultCache(), profile=get_timeout_profile(profile_name))


def _render(result, output_format: str) -> str:
    if output_format == "json":
        payload = {
            "channel": result.channel.to_dict(),
            "items": [item.to_dict() for item in result.items],
            "run": result.summary(),
        }
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    return build_feed(
        result.channel,
        result.items,
        self_link=f"{PUBLIC_BASE_URL}/api/{result.feed_id}",
    )


def handle_generate_feed_command(args) -> int:
    try:
        source = get_source(args.feed)
    except KeyError:
        available = ", ".join(s.feed_id for s in list_sources())
        print(f"Unknown feed '{args.feed}'. Available: {available}")
        return 1

    pipeline = build_pipeline(getattr(args, "timeout_profile", None))
    result = asyncio.run(pipeline.run(source))
    if result.fallback:
        logger.warning(
            "Feed %s served from fallback (%s)",
            source.feed_id,
            "stale cache" if result.stale else "notice item",
        )

    body = _render(result, args.format)
    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
        logger.info("Wrote %s item(s) to %s", len(result.items), path)
    else:
        print(body, end="")
    return 0
