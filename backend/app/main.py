import os
import uuid
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from backend.app.lifecycle import (
    get_pipeline,
    get_result_cache,
    is_ready,
    setup_lifecycle_handlers,
)
from src.config import CACHE_TTL_SECONDS, PUBLIC_BASE_URL, get_timeout_profile
from src.models import ChannelInfo, NewsItem
from src.pipeline.sources import (
    PLACEHOLDER_FEEDS,
    get_placeholder_name,
    get_source,
    list_sources,
)
from src.rss.builder import build_feed
from src.services.orchestrator import FeedPipeline
from src.utils.logging_config import bind_request_context, clear_context

RSS_MEDIA_TYPE = "application/rss+xml; charset=utf-8"

app = FastAPI(title="Institutional Feed Generator")

# CORS configuration - allow origins can be configured via
# ALLOWED_ORIGINS env var (comma-separated)
allowed = os.environ.get("ALLOWED_ORIGINS", "*")
if allowed == "*":
    origins = ["*"]
else:
    origins = [o.strip() for o in allowed.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET"],
    allow_headers=["*"],
)

setup_lifecycle_handlers(app)


class FeedInfo(BaseModel):
    feed: str
    name: str
    url: str
    mode: str
    max_items: int
    endpoint: str


class HealthOut(BaseModel):
    status: str
    ready: bool
    timeout_profile: str
    cache_entries: int | None = None


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    bind_request_context(request_id=request_id, path=request.url.path)
    try:
        response = await call_next(request)
    finally:
        clear_context()
    response.headers["X-Request-ID"] = request_id
    return response


def cache_control_header(ttl_seconds: float = CACHE_TTL_SECONDS) -> str:
    ttl = int(ttl_seconds)
    return f"public, max-age={ttl}, stale-while-revalidate={ttl * 2}"


def unknown_feed_body(feed: str) -> str:
    """Informational RSS document listing the feeds that do exist."""
    available = ", ".join(
        [source.feed_id for source in list_sources()] + list(PLACEHOLDER_FEEDS)
    )
    channel = ChannelInfo(
        title="Unknown feed",
        description=f"No feed named '{feed}'. Available feeds: {available}",
        link=f"{PUBLIC_BASE_URL}/api/feeds",
    )
    notice = NewsItem(
        title=f"Feed '{feed}' does not exist",
        link=f"{PUBLIC_BASE_URL}/api/feeds",
        description=f"Request one of: {available}",
        publication_date=datetime.now(timezone.utc),
        category="System Notice",
        guid=f"{PUBLIC_BASE_URL}/api/{feed}#unknown-feed",
    )
    return build_feed(channel, [notice], self_link=f"{PUBLIC_BASE_URL}/api/{feed}")


def placeholder_feed_body(feed: str, name: str) -> str:
    link = f"{PUBLIC_BASE_URL}/api/{feed}"
    channel = ChannelInfo(
        title=f"{name} - Coming Soon",
        description=f"RSS feed for {name} is under development",
        link=link,
    )
    notice = NewsItem(
        title=f"{name} RSS Feed Under Development",
        link=link,
        description=(
            "This RSS feed is currently being developed. "
            "Please check back soon for updates."
        ),
        publication_date=datetime.now(timezone.utc),
        category="System Notice",
        guid=f"{link}#development",
    )
    return build_feed(channel, [notice], self_link=link)


@app.get("/health", response_model=HealthOut)
def health(request: Request, cache=Depends(get_result_cache)):
    ready = is_ready(request)
    return HealthOut(
        status="ok" if ready else "starting",
        ready=ready,
        timeout_profile=get_timeout_profile().name,
        cache_entries=len(cache) if cache is not None else None,
    )


@app.get("/api/feeds", response_model=list[FeedInfo])
def feeds():
    return [
        FeedInfo(
            feed=source.feed_id,
            name=source.name,
            url=source.url,
            mode=source.mode.value,
            max_items=source.max_items,
            endpoint=f"/api/{source.feed_id}",
        )
        for source in list_sources()
    ]


@app.get("/api/{feed}")
async def feed(feed: str, pipeline: FeedPipeline = Depends(get_pipeline)):
    try:
        source = get_source(feed)
    except KeyError:
        name = get_placeholder_name(feed)
        if name is not None:
            return Response(
                content=placeholder_feed_body(feed.strip().lower(), name),
                media_type=RSS_MEDIA_TYPE,
                headers={"X-Feed-Origin": "placeholder", "X-Feed-Items": "1"},
            )
        return Response(
            content=unknown_feed_body(feed),
            status_code=400,
            media_type=RSS_MEDIA_TYPE,
        )

    result = await pipeline.run(source)
    if result.fallback:
        origin = "stale" if result.stale else "fallback"
    else:
        origin = "cache" if result.from_cache else "live"

    body = build_feed(
        result.channel,
        result.items,
        self_link=f"{PUBLIC_BASE_URL}/api/{source.feed_id}",
    )
    return Response(
        content=body,
        media_type=RSS_MEDIA_TYPE,
        headers={
            "Cache-Control": cache_control_header(pipeline.cache.ttl_seconds),
            "X-Feed-Origin": origin,
            "X-Feed-Items": str(len(result.items)),
        },
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
