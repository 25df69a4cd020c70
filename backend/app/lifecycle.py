"""FastAPI lifecycle management for shared resources.

This module centralizes startup and shutdown handling for:
- the result cache shared by every request
- the feed pipeline built on top of it

Route handlers reach both through dependency functions so tests can
override them without touching ``app.state``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request

from src.config import CACHE_TTL_SECONDS, get_timeout_profile
from src.services.orchestrator import FeedPipeline
from src.services.result_cache import InMemoryResultCache, ResultCache

logger = logging.getLogger(__name__)


def setup_lifecycle_handlers(app: FastAPI) -> None:
    """Register startup and shutdown handlers for the FastAPI app.

    Args:
        app: The FastAPI application instance
    """

    @app.on_event("startup")
    async def startup_resources():
        """Create the shared cache and pipeline and attach them to app.state."""
        profile = get_timeout_profile()
        cache = InMemoryResultCache(ttl_seconds=CACHE_TTL_SECONDS)
        app.state.result_cache = cache
        app.state.pipeline = FeedPipeline(cache, profile=profile)
        app.state.ready = True
        logger.info(
            "Feed pipeline ready (profile=%s, cache_ttl=%ss)",
            profile.name,
            CACHE_TTL_SECONDS,
        )

    @app.on_event("shutdown")
    async def shutdown_resources():
        """Drop cached results and clear the ready flag."""
        cache = getattr(app.state, "result_cache", None)
        if cache is not None:
            cache.clear()
        app.state.ready = False
        logger.info("Resource cleanup complete")


# Dependency injection functions for route handlers


def get_result_cache(request: Request) -> ResultCache | None:
    """Dependency that provides the shared result cache.

    Returns None before startup has run. Tests can override this dependency.
    """
    return getattr(request.app.state, "result_cache", None)


def get_pipeline(request: Request) -> FeedPipeline:
    """Dependency that provides the shared :class:`FeedPipeline`.

    Raises 503 until startup has attached one. Tests can override this
    dependency to inject a pipeline with fake acquirers.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Feed pipeline not initialized")
    return pipeline


def is_ready(request: Request) -> bool:
    """Check if the application is ready to serve traffic."""
    return getattr(request.app.state, "ready", False)
