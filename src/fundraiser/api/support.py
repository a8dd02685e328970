"""Words-of-support feed endpoints: a one-shot read and a live SSE stream."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fundraiser.database import async_session_factory, get_db
from fundraiser.services.support_feed import (
    FEED_CHANNEL,
    SupportFeedView,
    load_feed_view,
    render_feed,
)

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1/support", tags=["support"])


# ---------------------------------------------------------------------------
# SSE stream helpers
# ---------------------------------------------------------------------------

def _format_view(view: SupportFeedView) -> str:
    return f"data: {view.model_dump_json()}\n\n"


async def _reload(session_factory: async_sessionmaker) -> SupportFeedView:
    """Full re-fetch in a fresh session; the stream outlives request dependencies."""
    async with session_factory() as db:
        return await load_feed_view(db)


async def _support_event_generator(
    redis,
    request: Request,
    session_factory: async_sessionmaker = async_session_factory,
):
    """Yield feed views: a placeholder, the initial read, then one per change."""
    yield _format_view(render_feed(None))

    if redis is None:
        yield _format_view(await _reload(session_factory))
        return

    # Subscribe before the initial read so no change slips in between.
    pubsub = redis.pubsub()
    try:
        await pubsub.subscribe(FEED_CHANNEL)
    except (RedisError, OSError) as exc:
        log.warning("support_feed_subscribe_failed", error=str(exc))
        await pubsub.aclose()
        yield _format_view(await _reload(session_factory))
        return

    try:
        yield _format_view(await _reload(session_factory))
        while not await request.is_disconnected():
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                yield _format_view(await _reload(session_factory))
            else:
                yield ": keepalive\n\n"
    finally:
        await pubsub.unsubscribe(FEED_CHANNEL)
        await pubsub.aclose()


# ---------------------------------------------------------------------------
# GET /api/v1/support
# ---------------------------------------------------------------------------

@router.get("", response_model=SupportFeedView)
async def read_support_feed(db: AsyncSession = Depends(get_db)):
    """Return all words of support, newest first, or the empty state."""
    return await load_feed_view(db)


# ---------------------------------------------------------------------------
# GET /api/v1/support/events -- SSE stream
# ---------------------------------------------------------------------------

@router.get("/events")
async def support_events(request: Request):
    """Stream the support feed, re-sent in full whenever donations change."""
    redis = getattr(request.app.state, "redis", None)
    return StreamingResponse(
        _support_event_generator(redis, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
