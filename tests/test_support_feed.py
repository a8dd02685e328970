"""Tests for the words-of-support feed: reads, rendering, and the SSE stream."""

from __future__ import annotations

import json
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from fundraiser.api.support import _support_event_generator
from fundraiser.services.support_feed import (
    EMPTY_STATE_MESSAGE,
    FEED_CHANNEL,
    LOADING_MESSAGE,
    SupportEntry,
    fetch_support_entries,
    render_feed,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _row(donor_name="Alice", is_anonymous=False, message="Go!", minutes_ago=0):
    return (
        uuid.uuid4(),
        donor_name,
        is_anonymous,
        message,
        NOW - timedelta(minutes=minutes_ago),
    )


def _fetch_result(rows):
    result = MagicMock()
    result.fetchall.return_value = rows
    return result


def _entry(**kwargs) -> SupportEntry:
    row = _row(**kwargs)
    return SupportEntry(
        id=row[0],
        donor_name=row[1],
        is_anonymous=row[2],
        words_of_support=row[3],
        created_at=row[4],
    )


def _session_factory(rows):
    """A stand-in for async_sessionmaker whose sessions return *rows*."""
    session = AsyncMock()
    session.execute = AsyncMock(return_value=_fetch_result(rows))

    @asynccontextmanager
    async def factory():
        yield session

    return factory, session


def _parse(chunk: str) -> dict:
    assert chunk.startswith("data: ")
    return json.loads(chunk[len("data: "):].strip())


# ---------------------------------------------------------------------------
# fetch_support_entries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_returns_rows_in_query_order(mock_db):
    rows = [_row("Bo", minutes_ago=1), _row("Alice", minutes_ago=5)]
    mock_db.execute.return_value = _fetch_result(rows)

    entries = await fetch_support_entries(mock_db)

    assert [e.donor_name for e in entries] == ["Bo", "Alice"]
    sql = str(mock_db.execute.call_args.args[0])
    assert "words_of_support IS NOT NULL" in sql
    assert "ORDER BY created_at DESC" in sql


@pytest.mark.asyncio
async def test_fetch_drops_blank_messages(mock_db):
    rows = [_row(message="   "), _row(message="Keep going"), _row(message="")]
    mock_db.execute.return_value = _fetch_result(rows)

    entries = await fetch_support_entries(mock_db)

    assert [e.words_of_support for e in entries] == ["Keep going"]


@pytest.mark.asyncio
async def test_fetch_failure_reads_as_empty(mock_db):
    mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

    entries = await fetch_support_entries(mock_db)

    assert entries == []
    assert render_feed(entries).status == "empty"


def test_display_name_hides_anonymous_donor():
    assert _entry(donor_name="Carol", is_anonymous=True).display_name == "Anonymous"
    assert _entry(donor_name="Carol", is_anonymous=False).display_name == "Carol"


# ---------------------------------------------------------------------------
# render_feed
# ---------------------------------------------------------------------------

def test_render_feed_loading():
    view = render_feed(None)
    assert view.status == "loading"
    assert view.message == LOADING_MESSAGE
    assert view.entries == []


def test_render_feed_empty():
    view = render_feed([])
    assert view.status == "empty"
    assert view.message == EMPTY_STATE_MESSAGE


def test_render_feed_ready():
    entries = [_entry(), _entry(donor_name="Bo")]
    view = render_feed(entries)
    assert view.status == "ready"
    assert view.message is None
    assert view.entries == entries


# ---------------------------------------------------------------------------
# GET /api/v1/support
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_support_feed_empty(client, override_db):
    override_db.execute.return_value = _fetch_result([])

    resp = await client.get("/api/v1/support")

    assert resp.status_code == 200
    assert resp.json() == {"status": "empty", "message": EMPTY_STATE_MESSAGE, "entries": []}


@pytest.mark.asyncio
async def test_get_support_feed_ready(client, override_db):
    override_db.execute.return_value = _fetch_result(
        [_row("Dana", is_anonymous=True, message="Proud of you")]
    )

    resp = await client.get("/api/v1/support")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ready"
    assert len(data["entries"]) == 1
    entry = data["entries"][0]
    assert entry["display_name"] == "Anonymous"
    assert entry["words_of_support"] == "Proud of you"


# ---------------------------------------------------------------------------
# SSE generator
# ---------------------------------------------------------------------------

def _mock_redis(messages):
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.get_message = AsyncMock(side_effect=messages)

    redis = MagicMock()
    redis.pubsub = MagicMock(return_value=pubsub)
    return redis, pubsub


def _request(disconnect_after: int):
    """A request that reports disconnected after *disconnect_after* checks."""
    request = MagicMock()
    request.is_disconnected = AsyncMock(
        side_effect=[False] * disconnect_after + [True]
    )
    return request


@pytest.mark.asyncio
async def test_stream_sends_loading_then_initial_view():
    factory, _ = _session_factory([_row(message="First!")])
    redis, pubsub = _mock_redis([])

    chunks = [c async for c in _support_event_generator(redis, _request(0), factory)]

    assert _parse(chunks[0])["status"] == "loading"
    initial = _parse(chunks[1])
    assert initial["status"] == "ready"
    assert initial["entries"][0]["words_of_support"] == "First!"
    assert len(chunks) == 2
    pubsub.subscribe.assert_awaited_once_with(FEED_CHANNEL)
    pubsub.unsubscribe.assert_awaited_once_with(FEED_CHANNEL)
    pubsub.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_stream_refetches_on_change_notification():
    factory, session = _session_factory([])
    change = {"type": "message", "channel": FEED_CHANNEL, "data": "{}"}
    redis, _ = _mock_redis([change, None])

    chunks = [c async for c in _support_event_generator(redis, _request(2), factory)]

    assert _parse(chunks[1])["status"] == "empty"
    assert _parse(chunks[2])["status"] == "empty"
    assert chunks[3] == ": keepalive\n\n"
    assert len(chunks) == 4
    # initial read plus one full re-read per change
    assert session.execute.await_count == 2


@pytest.mark.asyncio
async def test_stream_without_redis_sends_single_view():
    factory, _ = _session_factory([])

    chunks = [c async for c in _support_event_generator(None, _request(5), factory)]

    assert [_parse(c)["status"] for c in chunks] == ["loading", "empty"]


@pytest.mark.asyncio
async def test_stream_with_unreachable_redis_sends_single_view():
    """A failed subscribe still delivers the initial read instead of stalling on loading."""
    factory, _ = _session_factory([_row(message="Still here")])
    redis, pubsub = _mock_redis([])
    pubsub.subscribe.side_effect = RedisConnectionError("Error 111 connecting to redis:6379")

    chunks = [c async for c in _support_event_generator(redis, _request(5), factory)]

    assert [_parse(c)["status"] for c in chunks] == ["loading", "ready"]
    assert _parse(chunks[1])["entries"][0]["words_of_support"] == "Still here"
    pubsub.get_message.assert_not_called()
    pubsub.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_stream_close_releases_subscription():
    factory, _ = _session_factory([])
    redis, pubsub = _mock_redis([None] * 10)
    gen = _support_event_generator(redis, _request(10), factory)

    await gen.__anext__()
    await gen.__anext__()
    await gen.aclose()

    pubsub.unsubscribe.assert_awaited_once_with(FEED_CHANNEL)
    pubsub.aclose.assert_awaited_once()
