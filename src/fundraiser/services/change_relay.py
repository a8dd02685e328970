"""Relay PostgreSQL change notifications on ``donations`` to Redis pub/sub.

The ``trg_donations_notify`` trigger calls ``pg_notify`` after every
INSERT, UPDATE, or DELETE on the donations table.  One relay per process
LISTENs on that channel over a dedicated asyncpg connection and republishes
each notification on :data:`FEED_CHANNEL`, where every open support-feed
stream is subscribed.
"""

from __future__ import annotations

import json
from typing import Any

import asyncpg  # type: ignore[import-untyped]
import structlog
from redis.exceptions import RedisError

from fundraiser.schema_sql.triggers import DONATION_CHANGES_CHANNEL
from fundraiser.services.support_feed import FEED_CHANNEL

log = structlog.get_logger()


class DonationChangeRelay:
    """Forwards ``donation_changes`` notifications to Redis."""

    def __init__(self, dsn: str, redis: Any) -> None:
        self._dsn = dsn
        self._redis = redis
        self._conn: asyncpg.Connection | None = None

    @property
    def running(self) -> bool:
        return self._conn is not None and not self._conn.is_closed()

    async def start(self) -> None:
        """Open the LISTEN connection."""
        self._conn = await asyncpg.connect(self._dsn)
        await self._conn.add_listener(DONATION_CHANGES_CHANNEL, self._on_notify)
        log.info("change_relay_started", channel=DONATION_CHANGES_CHANNEL)

    async def stop(self) -> None:
        """Stop listening and release the connection."""
        if self._conn is None:
            return
        try:
            if not self._conn.is_closed():
                await self._conn.remove_listener(DONATION_CHANGES_CHANNEL, self._on_notify)
                await self._conn.close()
        finally:
            self._conn = None
        log.info("change_relay_stopped")

    async def _on_notify(self, connection, pid: int, channel: str, payload: str) -> None:
        message = json.dumps({"event": "donations_changed", "operation": payload})
        try:
            await self._redis.publish(FEED_CHANNEL, message)
        except (RedisError, OSError) as exc:
            log.warning("change_relay_publish_failed", error=str(exc), operation=payload)
