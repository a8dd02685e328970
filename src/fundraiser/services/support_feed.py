"""Words-of-support feed -- the read model behind the live support list."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

import structlog
from pydantic import BaseModel, computed_field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.services.donation_service import ANONYMOUS_DONOR

log = structlog.get_logger()

# Redis channel that announces any change to the donations table.
FEED_CHANNEL = "donations:changes"

LOADING_MESSAGE = "Loading words of support..."
EMPTY_STATE_MESSAGE = "No messages yet. Leave a note when you donate to show your support."


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class SupportEntry(BaseModel):
    id: uuid.UUID
    donor_name: str
    is_anonymous: bool
    words_of_support: str
    created_at: datetime

    @computed_field
    @property
    def display_name(self) -> str:
        return ANONYMOUS_DONOR if self.is_anonymous else self.donor_name


class SupportFeedView(BaseModel):
    status: Literal["loading", "empty", "ready"]
    message: str | None = None
    entries: list[SupportEntry] = []


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def fetch_support_entries(db: AsyncSession) -> list[SupportEntry]:
    """Return donations that carry a support message, newest first.

    A failed read is logged and reported as an empty feed.
    """
    try:
        result = await db.execute(
            text(
                "SELECT id, donor_name, is_anonymous, words_of_support, created_at "
                "FROM donations "
                "WHERE words_of_support IS NOT NULL "
                "ORDER BY created_at DESC"
            )
        )
        rows = result.fetchall()
    except (SQLAlchemyError, OSError) as exc:
        log.error("support_feed_fetch_failed", error=str(exc))
        return []

    return [
        SupportEntry(
            id=row[0],
            donor_name=row[1],
            is_anonymous=row[2],
            words_of_support=row[3],
            created_at=row[4],
        )
        for row in rows
        if isinstance(row[3], str) and row[3].strip()
    ]


def render_feed(entries: list[SupportEntry] | None) -> SupportFeedView:
    """Turn a fetch result into a view; ``None`` means still loading."""
    if entries is None:
        return SupportFeedView(status="loading", message=LOADING_MESSAGE)
    if not entries:
        return SupportFeedView(status="empty", message=EMPTY_STATE_MESSAGE)
    return SupportFeedView(status="ready", entries=entries)


async def load_feed_view(db: AsyncSession) -> SupportFeedView:
    return render_feed(await fetch_support_entries(db))
