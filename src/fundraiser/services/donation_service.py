"""Donation persistence -- inserts, the webhook ledger, and category totals."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

ANONYMOUS_DONOR = "Anonymous"

# Column widths of the donations table; checkout rejects anything longer.
MAX_CATEGORY_ID_LENGTH = 64
MAX_DONOR_NAME_LENGTH = 200
MAX_SUPPORT_MESSAGE_LENGTH = 150


def normalize_support_message(message: str | None) -> str | None:
    """Trim and cap a support message; blank messages become ``None``."""
    if message is None:
        return None
    trimmed = str(message).strip()
    if not trimmed:
        return None
    return trimmed[:MAX_SUPPORT_MESSAGE_LENGTH]


# ---------------------------------------------------------------------------
# Webhook ledger
# ---------------------------------------------------------------------------

async def is_already_processed(db: AsyncSession, event_id: str) -> bool:
    """Return True if this webhook event has already produced a donation."""
    existing = await db.execute(
        text("SELECT 1 FROM processed_webhooks WHERE event_id = :event_id"),
        {"event_id": event_id},
    )
    return existing.fetchone() is not None


async def mark_event_processed(db: AsyncSession, event_id: str) -> None:
    """Record a webhook event ID so a redelivery is not recorded twice."""
    await db.execute(
        text(
            "INSERT INTO processed_webhooks (event_id, processed_at) "
            "VALUES (:event_id, :processed_at)"
        ),
        {"event_id": event_id, "processed_at": datetime.now(timezone.utc)},
    )


# ---------------------------------------------------------------------------
# Donations
# ---------------------------------------------------------------------------

async def insert_donation(
    db: AsyncSession,
    category_id: str,
    donor_name: str,
    amount: Decimal,
    is_anonymous: bool,
    words_of_support: str | None,
) -> uuid.UUID:
    """Insert a donation row and return its id. Does not commit."""
    donation_id = uuid.uuid4()
    await db.execute(
        text(
            "INSERT INTO donations "
            "(id, category_id, donor_name, amount, is_anonymous, "
            "words_of_support, created_at) "
            "VALUES (:id, :category_id, :donor_name, :amount, :is_anonymous, "
            ":words_of_support, :created_at)"
        ),
        {
            "id": donation_id,
            "category_id": category_id,
            "donor_name": donor_name,
            "amount": amount,
            "is_anonymous": is_anonymous,
            "words_of_support": words_of_support,
            "created_at": datetime.now(timezone.utc),
        },
    )
    return donation_id


# ---------------------------------------------------------------------------
# Category totals
# ---------------------------------------------------------------------------

async def increment_category_total(
    db: AsyncSession,
    category_id: str,
    amount: Decimal,
) -> Decimal | None:
    """Add *amount* to a category's running total in a single UPDATE.

    The increment happens inside the statement, so concurrent webhooks for
    the same category cannot overwrite each other.

    Returns the new total, or None if the category does not exist.
    Does not commit.
    """
    result = await db.execute(
        text(
            "UPDATE categories "
            "SET current_amount = current_amount + :amount, "
            "updated_at = :updated_at "
            "WHERE id = :category_id "
            "RETURNING current_amount"
        ),
        {
            "category_id": category_id,
            "amount": amount,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    row = result.fetchone()
    if row is None:
        return None
    return row[0]
