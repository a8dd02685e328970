"""Stripe webhook handling -- signature verification and donation recording."""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal

import stripe
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.config import settings
from fundraiser.errors import (
    ConfigurationError,
    InvalidRequest,
    InvalidSignature,
    PersistenceError,
)
from fundraiser.services.audit_logger import AuditLogger
from fundraiser.services.donation_service import (
    ANONYMOUS_DONOR,
    increment_category_total,
    insert_donation,
    is_already_processed,
    mark_event_processed,
    normalize_support_message,
)

log = structlog.get_logger()
audit = AuditLogger()

CHECKOUT_COMPLETED = "checkout.session.completed"
CENT = Decimal("0.01")


def _acknowledged() -> dict:
    return {"received": True}


@dataclass
class DonationIntent:
    """Donation fields recovered from a completed checkout session."""

    session_id: str | None
    category_id: str | None
    donor_name: str
    is_anonymous: bool
    words_of_support: str | None
    amount: Decimal


# ---------------------------------------------------------------------------
# Webhook helpers
# ---------------------------------------------------------------------------

def _verify_stripe_event(payload: bytes, sig_header: str) -> dict:
    """Verify the Stripe signature over the raw body, then parse it."""
    try:
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            body,
            sig_header,
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
        log.warning("webhook_signature_invalid", error=str(exc))
        raise InvalidSignature("Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        log.warning("webhook_payload_invalid")
        raise InvalidRequest("Invalid payload")
    if not isinstance(event, dict):
        log.warning("webhook_payload_invalid")
        raise InvalidRequest("Invalid payload")
    return event


def from_minor_units(amount_total) -> Decimal:
    """Convert Stripe's integer minor units to a two-place major amount."""
    return (Decimal(int(amount_total or 0)) / 100).quantize(CENT)


def extract_donation(session_obj: dict) -> DonationIntent:
    """Pull donation intent from session metadata and the authoritative total."""
    metadata = session_obj.get("metadata") or {}
    return DonationIntent(
        session_id=session_obj.get("id"),
        category_id=metadata.get("category_id") or None,
        donor_name=metadata.get("donor_name") or ANONYMOUS_DONOR,
        is_anonymous=metadata.get("is_anonymous") == "true",
        words_of_support=normalize_support_message(metadata.get("words_of_support")),
        amount=from_minor_units(session_obj.get("amount_total")),
    )


async def _record_donation(db: AsyncSession, intent: DonationIntent, event_id: str | None) -> None:
    """Insert the donation and ledger row in one commit. Raises PersistenceError."""
    try:
        donation_id = await insert_donation(
            db,
            category_id=intent.category_id,
            donor_name=intent.donor_name,
            amount=intent.amount,
            is_anonymous=intent.is_anonymous,
            words_of_support=intent.words_of_support,
        )
        if event_id:
            await mark_event_processed(db, event_id)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error(
            "donation_insert_failed",
            error=str(exc),
            event_id=event_id,
            session_id=intent.session_id,
        )
        raise PersistenceError("Failed to record donation")

    audit.log_donation_recorded(
        donation_id=donation_id,
        category_id=intent.category_id,
        amount=intent.amount,
        event_id=event_id,
        session_id=intent.session_id,
    )


async def _apply_category_total(db: AsyncSession, intent: DonationIntent) -> None:
    """Increment the category total. Failures are logged, never raised."""
    try:
        new_total = await increment_category_total(db, intent.category_id, intent.amount)
        if new_total is None:
            await db.rollback()
            log.error(
                "category_total_update_failed",
                reason="category_not_found",
                category_id=intent.category_id,
                amount=str(intent.amount),
            )
            return
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error(
            "category_total_update_failed",
            reason="database_error",
            error=str(exc),
            category_id=intent.category_id,
            amount=str(intent.amount),
        )
        return

    audit.log_category_total(intent.category_id, intent.amount, new_total)


# ---------------------------------------------------------------------------
# Webhook entry-point
# ---------------------------------------------------------------------------

async def handle_webhook(
    payload: bytes,
    sig_header: str,
    db: AsyncSession,
) -> dict:
    """Verify a Stripe webhook and record the donation it announces.

    Returns the acknowledgment body. Verified events that cannot produce a
    donation (other event types, missing category, non-positive amount,
    redeliveries) are acknowledged without writing, since a retry would
    never succeed. Only a failed donation insert raises.
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        log.error("webhook_not_configured")
        raise ConfigurationError("Server configuration error")

    event = _verify_stripe_event(payload, sig_header)
    event_id = event.get("id")
    event_type = event.get("type")

    if event_type != CHECKOUT_COMPLETED:
        log.info("webhook_event_ignored", event_id=event_id, event_type=event_type)
        return _acknowledged()

    session_obj = (event.get("data") or {}).get("object") or {}
    intent = extract_donation(session_obj)

    if not intent.category_id or intent.amount <= 0:
        log.error(
            "webhook_session_unusable",
            event_id=event_id,
            session_id=intent.session_id,
            category_id=intent.category_id,
            amount=str(intent.amount),
        )
        return _acknowledged()

    if event_id and await is_already_processed(db, event_id):
        log.info("webhook_event_duplicate", event_id=event_id, session_id=intent.session_id)
        return _acknowledged()

    await _record_donation(db, intent, event_id)
    await _apply_category_total(db, intent)
    return _acknowledged()
