"""Structured JSON audit logger for money-moving events.

Emits structured log entries via structlog for checkout sessions, recorded
donations, and category total updates.  Every entry carries an
``audit: true`` flag so production log pipelines can filter on it easily.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


class AuditLogger:
    """Structured audit logger for donation events.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def log_checkout_session(
        self,
        session_id: str,
        category_id: str,
        amount_cents: int,
        is_anonymous: bool,
    ) -> None:
        """Log a checkout session handed to the payment processor."""
        log.info(
            "audit_event",
            event_type="checkout_session",
            timestamp=datetime.now(timezone.utc).isoformat(),
            session_id=session_id,
            category_id=category_id,
            amount_cents=amount_cents,
            is_anonymous=is_anonymous,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Donation
    # ------------------------------------------------------------------

    def log_donation_recorded(
        self,
        donation_id,
        category_id: str,
        amount,
        event_id: str | None,
        session_id: str | None,
    ) -> None:
        """Record a donation row written from a verified webhook."""
        log.info(
            "audit_event",
            event_type="donation_recorded",
            timestamp=datetime.now(timezone.utc).isoformat(),
            donation_id=str(donation_id),
            category_id=category_id,
            amount=str(amount),
            event_id=event_id,
            session_id=session_id,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Category total
    # ------------------------------------------------------------------

    def log_category_total(self, category_id: str, amount, new_total) -> None:
        """Log an increment of a category's running total."""
        log.info(
            "audit_event",
            event_type="category_total_updated",
            timestamp=datetime.now(timezone.utc).isoformat(),
            category_id=category_id,
            amount=str(amount),
            new_total=str(new_total),
            audit=True,
        )
