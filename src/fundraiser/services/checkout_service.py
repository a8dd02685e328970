"""Stripe Checkout session creation for donations."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

import stripe
import structlog
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from fundraiser.config import settings
from fundraiser.errors import ConfigurationError, InvalidRequest, UpstreamError
from fundraiser.integrations.stripe_client import configure_stripe, stripe_configured
from fundraiser.services.audit_logger import AuditLogger
from fundraiser.services.donation_service import (
    ANONYMOUS_DONOR,
    MAX_CATEGORY_ID_LENGTH,
    MAX_DONOR_NAME_LENGTH,
    normalize_support_message,
)

configure_stripe()

log = structlog.get_logger()
audit = AuditLogger()

STRIPE_CONNECTION_HINT = (
    "Stripe connection failed. Check that STRIPE_SECRET_KEY is correct "
    "(sk_test_... or sk_live_...) in the server environment, then try again."
)

_CONNECTION_FAILURE_PATTERN = re.compile(
    r"connection to Stripe|StripeConnectionError|retried", re.IGNORECASE
)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class CheckoutRequest(BaseModel):
    category_id: str = ""
    donor_name: str = ""
    amount: Decimal | None = None
    is_anonymous: bool = False
    words_of_support: str | None = None
    success_url: str | None = None
    cancel_url: str | None = None


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_id: str = Field(alias="sessionId")
    checkout_url: str = Field(alias="checkoutUrl")
    client_secret: str | None = Field(default=None, alias="clientSecret")


# ---------------------------------------------------------------------------
# Request shaping
# ---------------------------------------------------------------------------

def validate_checkout_request(body: CheckoutRequest) -> None:
    """Raise InvalidRequest unless category, donor, and a positive amount are present.

    Category ids and donor names must also fit their donation columns, or
    the paid session could never be recorded by the webhook.
    """
    if (
        not body.category_id.strip()
        or not body.donor_name.strip()
        or len(body.category_id) > MAX_CATEGORY_ID_LENGTH
        or len(body.donor_name) > MAX_DONOR_NAME_LENGTH
        or body.amount is None
        or not body.amount.is_finite()
        or body.amount <= 0
    ):
        raise InvalidRequest("Invalid donation data")


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to whole cents, rounding half up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_session_metadata(body: CheckoutRequest) -> dict[str, str]:
    """Build the metadata bag that carries donation intent to the webhook."""
    metadata = {
        "category_id": body.category_id,
        "donor_name": ANONYMOUS_DONOR if body.is_anonymous else body.donor_name,
        "is_anonymous": "true" if body.is_anonymous else "false",
    }
    words_of_support = normalize_support_message(body.words_of_support)
    if words_of_support:
        metadata["words_of_support"] = words_of_support
    return metadata


def resolve_redirect_urls(body: CheckoutRequest, origin: str) -> tuple[str, str]:
    """Return (success_url, cancel_url), derived from *origin* when not supplied."""
    base = origin.rstrip("/")
    success_url = body.success_url or f"{base}/success?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = body.cancel_url or f"{base}/"
    return success_url, cancel_url


def normalize_stripe_error(exc: Exception) -> str:
    """Map connectivity/authentication failures to an actionable hint."""
    if isinstance(exc, stripe.StripeError):
        message = exc.user_message or str(exc)
    else:
        message = str(exc)
    if isinstance(exc, (stripe.APIConnectionError, stripe.AuthenticationError)):
        return STRIPE_CONNECTION_HINT
    if _CONNECTION_FAILURE_PATTERN.search(message):
        return STRIPE_CONNECTION_HINT
    return message or "Internal server error"


# ---------------------------------------------------------------------------
# Checkout session creation
# ---------------------------------------------------------------------------

async def create_checkout_session(body: CheckoutRequest, origin: str) -> CheckoutResponse:
    """Validate a donation intent and create a hosted Stripe Checkout Session.

    Raises InvalidRequest (400) for bad input, ConfigurationError (500) when
    the Stripe key is missing, and UpstreamError (500) when Stripe fails.
    """
    if not stripe_configured():
        log.error("checkout_not_configured")
        raise ConfigurationError("Missing environment variables")

    validate_checkout_request(body)

    amount_cents = to_minor_units(body.amount)
    success_url, cancel_url = resolve_redirect_urls(body, origin)

    try:
        # The SDK call blocks for up to timeout x retries; keep it off the loop.
        session = await run_in_threadpool(
            stripe.checkout.Session.create,
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": settings.DONATION_CURRENCY.lower(),
                        "product_data": {
                            "name": (
                                "Anonymous Donation"
                                if body.is_anonymous
                                else f"Donation from {body.donor_name}"
                            ),
                            "description": "Support for category donation",
                        },
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }
            ],
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=build_session_metadata(body),
        )
    except stripe.StripeError as exc:
        log.error("checkout_session_failed", error=str(exc), error_type=type(exc).__name__)
        raise UpstreamError(normalize_stripe_error(exc))

    checkout_url = getattr(session, "url", None)
    if not checkout_url:
        log.error("checkout_session_missing_url", session_id=session.id)
        raise UpstreamError("Stripe did not return a checkout URL")

    audit.log_checkout_session(
        session_id=session.id,
        category_id=body.category_id,
        amount_cents=amount_cents,
        is_anonymous=body.is_anonymous,
    )

    return CheckoutResponse(
        session_id=session.id,
        checkout_url=checkout_url,
        client_secret=getattr(session, "client_secret", None),
    )
