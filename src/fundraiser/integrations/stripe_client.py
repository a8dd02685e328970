"""Process-wide Stripe client configuration.

The Stripe SDK is configured through module globals, so this is applied
once at import time by the services that talk to Stripe.
"""

from __future__ import annotations

import stripe

from fundraiser.config import settings


def configure_stripe() -> None:
    """Apply the secret key, request timeout, and retry policy."""
    stripe.api_key = settings.STRIPE_SECRET_KEY
    # Retried POSTs carry an automatic idempotency key.
    stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES
    stripe.default_http_client = stripe.new_default_http_client(
        timeout=settings.STRIPE_TIMEOUT_SECONDS,
    )


def stripe_configured() -> bool:
    return bool(settings.STRIPE_SECRET_KEY)
