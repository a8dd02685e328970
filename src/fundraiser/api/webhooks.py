"""Stripe webhook endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fundraiser.database import get_db
from fundraiser.errors import InvalidRequest
from fundraiser.services.webhook_service import handle_webhook

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Receive and process Stripe webhook events.

    Reads the raw request body and the Stripe-Signature header,
    then delegates to the webhook service for verification and handling.
    """
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise InvalidRequest("Missing Stripe-Signature")
    payload = await request.body()
    return await handle_webhook(payload, sig_header, db)
