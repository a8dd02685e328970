"""Donation checkout endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from fundraiser.services.checkout_service import (
    CheckoutRequest,
    CheckoutResponse,
    create_checkout_session,
)

router = APIRouter(prefix="/api/v1/donations", tags=["donations"])

# Returned on bare OPTIONS requests, which CORSMiddleware only answers when
# they are real preflights.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}


@router.options("/checkout")
async def checkout_options():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/checkout", response_model=CheckoutResponse)
async def start_checkout(body: CheckoutRequest, request: Request):
    """Create a Stripe Checkout Session for a donation and return its URL."""
    origin = request.headers.get("origin", "")
    return await create_checkout_session(body, origin)
