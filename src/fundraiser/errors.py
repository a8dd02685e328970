"""Service error taxonomy and the handlers that render it as ``{"error": ...}``."""

from __future__ import annotations

import structlog
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class DonationServiceError(HTTPException):
    """Base class for errors surfaced to API callers."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=self.http_status, detail=detail)


class InvalidRequest(DonationServiceError):
    """Client-supplied data failed validation."""

    http_status = status.HTTP_400_BAD_REQUEST


class InvalidSignature(DonationServiceError):
    """Webhook authenticity could not be established."""

    http_status = status.HTTP_400_BAD_REQUEST


class UpstreamError(DonationServiceError):
    """The payment processor call failed."""


class PersistenceError(DonationServiceError):
    """A database write that the caller depends on failed."""


class ConfigurationError(DonationServiceError):
    """A required server-side secret is missing."""


async def donation_error_handler(request: Request, exc: DonationServiceError) -> JSONResponse:
    log.info("request_failed", status_code=exc.status_code, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field-level detail stays server-side.
    log.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid donation data"},
    )
