from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from fundraiser.config import settings
from fundraiser.api.donations import router as donations_router
from fundraiser.api.support import router as support_router
from fundraiser.api.webhooks import router as webhooks_router
from fundraiser.database import engine, to_asyncpg_dsn
from fundraiser.errors import (
    DonationServiceError,
    donation_error_handler,
    validation_error_handler,
)
from fundraiser.middleware.rate_limit import RateLimitMiddleware
from fundraiser.middleware.security import SecurityHeadersMiddleware
from fundraiser.services.change_relay import DonationChangeRelay

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        (
            structlog.dev.ConsoleRenderer()
            if settings.APP_ENV == "development"
            else structlog.processors.JSONRenderer()
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(0),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("starting_up", env=settings.APP_ENV)
    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await redis.ping()
        log.info("redis_connected", url=settings.REDIS_URL)
    except Exception as e:
        log.warning("redis_connection_failed", error=str(e))
    app.state.redis = redis

    # Without the relay the support feed still serves one-shot reads.
    relay = DonationChangeRelay(to_asyncpg_dsn(settings.DATABASE_URL), redis)
    try:
        await relay.start()
    except Exception as e:
        log.warning("change_relay_start_failed", error=str(e))
    app.state.change_relay = relay

    yield

    # Shutdown
    log.info("shutting_down")
    await relay.stop()
    await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="Fundraiser Donations",
    lifespan=lifespan,
)

# Middleware added last runs first: CORS wraps everything, including 429s.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey"],
)


app.include_router(donations_router)
app.include_router(webhooks_router)
app.include_router(support_router)


app.add_exception_handler(DonationServiceError, donation_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
