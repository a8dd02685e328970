#!/usr/bin/env python3
"""Monitoring / healthcheck script for the donations service.

Checks the availability of:
    - FastAPI application (/health)
    - PostgreSQL
    - Redis (support-feed fan-out and rate limiting)

Outputs a JSON array of ``{service, status, latency_ms}`` objects.

Exit codes:
    0 -- all services healthy
    1 -- one or more services unhealthy
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time
from typing import Any

import asyncpg  # type: ignore[import-untyped]
import httpx
from redis.asyncio import Redis

from fundraiser.database import to_asyncpg_dsn

# ---------------------------------------------------------------------------
# Configuration -- all overridable via environment variables
# ---------------------------------------------------------------------------

APP_URL = os.environ.get("APP_URL", "http://localhost:8000")
DATABASE_URL = os.environ.get(
    "DATABASE_URL", "postgresql://app:devpassword@db:5432/fundraiser"
)
REDIS_URL = os.environ.get("REDIS_URL", "redis://redis:6379/0")

# Timeout in seconds for each individual check.
CHECK_TIMEOUT = float(os.environ.get("HEALTHCHECK_TIMEOUT", "5"))


def _result(service: str, start: float, healthy: bool, error: str | None = None) -> dict[str, Any]:
    result: dict[str, Any] = {
        "service": service,
        "status": "healthy" if healthy else "unhealthy",
        "latency_ms": round((time.monotonic() - start) * 1000, 2),
    }
    if error is not None:
        result["error"] = error
    return result


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------

async def check_app(client: httpx.AsyncClient) -> dict[str, Any]:
    """Hit the FastAPI /health endpoint."""
    start = time.monotonic()
    try:
        resp = await client.get(f"{APP_URL}/health", timeout=CHECK_TIMEOUT)
        return _result("app", start, resp.status_code == 200)
    except Exception as exc:
        return _result("app", start, False, str(exc))


async def check_postgres() -> dict[str, Any]:
    """Open a connection and confirm the donations table is reachable."""
    dsn = to_asyncpg_dsn(DATABASE_URL)
    start = time.monotonic()
    try:
        conn = await asyncio.wait_for(
            asyncpg.connect(dsn), timeout=CHECK_TIMEOUT
        )
        try:
            await conn.fetchval("SELECT 1 FROM donations LIMIT 1")
        finally:
            await conn.close()
        return _result("postgres", start, True)
    except Exception as exc:
        return _result("postgres", start, False, str(exc))


async def check_redis() -> dict[str, Any]:
    """PING the Redis server."""
    start = time.monotonic()
    try:
        redis = Redis.from_url(REDIS_URL, decode_responses=True)
        try:
            pong = await asyncio.wait_for(redis.ping(), timeout=CHECK_TIMEOUT)
        finally:
            await redis.aclose()
        return _result("redis", start, bool(pong))
    except Exception as exc:
        return _result("redis", start, False, str(exc))


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

async def run_checks() -> list[dict[str, Any]]:
    """Run all health checks concurrently and return results."""
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(
            check_app(client),
            check_postgres(),
            check_redis(),
        )
    return list(results)


async def main() -> int:
    results = await run_checks()

    json.dump(results, sys.stdout, indent=2)
    sys.stdout.write("\n")

    all_healthy = all(r["status"] == "healthy" for r in results)
    return 0 if all_healthy else 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
