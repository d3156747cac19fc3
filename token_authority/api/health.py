"""Operational endpoints: liveness, readiness and the Prometheus scrape.

/health answers 200 as long as the process can serve; its ``status``
field says whether the backing stores are reachable.  /ready answers 503
when the ledger database is configured but unreachable, which takes the
instance out of rotation without restarting it.  Redis only backs the
secret cache, so it never affects readiness.

/metrics is left out of the OpenAPI schema; restrict it to the monitoring
network at the ingress.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from token_authority.db import engine as db_engine
from token_authority.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ops"])


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
        return "ok"
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
