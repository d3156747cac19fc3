from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from token_authority.api.health import router as ops_router
from token_authority.api.tokens import router as tokens_router
from token_authority.core.config import SETTINGS
from token_authority.core.errors import TokenAuthorityError
from token_authority.core.logging import setup_logging
from token_authority.db.engine import lifespan_db
from token_authority.db.redis import lifespan_redis
from token_authority.middleware.metrics import MetricsMiddleware
from token_authority.middleware.request_context import (
    RequestContextMiddleware,
    install_log_filter,
)
from token_authority.services.upstream import lifespan_http

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_log_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order of startup
    async with lifespan_db():
        async with lifespan_redis():
            async with lifespan_http():
                yield


app = FastAPI(
    title="token-authority",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext → Metrics → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(TokenAuthorityError)
async def token_authority_error_handler(
    _request: Request, exc: TokenAuthorityError
) -> JSONResponse:
    return JSONResponse(status_code=exc.code, content=exc.envelope())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=500, content={"code": 500, "i18n": "INTERNAL_ERROR"}
    )


app.include_router(ops_router)
app.include_router(tokens_router)

logger.info(
    "token-authority started  env=%s log_level=%s port=%d docs=%s revocation=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "enforced" if SETTINGS.enforce_revocation else "audit-only",
)
