"""Request context middleware: request id, timing and a completion line.

The request id and the acting caller live in ContextVars so every log
record emitted while serving a request carries them, whichever module
logs it.  Concurrent requests share the event loop thread, so
thread-locals would leak between them; ContextVars are per task.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
# Set by the require_actor dependency once the caller is known
actor_var: ContextVar[str] = ContextVar("actor", default="-")


class _RequestContextFilter(logging.Filter):
    """Attach request_id and actor to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        if not hasattr(record, "actor"):
            record.actor = actor_var.get("-")  # type: ignore[attr-defined]
        return True


def install_log_filter() -> None:
    # Filters on the root logger only see records logged to it directly,
    # so the filter goes on each root handler as well.
    root_logger = logging.getLogger()
    targets: list[logging.Filterer] = [root_logger, *root_logger.handlers]
    for target in targets:
        if not any(isinstance(f, _RequestContextFilter) for f in target.filters):
            target.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request and log its completion.

    An incoming X-Request-ID is reused so ids can be correlated across
    the gateway and this service; otherwise a UUID4 is generated.  The id
    is echoed back on the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        actor_var.set("-")

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
