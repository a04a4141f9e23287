"""
Request middleware: request ids, access logging and HTTP metrics.
"""

import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_http_request

logger = get_logger(__name__)

# Health and scrape endpoints are polled every few seconds; logged at debug only
QUIET_PATHS = {"/health", "/metrics"}


def client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _route_label(request: Request) -> str:
    # Path template keeps metric cardinality bounded (/events/{slug_or_id})
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id (the caller's X-Request-ID if sent),
    binds it to structlog contextvars and logs one line per request.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        started = time.perf_counter()
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            client_ip=client_ip(request),
        )

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            record_http_request(request.method, _route_label(request), 500, elapsed)
            logger.exception("request_failed", duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)
        if path not in QUIET_PATHS:
            record_http_request(request.method, _route_label(request), response.status_code, elapsed)
            log = logger.warning if response.status_code >= 500 else logger.info
        else:
            log = logger.debug
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
