"""
Request context middleware for audit logging.

WHAT: Middleware that captures the request id, client IP and user agent and
makes them available for the rest of the request lifecycle.

WHY: Audit entries for role and status changes need to say where a change
came from, and log lines emitted by gates need a request id to correlate a
denial with the request that caused it.

HOW: Stores a RequestContext in request.state and in a ContextVar so the
audit service can reach it without being handed the request object.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped data captured once per request."""

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


# ContextVar keeps concurrent requests isolated from each other.
_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise (tests, scripts)
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from a request.

    Checks X-Real-IP, then the first hop of X-Forwarded-For, then the TCP
    peer. The proxy headers can be spoofed unless a trusted proxy rewrites
    them.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> Optional[str]:
    """Return the User-Agent header, if any."""
    return request.headers.get("User-Agent")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and stores request context.

    An inbound X-Request-ID is reused so ids stay stable across a proxy
    chain; otherwise a UUID4 is generated. The id is echoed back on the
    response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.debug(
                "%s %s -> %s (%.1f ms) request_id=%s",
                context.method,
                context.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
                request_id,
            )
            return response
        finally:
            _request_context.reset(token)
