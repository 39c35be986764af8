"""
Request context middleware.

WHAT: Middleware that assigns every request an ID, captures the client
address, and logs one line per request with its outcome and duration.

WHY: Ticket mutations are spread across several tables and, for uploads,
an external blob store. A request ID ties the log lines of one request
together and is echoed back to the client in X-Request-ID.

HOW: Context is stored on request.state for handlers and in a ContextVar
for code that has no request object (services, the logging filter).
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped data available to handlers, services and log records."""

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address, honouring proxy headers.

    Checks X-Real-IP, then the first entry of X-Forwarded-For, then the
    socket peer.
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


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures request context and logs each request.

    An incoming X-Request-ID (from a gateway) is reused; otherwise a UUID4
    is generated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                "%s %s -> %s (%.1f ms) from %s",
                context.method,
                context.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
                context.ip_address,
            )
            return response

        finally:
            _request_context.reset(token)
