"""
Middleware package.

RequestContextMiddleware tags every request with an id that shows up in
log lines and in the X-Request-ID response header.
"""

from helpdesk.middleware.request_context import (
    REQUEST_ID_HEADER,
    RequestContextMiddleware,
    get_request_context,
    get_client_ip,
    RequestContext,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "RequestContextMiddleware",
    "get_request_context",
    "get_client_ip",
    "RequestContext",
]
