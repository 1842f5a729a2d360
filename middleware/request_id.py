"""
Request ID middleware for request correlation.

Each request gets an id, taken from the X-Request-ID header or freshly
generated. The id is echoed in the response, attached to error bodies,
and stamped on every log line written while the request is served.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Read by the JSON log formatter through get_request_id()
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches a correlation id to each request.

    The id is stored in ``request.state.request_id`` for error handlers
    and in ``request_id_var`` for logging, then returned in the
    X-Request-ID response header.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            # Reset so the id never leaks into the next request on this task
            request_id_var.reset(token)


def get_request_id() -> str:
    """Current request id, or an empty string outside a request."""
    return request_id_var.get()
