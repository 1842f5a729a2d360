"""
Shared-secret check for the device API.

Every path under /api requires the X-API-Key header to match the
configured secret, except device status lookups, which are public.
Health endpoints live outside /api and are never checked.
"""

import hmac
import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from errors.exceptions import unauthorized
from errors.handlers import app_exception_response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
PROTECTED_PREFIX = "/api"
PUBLIC_PATH_MARKER = "/status"


def requires_api_key(path: str) -> bool:
    """Whether a request path must carry the shared secret."""
    return path.startswith(PROTECTED_PREFIX) and PUBLIC_PATH_MARKER not in path


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Middleware that rejects protected requests without the right API key.

    Rejections are answered directly with a 401 UNAUTHORIZED error body,
    since exception handlers do not run for middleware.

    Attributes:
        api_key: The expected secret
    """

    def __init__(self, app: ASGIApp, api_key: str):
        super().__init__(app)
        if not api_key:
            raise ValueError("api_key cannot be empty")
        self.api_key = api_key

    def _is_valid(self, provided: str) -> bool:
        return hmac.compare_digest(provided.encode("utf-8"), self.api_key.encode("utf-8"))

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        if request.method != "OPTIONS" and requires_api_key(request.url.path):
            provided = request.headers.get(API_KEY_HEADER, "")
            if not self._is_valid(provided):
                logger.warning(
                    "Rejected request with invalid API key",
                    extra={"extra_data": {
                        "path": request.url.path,
                        "method": request.method,
                        "key_present": bool(provided),
                    }}
                )
                return app_exception_response(request, unauthorized())

        return await call_next(request)


def setup_api_key_auth(app: FastAPI, api_key: str) -> None:
    """Install the API key middleware on the application."""
    app.add_middleware(APIKeyMiddleware, api_key=api_key)
    logger.info("API key authentication configured for /api routes")
