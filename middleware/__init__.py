"""
Middleware components for the device tracking backend.

FastAPI middleware for request correlation and shared-secret access
control.
"""

from middleware.request_id import RequestIDMiddleware, request_id_var, REQUEST_ID_HEADER
from middleware.api_key import (
    APIKeyMiddleware,
    API_KEY_HEADER,
    requires_api_key,
    setup_api_key_auth,
)

__all__ = [
    "RequestIDMiddleware",
    "request_id_var",
    "REQUEST_ID_HEADER",
    "APIKeyMiddleware",
    "API_KEY_HEADER",
    "requires_api_key",
    "setup_api_key_auth",
]
