"""
Exception handlers for the device tracking backend.

Every error leaves the service in the same JSON shape:
``{error_code, message, details?, request_id}``. Known failures are
AppException instances; malformed request bodies are reported as
INVALID_INPUT; anything else is logged with its stack trace and answered
with a generic INTERNAL_ERROR.
"""

import logging
import traceback
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.codes import ErrorCode, get_default_status_code
from errors.exceptions import AppException, internal_error

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Structured error response model shared by all error paths."""
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID set by RequestIDMiddleware, or a fresh UUID when the
    middleware did not run.
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


def error_json_response(
    request: Request,
    error_code: ErrorCode,
    message: str,
    details: Optional[dict[str, Any]] = None,
    status_code: Optional[int] = None,
) -> JSONResponse:
    """
    Build the JSON error response for a request.

    Middleware answers before routing and so cannot rely on exception
    handlers; it goes through app_exception_response() instead.
    """
    error_response = ErrorResponse(
        error_code=error_code.value,
        message=message,
        details=details,
        request_id=get_request_id(request),
    )
    return JSONResponse(
        status_code=status_code or get_default_status_code(error_code),
        content=jsonable_encoder(error_response.model_dump(exclude_none=True)),
    )


def app_exception_response(request: Request, exc: AppException) -> JSONResponse:
    """Error response carrying an AppException's code, message, details and status."""
    return error_json_response(
        request,
        exc.error_code,
        exc.message,
        details=exc.details,
        status_code=exc.status_code,
    )


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Convert a known application exception to a structured response.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    request_id = get_request_id(request)

    logger.warning(
        "Application error occurred",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    return app_exception_response(request, exc)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Report an unparseable request body as INVALID_INPUT (400).

    FastAPI would otherwise answer 422; clients of this API only expect
    the 400 family for bad input.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", []) if loc != "body"),
            "reason": error.get("msg", ""),
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        extra={"extra_data": {
            "error_code": ErrorCode.INVALID_INPUT.value,
            "path": request.url.path,
            "method": request.method,
            "validation_errors": errors,
        }}
    )

    return error_json_response(
        request,
        ErrorCode.INVALID_INPUT,
        "Invalid request payload",
        details={"validation_errors": errors},
    )


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions without exposing internal details.

    The full stack trace is logged; the client gets a generic message.
    """
    request_id = get_request_id(request)

    logger.error(
        "Unexpected error occurred",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "stack_trace": traceback.format_exc(),
        }},
        exc_info=True,
    )

    return app_exception_response(request, internal_error("Internal server error"))


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")
