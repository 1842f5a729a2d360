"""
Error handling module for the device tracking backend.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException class and factory functions per failure kind
- Error response model and FastAPI exception handlers
"""

from errors.codes import ErrorCode
from errors.exceptions import AppException
from errors.handlers import (
    ErrorResponse,
    app_exception_response,
    error_json_response,
    handle_app_exception,
    handle_request_validation_error,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "ErrorResponse",
    "app_exception_response",
    "error_json_response",
    "handle_app_exception",
    "handle_request_validation_error",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
