"""
Exception classes for the device tracking backend.

This module provides the AppException class and one factory function per
failure kind, so request handlers raise e.g. ``device_not_active()``
instead of assembling codes and status values by hand.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    Carries a standardized error code, a human-readable message, the HTTP
    status to answer with, and optional details for the client.

    Example:
        raise AppException(
            error_code=ErrorCode.INVALID_COORDINATES,
            message="Invalid coordinates",
            details={"latitude": 999.0, "longitude": 20.0}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for JSON serialization."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"AppException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


def device_id_required(
    message: str = "Device ID is required",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an exception for a trigger request without a device id."""
    return AppException(
        error_code=ErrorCode.DEVICE_ID_REQUIRED,
        message=message,
        details=details
    )


def invalid_input(
    message: str = "Device ID, latitude and longitude are required",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid input exception."""
    return AppException(
        error_code=ErrorCode.INVALID_INPUT,
        message=message,
        details=details
    )


def invalid_coordinates(
    message: str = "Invalid coordinates",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid coordinates exception."""
    return AppException(
        error_code=ErrorCode.INVALID_COORDINATES,
        message=message,
        details=details
    )


def unauthorized(
    message: str = "Unauthorized: Invalid API key",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an unauthorized exception."""
    return AppException(
        error_code=ErrorCode.UNAUTHORIZED,
        message=message,
        details=details
    )


def device_not_active(
    device_id: str,
    message: str = "Device not triggered or trigger expired"
) -> AppException:
    """Create an exception for a device without a live trigger window."""
    return AppException(
        error_code=ErrorCode.DEVICE_NOT_ACTIVE,
        message=message,
        details={
            "device_id": device_id,
            "solution": "Send trigger request first",
        }
    )


def no_data(
    device_id: str,
    message: str = "No data found for this device"
) -> AppException:
    """Create an exception for a device with no recorded coordinates."""
    return AppException(
        error_code=ErrorCode.NO_DATA,
        message=message,
        details={"device_id": device_id}
    )


def database_error(
    message: str = "Database operation failed",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a coordinate store failure exception."""
    return AppException(
        error_code=ErrorCode.DATABASE_ERROR,
        message=message,
        details=details
    )


def internal_error(
    message: str = "An unexpected error occurred",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an internal error exception."""
    return AppException(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        details=details
    )
