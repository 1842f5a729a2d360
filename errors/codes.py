"""
Error code catalog for the device tracking backend.

Every failure a client can observe carries one of these codes, so callers
can branch on a stable machine-readable value instead of parsing messages.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    - Input errors (400): missing fields, out-of-range coordinates
    - Access errors (401/403): bad shared secret, no live trigger window
    - Lookup errors (404): query succeeded but nothing was recorded
    - Store errors (5xx): persistence or query failures
    - Internal errors (500): anything unexpected
    """

    # Input errors (4xx)
    DEVICE_ID_REQUIRED = "DEVICE_ID_REQUIRED"
    """Trigger request without a device id (HTTP 400)"""

    INVALID_INPUT = "INVALID_INPUT"
    """Required field missing or malformed (HTTP 400)"""

    INVALID_COORDINATES = "INVALID_COORDINATES"
    """Latitude or longitude out of range (HTTP 400)"""

    # Access errors (4xx)
    UNAUTHORIZED = "UNAUTHORIZED"
    """Missing or wrong API key (HTTP 401)"""

    DEVICE_NOT_ACTIVE = "DEVICE_NOT_ACTIVE"
    """Device never triggered or trigger window lapsed (HTTP 403)"""

    # Lookup errors (4xx)
    NO_DATA = "NO_DATA"
    """No coordinates recorded for the device (HTTP 404)"""

    # Store errors (5xx)
    DATABASE_ERROR = "DATABASE_ERROR"
    """Coordinate store operation failed (HTTP 500)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.DEVICE_ID_REQUIRED: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.INVALID_COORDINATES: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.DEVICE_NOT_ACTIVE: 403,
    ErrorCode.NO_DATA: 404,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
