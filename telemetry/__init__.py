"""
Telemetry module for structured logging.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for logging setup, audit events and metrics
"""

from telemetry.service import (
    JSONFormatter,
    TelemetryService,
    configure_logging,
    get_telemetry_service,
    initialize_telemetry,
)

__all__ = [
    "JSONFormatter",
    "TelemetryService",
    "configure_logging",
    "get_telemetry_service",
    "initialize_telemetry",
]
