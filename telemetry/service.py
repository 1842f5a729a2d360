"""
Structured logging for the device tracking backend.

Every line written to stdout is a single JSON object carrying the id of
the request being served, so the trigger, submission and store log lines
of one device call can be joined after the fact. Trigger activations are
written as audit events and store/sweep counters as metric lines; both
are ordinary log records with structured ``extra_data``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from middleware.request_id import get_request_id

# Client libraries that log every HTTP round trip at INFO
NOISY_LOGGERS = ("elastic_transport.transport", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """
    Formats a log record as one JSON object per line.

    Fields: timestamp (UTC, ``Z`` suffix), level, message, logger,
    request_id, and the source location. Anything passed as
    ``extra={"extra_data": {...}}`` is merged in at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": get_request_id(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.funcName and record.funcName != "<module>":
            entry["function"] = record.funcName

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry.update(extra_data)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(level_name: str = "INFO") -> int:
    """
    Route all logging to stdout through JSONFormatter.

    Existing root handlers are replaced so uvicorn's default formatting
    does not produce a second copy of each line.

    Returns:
        The numeric level applied to the root logger
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return level


class TelemetryService:
    """
    Owns logging setup and writes audit and metric records.

    Attributes:
        settings: Application settings; only ``log_level`` is read
    """

    def __init__(self, settings: Optional[Any] = None):
        self.settings = settings
        level_name = getattr(settings, "log_level", "INFO") if settings else "INFO"
        configure_logging(level_name)
        self._logger = logging.getLogger("telemetry")
        self._logger.info(
            "Structured logging configured",
            extra={"extra_data": {"log_level": level_name}}
        )

    def log_audit_event(
        self,
        event_type: str,
        resource_type: str,
        resource_id: Optional[str],
        action: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Record a state change, e.g. a device trigger.

        Args:
            event_type: Kind of event ("device_trigger")
            resource_type: Kind of resource changed ("device")
            resource_id: Identifier of the resource
            action: What happened ("activate")
            details: Extra fields for the audit line
        """
        payload: Dict[str, Any] = {
            "audit_event": True,
            "event_type": event_type,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "action": action,
        }
        if details:
            payload["details"] = details

        self._logger.info(
            f"Audit: {event_type} {action} {resource_type} {resource_id}",
            extra={"extra_data": payload}
        )

    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """Write a counter or gauge sample as a DEBUG line."""
        payload: Dict[str, Any] = {"metric_name": name, "metric_value": value}
        if tags:
            payload["tags"] = tags
        self._logger.debug(f"Metric: {name}={value}", extra={"extra_data": payload})


_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """The process-wide telemetry service, or None before initialize_telemetry()."""
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """Configure logging for the process and install the telemetry service."""
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service
