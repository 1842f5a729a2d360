"""
Device request handling: trigger, submit, status and list.

DeviceService validates input, consults the DeviceTriggerTracker and
reads or writes the CoordinateStore. Failures are raised as AppException
and translated to HTTP responses by the registered exception handlers.

Store I/O is always awaited after the tracker call has returned, so no
tracker lock is held across a database round trip.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Optional

from devices.models import (
    CoordinateRecord,
    CoordinateSubmission,
    coordinates_in_range,
)
from errors.exceptions import (
    device_id_required,
    device_not_active,
    invalid_coordinates,
    invalid_input,
    no_data,
)
from services.coordinate_store import CoordinateStore
from telemetry.service import get_telemetry_service
from tracker.device_tracker import DeviceTriggerTracker

logger = logging.getLogger(__name__)

DEFAULT_MAX_LIST_SIZE = 10000


def to_millis(duration: timedelta) -> int:
    """Duration in whole milliseconds, as reported on the wire."""
    return int(duration.total_seconds() * 1000)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _echo_number(value: float) -> Any:
    """Value for an error body; JSON has no literal for infinity."""
    return value if math.isfinite(value) else str(value)


class DeviceService:
    """
    Handlers for the device API.

    Attributes:
        tracker: Trigger window table
        store: Coordinate persistence
        max_list_size: Upper bound on records returned by list_coordinates()
    """

    def __init__(
        self,
        tracker: DeviceTriggerTracker,
        store: CoordinateStore,
        max_list_size: int = DEFAULT_MAX_LIST_SIZE
    ):
        self.tracker = tracker
        self.store = store
        self.max_list_size = max_list_size

    def trigger(self, device_id: Optional[str]) -> dict[str, Any]:
        """
        Open a trigger window for a device.

        Raises:
            AppException: DEVICE_ID_REQUIRED when no device id is given
        """
        if not device_id:
            raise device_id_required()

        state = self.tracker.activate(device_id)
        expires_in = to_millis(self.tracker.window)

        logger.info(
            f"Device {device_id} triggered and ready for data",
            extra={"extra_data": {
                "device_id": device_id,
                "expires_at": state.expires_at.isoformat(),
            }}
        )
        telemetry = get_telemetry_service()
        if telemetry:
            telemetry.log_audit_event(
                event_type="device_trigger",
                resource_type="device",
                resource_id=device_id,
                action="activate",
                details={"expires_in_ms": expires_in},
            )

        return {
            "message": "Device triggered successfully",
            "status": "active",
            "expiresIn": expires_in,
        }

    async def record_location(self, submission: CoordinateSubmission) -> dict[str, Any]:
        """
        Persist a coordinate for a device with a live trigger window.

        Raises:
            AppException: INVALID_INPUT for missing fields,
                INVALID_COORDINATES for out-of-range values,
                DEVICE_NOT_ACTIVE without a live window,
                DATABASE_ERROR if the write fails
        """
        missing = submission.missing_fields()
        if missing:
            raise invalid_input(details={"missing_fields": missing})

        if not coordinates_in_range(submission.latitude, submission.longitude):
            raise invalid_coordinates(details={
                "latitude": _echo_number(submission.latitude),
                "longitude": _echo_number(submission.longitude),
            })

        device_id = submission.device_id
        if not self.tracker.touch_and_check(device_id):
            raise device_not_active(device_id)

        record = CoordinateRecord(
            latitude=submission.latitude,
            longitude=submission.longitude,
            device_id=device_id,
            timestamp=self.tracker.now(),
        )
        saved = await self.store.save(record)

        telemetry = get_telemetry_service()
        if telemetry:
            telemetry.record_metric("coordinates.recorded", 1, tags={"device_id": device_id})

        return {
            **saved.to_response(),
            "remainingTime": to_millis(self.tracker.remaining(device_id)),
        }

    def status(self, device_id: str) -> dict[str, Any]:
        """Trigger status of a device. Unknown devices are reported inactive."""
        status = self.tracker.describe(device_id)
        if status is None:
            return {
                "triggered": False,
                "expiresIn": 0,
                "lastActive": None,
                "message": "Device not triggered",
                "code": "DEVICE_INACTIVE",
            }

        return {
            "triggered": status.active,
            "expiresIn": to_millis(status.remaining),
            "lastActive": _isoformat(status.last_active_at),
            "code": "DEVICE_ACTIVE" if status.active else "DEVICE_EXPIRED",
        }

    async def list_coordinates(self, device_id: str) -> dict[str, Any]:
        """
        Recorded coordinates of a device, most recent first.

        Listing still requires a live trigger window even though the data
        is already persisted.

        Raises:
            AppException: DEVICE_NOT_ACTIVE without a live window,
                NO_DATA when nothing was recorded,
                DATABASE_ERROR if the query fails
        """
        if not self.tracker.is_active(device_id):
            raise device_not_active(device_id)

        records = await self.store.find_by_device(device_id, limit=self.max_list_size)
        if not records:
            raise no_data(device_id)

        return {
            "deviceId": device_id,
            "count": len(records),
            "coordinates": [record.to_response() for record in records],
            "remainingTime": to_millis(self.tracker.remaining(device_id)),
        }
