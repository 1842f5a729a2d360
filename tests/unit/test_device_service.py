"""
Unit tests for the device request handlers.

DeviceService is exercised directly against an in-memory store and a
manually advanced clock, so every error path can be reached without HTTP.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from devices.models import CoordinateSubmission
from devices.service import DeviceService, to_millis
from errors.codes import ErrorCode
from errors.exceptions import AppException
from tracker.device_tracker import DeviceTriggerTracker

WINDOW = timedelta(minutes=5)


@pytest.fixture
def tracker(clock) -> DeviceTriggerTracker:
    return DeviceTriggerTracker(window=WINDOW, clock=clock)


@pytest.fixture
def service(tracker, memory_store) -> DeviceService:
    return DeviceService(tracker=tracker, store=memory_store, max_list_size=100)


def submission(device_id="d1", latitude=10.5, longitude=-20.25) -> CoordinateSubmission:
    return CoordinateSubmission(deviceId=device_id, latitude=latitude, longitude=longitude)


class TestToMillis:
    """Tests for the duration conversion."""

    def test_whole_seconds(self):
        assert to_millis(timedelta(seconds=30000)) == 30_000_000

    def test_truncates_sub_millisecond(self):
        assert to_millis(timedelta(microseconds=1999)) == 1

    def test_zero(self):
        assert to_millis(timedelta(0)) == 0


class TestTrigger:
    """Tests for DeviceService.trigger."""

    def test_trigger_response(self, service, tracker):
        result = service.trigger("d1")

        assert result == {
            "message": "Device triggered successfully",
            "status": "active",
            "expiresIn": 300_000,
        }
        assert tracker.is_active("d1")

    @pytest.mark.parametrize("device_id", [None, ""])
    def test_trigger_without_device_id(self, service, tracker, device_id):
        with pytest.raises(AppException) as exc_info:
            service.trigger(device_id)

        assert exc_info.value.error_code == ErrorCode.DEVICE_ID_REQUIRED
        assert exc_info.value.status_code == 400
        assert len(tracker) == 0

    def test_trigger_writes_audit_event(self, service):
        telemetry = MagicMock()

        with patch("devices.service.get_telemetry_service", return_value=telemetry):
            service.trigger("d1")

        telemetry.log_audit_event.assert_called_once()
        kwargs = telemetry.log_audit_event.call_args.kwargs
        assert kwargs["event_type"] == "device_trigger"
        assert kwargs["resource_id"] == "d1"
        assert kwargs["action"] == "activate"


class TestRecordLocation:
    """Tests for DeviceService.record_location."""

    @pytest.mark.asyncio
    async def test_records_for_active_device(self, service, tracker, memory_store, clock):
        service.trigger("d1")
        clock.advance(minutes=1)

        result = await service.record_location(submission())

        assert result["deviceId"] == "d1"
        assert result["latitude"] == 10.5
        assert result["longitude"] == -20.25
        assert result["id"]
        assert result["timestamp"].startswith("2024-01-15T10:31:00")
        assert result["remainingTime"] == 240_000
        assert len(memory_store.records) == 1
        assert tracker.get("d1").last_active_at == clock.current

    @pytest.mark.asyncio
    async def test_boundary_coordinates_accepted(self, service, memory_store):
        service.trigger("d1")

        await service.record_location(submission(latitude=90.0, longitude=-180.0))
        await service.record_location(submission(latitude=-90.0, longitude=180.0))

        assert len(memory_store.records) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, missing",
        [
            ({"latitude": 1.0, "longitude": 2.0}, ["deviceId"]),
            ({"deviceId": "d1", "longitude": 2.0}, ["latitude"]),
            ({"deviceId": "d1", "latitude": 1.0}, ["longitude"]),
            ({}, ["deviceId", "latitude", "longitude"]),
        ],
    )
    async def test_missing_fields(self, service, memory_store, payload, missing):
        service.trigger("d1")

        with pytest.raises(AppException) as exc_info:
            await service.record_location(CoordinateSubmission(**payload))

        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT
        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"missing_fields": missing}
        assert memory_store.records == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "latitude, longitude",
        [(999.0, 20.0), (-90.01, 0.0), (0.0, 180.5), (0.0, -181.0)],
    )
    async def test_out_of_range_coordinates(self, service, memory_store, latitude, longitude):
        service.trigger("d1")

        with pytest.raises(AppException) as exc_info:
            await service.record_location(submission(latitude=latitude, longitude=longitude))

        assert exc_info.value.error_code == ErrorCode.INVALID_COORDINATES
        assert exc_info.value.status_code == 400
        assert memory_store.records == []

    @pytest.mark.asyncio
    async def test_infinite_latitude_reported_as_string(self, service, memory_store):
        service.trigger("d1")

        with pytest.raises(AppException) as exc_info:
            await service.record_location(submission(latitude=float("inf")))

        assert exc_info.value.error_code == ErrorCode.INVALID_COORDINATES
        assert exc_info.value.details == {"latitude": "inf", "longitude": -20.25}
        assert memory_store.records == []

    @pytest.mark.asyncio
    async def test_range_checked_before_trigger_state(self, service):
        # Never triggered, but the coordinates are reported first
        with pytest.raises(AppException) as exc_info:
            await service.record_location(submission(device_id="never", latitude=999.0))

        assert exc_info.value.error_code == ErrorCode.INVALID_COORDINATES

    @pytest.mark.asyncio
    async def test_untriggered_device_rejected(self, service, memory_store):
        with pytest.raises(AppException) as exc_info:
            await service.record_location(submission(device_id="never"))

        assert exc_info.value.error_code == ErrorCode.DEVICE_NOT_ACTIVE
        assert exc_info.value.status_code == 403
        assert exc_info.value.details["solution"] == "Send trigger request first"
        assert memory_store.records == []

    @pytest.mark.asyncio
    async def test_expired_device_rejected(self, service, memory_store, clock):
        service.trigger("d1")
        clock.advance(minutes=5)

        with pytest.raises(AppException) as exc_info:
            await service.record_location(submission())

        assert exc_info.value.error_code == ErrorCode.DEVICE_NOT_ACTIVE
        assert memory_store.records == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, service, memory_store):
        service.trigger("d1")
        memory_store.fail_writes = True

        with pytest.raises(AppException) as exc_info:
            await service.record_location(submission())

        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR
        assert exc_info.value.status_code == 500


class TestStatus:
    """Tests for DeviceService.status."""

    def test_unknown_device(self, service):
        assert service.status("unknown") == {
            "triggered": False,
            "expiresIn": 0,
            "lastActive": None,
            "message": "Device not triggered",
            "code": "DEVICE_INACTIVE",
        }

    def test_active_device(self, service, clock):
        service.trigger("d1")
        clock.advance(seconds=30)

        assert service.status("d1") == {
            "triggered": True,
            "expiresIn": 270_000,
            "lastActive": "2024-01-15T10:30:00+00:00",
            "code": "DEVICE_ACTIVE",
        }

    def test_expired_device(self, service, clock):
        service.trigger("d1")
        clock.advance(minutes=6)

        result = service.status("d1")

        assert result["triggered"] is False
        assert result["expiresIn"] == 0
        assert result["lastActive"] == "2024-01-15T10:30:00+00:00"
        assert result["code"] == "DEVICE_EXPIRED"

    def test_status_does_not_touch_device(self, service, tracker, clock):
        service.trigger("d1")
        before = tracker.get("d1")
        clock.advance(minutes=1)

        service.status("d1")

        assert tracker.get("d1") == before


class TestListCoordinates:
    """Tests for DeviceService.list_coordinates."""

    @pytest.mark.asyncio
    async def test_lists_most_recent_first(self, service, clock):
        service.trigger("d1")
        await service.record_location(submission(latitude=1.0))
        clock.advance(seconds=10)
        await service.record_location(submission(latitude=2.0))
        clock.advance(seconds=10)
        await service.record_location(submission(latitude=3.0))

        result = await service.list_coordinates("d1")

        assert result["deviceId"] == "d1"
        assert result["count"] == 3
        assert [c["latitude"] for c in result["coordinates"]] == [3.0, 2.0, 1.0]
        assert result["remainingTime"] == 280_000

    @pytest.mark.asyncio
    async def test_only_device_records_listed(self, service):
        service.trigger("d1")
        service.trigger("d2")
        await service.record_location(submission(device_id="d1"))
        await service.record_location(submission(device_id="d2"))

        result = await service.list_coordinates("d1")

        assert result["count"] == 1
        assert result["coordinates"][0]["deviceId"] == "d1"

    @pytest.mark.asyncio
    async def test_list_is_capped(self, tracker, memory_store):
        service = DeviceService(tracker=tracker, store=memory_store, max_list_size=2)
        service.trigger("d1")
        for _ in range(3):
            await service.record_location(submission())

        result = await service.list_coordinates("d1")

        assert result["count"] == 2

    @pytest.mark.asyncio
    async def test_no_data(self, service):
        service.trigger("d1")

        with pytest.raises(AppException) as exc_info:
            await service.list_coordinates("d1")

        assert exc_info.value.error_code == ErrorCode.NO_DATA
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "No data found for this device"

    @pytest.mark.asyncio
    async def test_listing_requires_live_window(self, service, clock):
        service.trigger("d1")
        await service.record_location(submission())
        clock.advance(minutes=5)

        with pytest.raises(AppException) as exc_info:
            await service.list_coordinates("d1")

        assert exc_info.value.error_code == ErrorCode.DEVICE_NOT_ACTIVE

    @pytest.mark.asyncio
    async def test_unknown_device(self, service):
        with pytest.raises(AppException) as exc_info:
            await service.list_coordinates("unknown")

        assert exc_info.value.error_code == ErrorCode.DEVICE_NOT_ACTIVE
