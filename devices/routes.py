"""
HTTP routes for the device API.

- POST /api/device/trigger: open a trigger window (API key)
- POST /api/device/data: submit a coordinate (API key, live window)
- GET /api/device/status/{device_id}: trigger status (public)
- GET /api/device/data/{device_id}: list coordinates (API key, live window)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from devices.models import CoordinateSubmission, TriggerRequest
from devices.service import DeviceService

router = APIRouter(prefix="/api/device", tags=["devices"])


def get_device_service(request: Request) -> DeviceService:
    """The DeviceService owned by the running application."""
    return request.app.state.device_service


@router.post("/trigger")
async def trigger_device(
    body: Optional[TriggerRequest] = None,
    service: DeviceService = Depends(get_device_service),
):
    """Activate a device for data collection. A missing body counts as no device id."""
    return service.trigger(body.device_id if body else None)


@router.post("/data", status_code=201)
async def submit_coordinates(
    body: CoordinateSubmission,
    service: DeviceService = Depends(get_device_service),
):
    """Receive location data from a triggered device."""
    return await service.record_location(body)


@router.get("/status/{device_id}")
async def device_status(
    device_id: str,
    service: DeviceService = Depends(get_device_service),
):
    """Check device trigger status."""
    return service.status(device_id)


@router.get("/data/{device_id}")
async def list_device_coordinates(
    device_id: str,
    service: DeviceService = Depends(get_device_service),
):
    """Get all coordinates recorded for a device."""
    return await service.list_coordinates(device_id)
