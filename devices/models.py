"""
Pydantic models for device requests and coordinate records.

Wire format uses camelCase (``deviceId``) to match existing device
firmware and controllers; Python attributes are snake_case.

Request bodies accept missing fields so the handlers can report them with
the right error code (DEVICE_ID_REQUIRED or INVALID_INPUT) instead of a
generic validation failure. Coordinate range checks also live in the
handlers, since an out-of-range value must be reported as
INVALID_COORDINATES; that includes infinities, which JSON numbers such as
``1e400`` parse to. NaN has no position on the globe and is refused as
malformed input.

Numeric device ids are accepted and kept as strings.
"""

import math
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tracker.device_tracker import utc_now

MAX_LATITUDE = 90.0
MAX_LONGITUDE = 180.0


class TriggerRequest(BaseModel):
    """Body of POST /api/device/trigger."""
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    device_id: Optional[str] = Field(default=None, alias="deviceId")


class CoordinateSubmission(BaseModel):
    """Body of POST /api/device/data."""
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    device_id: Optional[str] = Field(default=None, alias="deviceId")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("latitude", "longitude")
    @classmethod
    def reject_nan(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and math.isnan(v):
            raise ValueError("must be a number, not NaN")
        return v

    def missing_fields(self) -> list[str]:
        """Names (wire format) of required fields that were not provided."""
        missing = []
        if not self.device_id:
            missing.append("deviceId")
        if self.latitude is None:
            missing.append("latitude")
        if self.longitude is None:
            missing.append("longitude")
        return missing


def coordinates_in_range(latitude: float, longitude: float) -> bool:
    """Whether a latitude/longitude pair lies on the globe."""
    return abs(latitude) <= MAX_LATITUDE and abs(longitude) <= MAX_LONGITUDE


class CoordinateRecord(BaseModel):
    """
    A persisted location sample.

    Records are immutable: created once by the submission handler and
    never updated or deleted by this service.

    Attributes:
        id: Store-assigned document id (None until persisted)
        latitude: Degrees in [-90, 90]
        longitude: Degrees in [-180, 180]
        timestamp: When the sample was recorded (UTC)
        device_id: Device that submitted the sample
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    latitude: float = Field(ge=-MAX_LATITUDE, le=MAX_LATITUDE)
    longitude: float = Field(ge=-MAX_LONGITUDE, le=MAX_LONGITUDE)
    timestamp: datetime = Field(default_factory=utc_now)
    device_id: Optional[str] = Field(default=None, alias="deviceId")

    def to_document(self) -> dict[str, Any]:
        """Store representation, without the id."""
        return {
            "device_id": self.device_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location": {"lat": self.latitude, "lon": self.longitude},
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_document(cls, doc_id: str, source: dict[str, Any]) -> "CoordinateRecord":
        """Rebuild a record from a stored document."""
        return cls(
            id=doc_id,
            latitude=source["latitude"],
            longitude=source["longitude"],
            timestamp=source["timestamp"],
            device_id=source.get("device_id"),
        )

    def to_response(self) -> dict[str, Any]:
        """JSON-ready wire representation."""
        return self.model_dump(mode="json", by_alias=True)
