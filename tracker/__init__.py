"""
Device trigger tracking.

Keeps the in-memory table of trigger windows that authorizes devices to
submit and list coordinates, plus the background sweeper that reclaims
expired entries.
"""

from tracker.device_tracker import (
    DeviceStatus,
    DeviceTriggerState,
    DeviceTriggerTracker,
    utc_now,
)
from tracker.sweeper import TriggerSweeper

__all__ = [
    "DeviceStatus",
    "DeviceTriggerState",
    "DeviceTriggerTracker",
    "TriggerSweeper",
    "utc_now",
]
