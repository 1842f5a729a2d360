"""
In-memory trigger window tracking for devices.

A device may submit coordinates only while it holds a live trigger window.
The DeviceTriggerTracker keeps one entry per device id and answers whether
that window is still open. Liveness is always recomputed from the stored
expiry against the current time, so correctness never depends on the
periodic sweep; sweep() only reclaims memory held by expired entries.

State is process-local and lost on restart.

Per-device lifecycle:
- Unknown -> Active: activate()
- Active -> Expired: now >= expires_at (observed lazily, no event)
- Expired -> Active: activate() overwrites the entry
- Active -> Active: activate() resets the window; touch_and_check()
  refreshes last_active_at only
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DeviceTriggerState:
    """
    Trigger window held by a single device.

    Attributes:
        device_id: The device identifier (table key)
        triggered: Whether the device has been triggered
        expires_at: Instant the window closes
        last_active_at: Last trigger or accepted submission
    """
    device_id: str
    triggered: bool
    expires_at: datetime
    last_active_at: datetime

    def is_active(self, now: datetime) -> bool:
        """An entry is active iff triggered and not yet expired."""
        return self.triggered and self.expires_at > now

    def remaining(self, now: datetime) -> timedelta:
        """Time left in the window, zero once inactive."""
        if not self.is_active(now):
            return timedelta(0)
        return self.expires_at - now


@dataclass(frozen=True)
class DeviceStatus:
    """Read-only projection of a device's trigger state."""
    active: bool
    remaining: timedelta
    last_active_at: Optional[datetime]


class DeviceTriggerTracker:
    """
    Thread-safe table of device trigger windows.

    All access to the table happens under a single lock, held only for the
    in-memory work of each call. Callers must not perform store I/O while
    holding a reference obtained under the lock; every method returns
    immutable snapshots for that reason.

    Example:
        tracker = DeviceTriggerTracker(window=timedelta(minutes=5))
        tracker.activate("d1")
        if tracker.touch_and_check("d1"):
            ...  # accept the submission

    Attributes:
        window: Length of the window opened by activate()
    """

    def __init__(self, window: timedelta, clock: Optional[Clock] = None):
        """
        Initialize the tracker.

        Args:
            window: Length of each trigger window; must be positive
            clock: Returns the current time. Defaults to UTC now.
        """
        if window <= timedelta(0):
            raise ValueError("window must be positive")
        self.window = window
        self._clock = clock or utc_now
        self._states: dict[str, DeviceTriggerState] = {}
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Current time according to the tracker's clock."""
        return self._clock()

    def activate(self, device_id: str) -> DeviceTriggerState:
        """
        Open (or reopen) the trigger window for a device.

        Re-activating an active device restarts the window from now; the
        previous expiry is discarded, not extended.

        Raises:
            ValueError: If device_id is empty
        """
        if not device_id:
            raise ValueError("device_id cannot be empty")

        now = self._clock()
        state = DeviceTriggerState(
            device_id=device_id,
            triggered=True,
            expires_at=now + self.window,
            last_active_at=now,
        )
        with self._lock:
            self._states[device_id] = state
        return state

    def is_active(self, device_id: str) -> bool:
        """Whether the device currently holds a live window. Never mutates."""
        now = self._clock()
        state = self.get(device_id)
        return state is not None and state.is_active(now)

    def touch_and_check(self, device_id: str) -> bool:
        """
        Check liveness and, when live, record activity.

        Used by the submission path so last_active_at reflects real traffic
        and not just trigger calls.
        """
        now = self._clock()
        with self._lock:
            state = self._states.get(device_id)
            if state is None or not state.is_active(now):
                return False
            self._states[device_id] = replace(state, last_active_at=now)
        return True

    def get(self, device_id: str) -> Optional[DeviceTriggerState]:
        """Snapshot of the stored entry, expired or not."""
        with self._lock:
            return self._states.get(device_id)

    def describe(self, device_id: str) -> Optional[DeviceStatus]:
        """
        Status projection for a device.

        Returns:
            None when the device has no entry; otherwise its activity,
            remaining window (zero when inactive) and last activity time.
        """
        now = self._clock()
        state = self.get(device_id)
        if state is None:
            return None
        return DeviceStatus(
            active=state.is_active(now),
            remaining=state.remaining(now),
            last_active_at=state.last_active_at,
        )

    def remaining(self, device_id: str) -> timedelta:
        """Remaining window time; zero for unknown or inactive devices."""
        now = self._clock()
        state = self.get(device_id)
        if state is None:
            return timedelta(0)
        return state.remaining(now)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Remove every entry whose window closed before ``now``.

        Entries expiring exactly at ``now`` are kept.

        Returns:
            Number of entries removed
        """
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [
                device_id
                for device_id, state in self._states.items()
                if state.expires_at < now
            ]
            for device_id in expired:
                del self._states[device_id]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._states

    def __repr__(self) -> str:
        return f"DeviceTriggerTracker(window={self.window!r}, entries={len(self)})"
