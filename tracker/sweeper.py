"""
Periodic removal of expired trigger windows.

The sweeper runs as an asyncio task for the life of the application and
calls DeviceTriggerTracker.sweep() on a fixed interval so the table does
not grow without bound from one-shot devices.
"""

import asyncio
import logging
from typing import Optional

from telemetry.service import get_telemetry_service
from tracker.device_tracker import DeviceTriggerTracker

logger = logging.getLogger(__name__)


class TriggerSweeper:
    """
    Background task that reclaims expired tracker entries.

    Attributes:
        tracker: The tracker to sweep
        interval: Seconds between sweeps
    """

    def __init__(self, tracker: DeviceTriggerTracker, interval: float = 60.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.tracker = tracker
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run a single sweep and report what was removed."""
        removed = self.tracker.sweep()
        if removed > 0:
            logger.info(
                f"Cleaned up {removed} expired triggers",
                extra={"extra_data": {
                    "removed": removed,
                    "remaining_entries": len(self.tracker),
                }}
            )
        telemetry = get_telemetry_service()
        if telemetry:
            telemetry.record_metric("tracker.sweep.removed", removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Trigger sweep failed: {e}", exc_info=True)

    def start(self) -> None:
        """Start sweeping on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="trigger-sweeper")
        logger.info(f"Trigger sweeper started (interval {self.interval}s)")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Trigger sweeper stopped")
