"""
Health check service for the device tracking backend.

Three levels of checking:
- health: process is up; reports uptime and the store connection state
- liveness: process is running, nothing else is checked
- readiness: the coordinate store answers a ping within the timeout
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Any

from services.coordinate_store import CoordinateStore

logger = logging.getLogger(__name__)


def _timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "coordinate_store")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """
    Overall readiness of the service.

    Attributes:
        status: "healthy" or "unhealthy"
        timestamp: When the check was performed
        dependencies: Individual dependency results
    """
    status: str
    timestamp: datetime
    dependencies: list[DependencyHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": _timestamp(self.timestamp),
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Service for checking the health of the process and its store.

    Attributes:
        store: The coordinate store to check
        check_timeout: Timeout in seconds for the store ping
    """

    def __init__(self, store: CoordinateStore, check_timeout: float = 5.0):
        self.store = store
        self.check_timeout = check_timeout
        self._started = time.monotonic()

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    async def check_health(self) -> dict[str, Any]:
        """
        Basic health check: the service is accepting requests.

        Does not contact the store; dbState reflects the last known
        connection state.
        """
        return {
            "status": "healthy",
            "uptime": round(self.uptime_seconds, 3),
            "timestamp": _timestamp(datetime.now(timezone.utc)),
            "dbState": "connected" if self.store.is_connected else "disconnected",
        }

    async def check_liveness(self) -> dict[str, Any]:
        """Process is running. No dependency is checked."""
        return {
            "status": "alive",
            "timestamp": _timestamp(datetime.now(timezone.utc)),
        }

    async def check_readiness(self) -> HealthStatus:
        """Ping the coordinate store and report the aggregate status."""
        store_health = await self._check_store()
        return HealthStatus(
            status="healthy" if store_health.healthy else "unhealthy",
            timestamp=datetime.now(timezone.utc),
            dependencies=[store_health],
        )

    async def _check_store(self) -> DependencyHealth:
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(
                self.store.health_check(),
                timeout=self.check_timeout
            )
            elapsed_ms = (time.perf_counter() - start_time) * 1000

            if result:
                logger.debug(f"Coordinate store health check passed in {elapsed_ms:.2f}ms")
                return DependencyHealth(
                    name="coordinate_store",
                    healthy=True,
                    response_time_ms=elapsed_ms
                )

            logger.warning(f"Coordinate store ping returned False after {elapsed_ms:.2f}ms")
            return DependencyHealth(
                name="coordinate_store",
                healthy=False,
                response_time_ms=elapsed_ms,
                error="Coordinate store ping returned False"
            )

        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Coordinate store health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return DependencyHealth(
                name="coordinate_store",
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )

        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Coordinate store health check failed: {str(e)}"
            logger.error(error_msg)
            return DependencyHealth(
                name="coordinate_store",
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )
