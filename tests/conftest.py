"""
Shared pytest fixtures and configuration for all tests.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from config.settings import Settings
from devices.models import CoordinateRecord
from errors.exceptions import database_error
from services.coordinate_store import CoordinateStore

# Configure Hypothesis profiles for different environments
# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,  # Print failing examples for debugging
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,  # Reproducible results in CI
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

# Load profile from environment variable HYPOTHESIS_PROFILE, default to "default"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


START_TIME = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for the trigger tracker."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class InMemoryCoordinateStore(CoordinateStore):
    """
    Coordinate store kept in a list.

    ``fail_connects`` makes the first N connect() calls raise
    ConnectionError; ``fail_writes`` makes save() raise DATABASE_ERROR.
    """

    def __init__(self, fail_connects: int = 0):
        self.records: list[CoordinateRecord] = []
        self.fail_connects = fail_connects
        self.fail_writes = False
        self.connect_calls = 0
        self.closed = False
        self._connected = False

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_calls <= self.fail_connects:
            raise ConnectionError("store unavailable")
        self._connected = True

    async def close(self) -> None:
        self._connected = False
        self.closed = True

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def save(self, record: CoordinateRecord) -> CoordinateRecord:
        if self.fail_writes:
            raise database_error(details={"operation": "save", "error": "write refused"})
        saved = record.model_copy(update={"id": record.id or uuid.uuid4().hex})
        self.records.append(saved)
        return saved

    async def find_by_device(self, device_id: str, limit: int) -> list[CoordinateRecord]:
        matches = [r for r in self.records if r.device_id == device_id]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:limit]

    async def health_check(self) -> bool:
        return self._connected


def make_settings(**overrides) -> Settings:
    """Settings for tests, never read from .env files."""
    values = {
        "elastic_endpoint": "http://localhost:9200",
        "port": 8080,
        "api_key": "test-api-key",
        "trigger_window_seconds": 300,
        "sweep_interval_seconds": 60.0,
        "store_connect_max_attempts": 3,
        "store_connect_retry_interval_seconds": 0.01,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock() -> FakeClock:
    """A clock starting at 2024-01-15T10:30:00Z."""
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryCoordinateStore:
    """An empty in-memory coordinate store."""
    return InMemoryCoordinateStore()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a 5 minute trigger window."""
    return make_settings()


@pytest.fixture
def settings_factory():
    """Build test settings with selected fields overridden."""
    return make_settings


@pytest.fixture
def sample_coordinates() -> dict:
    """Sample coordinate submission payload."""
    return {
        "deviceId": "DEVICE-001",
        "latitude": 37.7749,
        "longitude": -122.4194,
    }


@pytest.fixture
def sample_error_response() -> dict:
    """Sample error response structure for testing."""
    return {
        "error_code": "DEVICE_NOT_ACTIVE",
        "message": "Device not triggered or trigger expired",
        "details": {"device_id": "DEVICE-001", "solution": "Send trigger request first"},
        "request_id": "req_test123"
    }

