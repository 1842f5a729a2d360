"""
Integration test fixtures.

The full application is built by create_app() with an in-memory
coordinate store and a manually advanced clock, and driven through
FastAPI's TestClient so the lifespan (store connect, sweeper start and
stop) runs as it does under uvicorn.
"""

from typing import Dict, Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from main import create_app


@pytest.fixture
def app(test_settings, memory_store, clock) -> FastAPI:
    return create_app(test_settings, store=memory_store, clock=clock)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(test_settings) -> Dict[str, str]:
    return {"X-API-Key": test_settings.api_key}


@pytest.fixture
def trigger(client, auth_headers):
    """Trigger a device through the API."""
    def _trigger(device_id: str):
        response = client.post(
            "/api/device/trigger", json={"deviceId": device_id}, headers=auth_headers
        )
        assert response.status_code == 200
        return response.json()
    return _trigger
