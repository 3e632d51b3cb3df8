"""
Shared pytest configuration and fixtures for EMS API client tests.

This module provides common fixtures used across all test modules including:
- Configuration snapshots
- A simulated EMS API (token endpoint and resources) behind httpx.MockTransport
- A controllable clock for token expiry
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from ems_api.core import EmsApiConfig
from ems_api.shared import constants

# ========== Configuration Fixtures ==========


@pytest.fixture
def ems_config() -> EmsApiConfig:
    """Provide a username/password configuration."""
    return EmsApiConfig(
        endpoint="https://ems.example.com/api",
        user_name="test_user",
        password="test_password",
    )


@pytest.fixture
def trusted_config() -> EmsApiConfig:
    """Provide a trusted token configuration."""
    return EmsApiConfig(
        endpoint="https://ems.example.com/api",
        trusted_token="trusted_abcdef",
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove EmsApi* variables so the host environment never leaks into tests."""
    for name in (
        constants.ENV_ENDPOINT,
        constants.ENV_USERNAME,
        constants.ENV_PASSWORD,
        constants.ENV_PROXY_SERVER,
        constants.ENV_PROXY_PORT,
        constants.ENV_PROXY_USERNAME,
        constants.ENV_PROXY_PASSWORD,
    ):
        monkeypatch.delenv(name, raising=False)


# ========== Clock ==========


class FakeClock:
    """Clock returning a fixed instant until advanced."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ========== Simulated EMS API ==========


class MockEmsApi:
    """Simulated EMS API with a token endpoint and echoing resources."""

    def __init__(self):
        self.token_status = 200
        self.token_body: Any = {"access_token": "T", "expires_in": 3600}
        self.token_delay = 0.0
        self.api_status = 200
        self.api_body: Any = None
        self.requests: List[httpx.Request] = []
        self.token_requests: List[httpx.Request] = []
        self.routes: List[Any] = []

    @property
    def api_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if not r.url.path.endswith(constants.TOKEN_PATH)]

    def token_form(self, index: int = -1) -> dict:
        """Decode the form body of a token request."""
        body = parse_qs(self.token_requests[index].content.decode())
        return {key: values[0] for key, values in body.items()}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path.endswith(constants.TOKEN_PATH):
            self.token_requests.append(request)
            if self.token_delay:
                await asyncio.sleep(self.token_delay)
            if isinstance(self.token_body, (str, bytes)):
                return httpx.Response(self.token_status, content=self.token_body, request=request)
            return httpx.Response(self.token_status, json=self.token_body, request=request)

        body = self.api_body
        if body is None:
            body = {
                "path": request.url.path,
                "authorization": request.headers.get("Authorization"),
            }
        return httpx.Response(self.api_status, json=body, request=request)

    def factory(self, config: EmsApiConfig, route) -> httpx.AsyncBaseTransport:
        """Transport factory recording the proxy route of every build."""
        self.routes.append(route)
        return httpx.MockTransport(self.handler)


@pytest.fixture
def mock_api() -> MockEmsApi:
    """Provide a simulated EMS API."""
    return MockEmsApi()


# ========== Pytest Configuration ==========


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
