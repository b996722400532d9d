"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app import so the global settings
object never reads a developer's .env file or real credentials.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["WEATHER_API_KEY"] = "test-weather-key"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import json
from typing import Any, Callable
from unittest.mock import Mock

import httpx
import pytest

from app.adapters.weather.openweather_client import OpenWeatherClient
from app.core.config import AppSettings, LogSettings, Settings, WeatherSettings

TEST_API_KEY = "test-weather-key"
TEST_BASE_URL = "https://weather.test/data/2.5"


def singapore_payload(**overrides: Any) -> dict[str, Any]:
    """A trimmed OpenWeather current-weather payload for Singapore."""
    payload: dict[str, Any] = {
        "coord": {"lon": 103.8501, "lat": 1.2897},
        "weather": [
            {"id": 803, "main": "Clouds", "description": "broken clouds", "icon": "04d"}
        ],
        "main": {"temp": 30.2, "feels_like": 36.1, "pressure": 1009, "humidity": 70},
        "dt": 1718000000,
        "sys": {"country": "SG", "sunrise": 1717975000, "sunset": 1718018800},
        "timezone": 28800,
        "name": "Singapore",
        "cod": 200,
    }
    payload.update(overrides)
    return payload


class FakeProvider:
    """Records outbound calls and answers them with a configurable handler."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: (
            httpx.Response(200, json=singapore_payload())
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def respond_with(self, status_code: int, body: Any) -> None:
        content = body if isinstance(body, str) else json.dumps(body)
        self.handler = lambda request: httpx.Response(status_code, text=content)

    def fail_with(self, exc: Exception) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc

        self.handler = _raise


def make_settings(*, api_key: str | None = TEST_API_KEY, **app_overrides: Any) -> Settings:
    """Build explicit settings for a test app, independent of the environment."""
    app_values: dict[str, Any] = {
        "cache_ttl_seconds": 60,
        "rate_limit_enabled": True,
        "rate_limit_max_requests": 60,
        "rate_limit_window_ms": 60_000,
    }
    app_values.update(app_overrides)
    return Settings(
        weather=WeatherSettings(api_key=api_key, base_url=TEST_BASE_URL),
        app=AppSettings(**app_values),
        log=LogSettings(level="WARNING"),
    )


@pytest.fixture
def clock() -> Mock:
    """Deterministic time source; advance with ``clock.return_value += n``."""
    return Mock(return_value=1_000.0)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def weather_client(provider: FakeProvider) -> OpenWeatherClient:
    return OpenWeatherClient(
        api_key=TEST_API_KEY,
        base_url=TEST_BASE_URL,
        timeout_seconds=10.0,
        transport=httpx.MockTransport(provider),
    )
