"""Tests for settings parsing and the application factory wiring."""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from app.core import config
from app.core.app_factory import build_weather_pipeline, create_app
from app.core.config import AppSettings, WeatherSettings, parse_origins
from app.core.rate_limit import RateLimitStage
from app.core.response_cache import ResponseCacheStage

from conftest import make_settings


def test_defaults_match_proxy_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("APP_CACHE_TTL_SECONDS", "APP_RATE_LIMIT_WINDOW_MS", "APP_RATE_LIMIT_MAX_REQUESTS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("WEATHER_TIMEOUT_SECONDS", raising=False)

    app_settings = AppSettings()
    weather_settings = WeatherSettings()

    assert app_settings.cache_ttl_seconds == 60
    assert app_settings.rate_limit_window_ms == 60_000
    assert app_settings.rate_limit_max_requests == 60
    assert app_settings.cache_max_entries is None
    assert weather_settings.timeout_seconds == 10.0
    assert weather_settings.default_units == "metric"


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_CACHE_TTL_SECONDS", "120")
    monkeypatch.setenv("APP_RATE_LIMIT_MAX_REQUESTS", "5")
    monkeypatch.setenv("WEATHER_BASE_URL", "https://weather.example/2.5")

    assert AppSettings().cache_ttl_seconds == 120
    assert AppSettings().rate_limit_max_requests == 5
    assert WeatherSettings().base_url == "https://weather.example/2.5"


def test_openweather_key_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WEATHER_API_KEY", raising=False)
    monkeypatch.setenv("OPENWEATHER_API_KEY", "legacy-key")

    assert WeatherSettings().api_key == "legacy-key"
    assert config._build_weather_settings().api_key == "legacy-key"


def test_weather_api_key_wins_over_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEATHER_API_KEY", "primary-key")
    monkeypatch.setenv("OPENWEATHER_API_KEY", "legacy-key")

    assert WeatherSettings().api_key == "primary-key"


def test_key_can_be_passed_by_field_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEATHER_API_KEY", "from-env")

    assert WeatherSettings(api_key="explicit").api_key == "explicit"


def test_unknown_default_units_fail_at_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEATHER_DEFAULT_UNITS", "kelvin")

    with pytest.raises(ValidationError):
        WeatherSettings()


def test_default_units_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEATHER_DEFAULT_UNITS", "imperial")

    assert WeatherSettings().default_units == "imperial"


def test_parse_origins() -> None:
    assert parse_origins("https://a.example, https://b.example ,") == [
        "https://a.example",
        "https://b.example",
    ]
    assert parse_origins("") == []
    assert parse_origins(None) == []


def test_pipeline_order_is_rate_limit_then_cache(weather_client) -> None:
    pipeline = build_weather_pipeline(make_settings(), weather_client)

    assert [type(stage) for stage in pipeline.stages] == [RateLimitStage, ResponseCacheStage]


def test_pipeline_without_rate_limit(weather_client) -> None:
    pipeline = build_weather_pipeline(make_settings(rate_limit_enabled=False), weather_client)

    assert [type(stage) for stage in pipeline.stages] == [ResponseCacheStage]


def test_cache_capacity_bound_is_applied(weather_client) -> None:
    pipeline = build_weather_pipeline(make_settings(cache_max_entries=2), weather_client)

    cache_stage = pipeline.stages[-1]
    assert cache_stage.cache.stats()["max_entries"] == 2


def test_cors_restricted_to_allowed_origins(weather_client) -> None:
    client = TestClient(
        create_app(
            make_settings(allowed_origins="https://dashboard.example"),
            weather_client=weather_client,
        )
    )

    allowed = client.get("/healthz", headers={"Origin": "https://dashboard.example"})
    denied = client.get("/healthz", headers={"Origin": "https://evil.example"})

    assert allowed.headers["access-control-allow-origin"] == "https://dashboard.example"
    assert "access-control-allow-origin" not in denied.headers


def test_cors_allows_any_origin_when_unset(weather_client) -> None:
    client = TestClient(create_app(make_settings(), weather_client=weather_client))

    response = client.get("/healthz", headers={"Origin": "https://anything.example"})

    assert response.headers["access-control-allow-origin"] == "*"
