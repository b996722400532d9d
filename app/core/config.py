"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.schemas.weather import UnitSystem


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_weather_settings() -> "WeatherSettings":
    """Build upstream weather provider settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return WeatherSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    See _build_weather_settings() for rationale about the type ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class WeatherSettings(BaseSettings):
    """Upstream weather provider configuration.

    The API key is optional at startup: a missing key is reported per request
    as a configuration error instead of preventing boot. It is read from
    WEATHER_API_KEY, or from OPENWEATHER_API_KEY when that is unset.
    """

    api_key: str | None = Field(
        None,
        description="Provider credential, attached to outbound calls only",
        validation_alias=AliasChoices("WEATHER_API_KEY", "OPENWEATHER_API_KEY"),
    )
    base_url: str = Field(
        "https://api.openweathermap.org/data/2.5",
        description="Provider base URL (the 'weather' path is appended)",
    )
    timeout_seconds: float = Field(
        10.0,
        description="Outbound request timeout in seconds",
        gt=0,
    )
    default_units: UnitSystem = Field(
        "metric",
        description="Unit system used when the caller does not supply one",
    )

    model_config = SettingsConfigDict(
        env_prefix="WEATHER_",
        case_sensitive=False,
        populate_by_name=True,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    cache_ttl_seconds: int = Field(
        60,
        description="Lifetime of cached weather responses in seconds",
        ge=1,
    )
    cache_max_entries: int | None = Field(
        None,
        description="Optional capacity bound for the response cache (None = unbounded)",
        ge=1,
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on the weather endpoint",
    )
    rate_limit_max_requests: int = Field(
        60,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_ms: int = Field(
        60_000,
        description="Rate limit window size in milliseconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers alongside Retry-After when throttling",
    )

    allowed_origins: str | None = Field(
        None,
        description="Comma-separated list of CORS origins (empty allows any origin)",
    )
    default_timezone: str = Field(
        "Asia/Singapore",
        description="IANA zone used by /api/time when no tz is supplied",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate log file after N bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read/propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    weather: WeatherSettings = Field(default_factory=_build_weather_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


def parse_origins(origins: str | None) -> list[str]:
    """Split a comma-separated origins string into a clean list.

    Examples:
        >>> parse_origins("https://a.example, https://b.example ,")
        ['https://a.example', 'https://b.example']
        >>> parse_origins(None)
        []
    """
    if not origins:
        return []
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
