"""Factory for creating weather provider clients."""

import httpx

from app.adapters.weather.base import AbstractWeatherClient
from app.adapters.weather.openweather_client import OpenWeatherClient
from app.core.config import WeatherSettings, settings


def create_weather_client(
    weather_settings: WeatherSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AbstractWeatherClient:
    """Instantiate the weather client from configuration.

    A missing API key is not an error here: the client is still built and
    reports the misconfiguration on each request, so the rest of the service
    (health checks, time endpoint) keeps working.

    Args:
        weather_settings: Provider settings; defaults to the global settings.
        transport: Optional httpx transport override.

    Returns:
        AbstractWeatherClient: Configured client instance.
    """
    cfg = weather_settings or settings.weather
    return OpenWeatherClient(
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        timeout_seconds=cfg.timeout_seconds,
        transport=transport,
    )
