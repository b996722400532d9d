"""Weather provider adapter layer - hides the upstream API behind one interface."""

from app.adapters.weather.base import AbstractWeatherClient
from app.adapters.weather.factory import create_weather_client
from app.adapters.weather.openweather_client import OpenWeatherClient

__all__ = [
    "AbstractWeatherClient",
    "OpenWeatherClient",
    "create_weather_client",
]
