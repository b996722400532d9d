"""Weather proxy service: input validation, upstream call, normalization.

This is the last stage of the request pipeline. It only runs on cache
misses, and each call performs at most one outbound request.
"""

from __future__ import annotations

import logging
from typing import Mapping

from app.adapters.weather.base import AbstractWeatherClient
from app.core.errors import ConfigurationAppError
from app.core.pipeline import ProxyRequest, ProxyResponse
from app.core.response_cache import cache_control_header
from app.schemas.weather import NormalizedWeatherRecord, WeatherQuery

logger = logging.getLogger(__name__)


class WeatherService:
    """Resolve caller parameters into a normalized current-weather record."""

    def __init__(self, client: AbstractWeatherClient, *, default_units: str = "metric") -> None:
        self._client = client
        self._default_units = default_units

    def build_query(self, params: Mapping[str, str]) -> WeatherQuery:
        """Validate raw query parameters.

        The credential is checked first so a misconfigured server answers
        every request with the same configuration error.

        Raises:
            ConfigurationAppError: If the provider credential is missing.
            ValidationAppError: If the location parameters are invalid.
        """
        if not self._client.is_configured:
            logger.error("weather.api_key_missing")
            raise ConfigurationAppError(
                code="weather_api_key_missing",
                message="Weather API key not configured",
            )

        return WeatherQuery.from_params(
            q=params.get("q"),
            lat=params.get("lat"),
            lon=params.get("lon"),
            units=params.get("units"),
            default_units=self._default_units,
        )

    async def fetch_weather(self, query: WeatherQuery) -> NormalizedWeatherRecord:
        """Fetch current conditions for ``query`` and normalize them.

        Errors from the upstream client propagate unchanged; nothing is
        retried.
        """
        raw = await self._client.fetch_current(query)
        return NormalizedWeatherRecord.from_upstream(raw)

    async def fetch_weather_for_params(self, params: Mapping[str, str]) -> NormalizedWeatherRecord:
        """Validate ``params`` and fetch the matching record."""
        return await self.fetch_weather(self.build_query(params))


class WeatherEndpoint:
    """Terminal pipeline handler that performs the proxied lookup.

    Successful responses carry a public ``Cache-Control`` hint equal to the
    server-side cache TTL, so intermediaries agree with the in-process cache.
    """

    def __init__(self, service: WeatherService, *, cache_ttl_seconds: int) -> None:
        self.service = service
        self.cache_ttl_seconds = cache_ttl_seconds

    async def __call__(self, request: ProxyRequest) -> ProxyResponse:
        record = await self.service.fetch_weather_for_params(request.params)
        return ProxyResponse(
            payload=record.model_dump(mode="json"),
            headers={"Cache-Control": cache_control_header(self.cache_ttl_seconds)},
        )
