"""OpenWeather current-weather client adapter."""

import logging
import time
from typing import Any

import httpx

from app.adapters.weather.base import AbstractWeatherClient
from app.core.errors import ConfigurationAppError, UpstreamAppError
from app.core.logging import scrub_secret
from app.schemas.weather import WeatherQuery

logger = logging.getLogger(__name__)

# Upstream bodies are forwarded to callers for diagnosis; keep them bounded.
MAX_UPSTREAM_BODY_CHARS = 2000


class OpenWeatherClient(AbstractWeatherClient):
    """Client for the OpenWeather "current weather" endpoint.

    Uses a shared ``httpx.AsyncClient`` so connections are pooled across
    requests. The API key is attached as the ``appid`` query parameter on
    each call and scrubbed from any error text before it leaves this class.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openweathermap.org/data/2.5",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            api_key: Provider credential; may be None, in which case every
                fetch fails with a configuration error.
            base_url: Provider base URL.
            timeout_seconds: Timeout for each outbound call.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def fetch_current(self, query: WeatherQuery) -> dict[str, Any]:
        """Call ``GET /weather`` and return the decoded JSON body.

        Raises:
            ConfigurationAppError: If no API key is configured.
            UpstreamAppError: ``upstream_error`` for non-2xx answers,
                ``fetch_failed`` for transport failures, timeouts and
                undecodable bodies.
        """
        if not self._api_key:
            raise ConfigurationAppError(
                code="weather_api_key_missing",
                message="Weather API key not configured",
            )

        params = {**query.to_params(), "appid": self._api_key}
        lookup = "place" if query.q is not None else "coordinates"
        start = time.perf_counter()

        try:
            response = await self.client.get("/weather", params=params)
        except httpx.HTTPError as exc:
            error_text = scrub_secret(str(exc) or type(exc).__name__, self._api_key)
            logger.error(
                "weather.fetch_failed",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": error_text,
                    "lookup": lookup,
                    "timeout_s": self._timeout_seconds,
                },
            )
            raise UpstreamAppError(
                code="fetch_failed",
                message="Fetch failed",
                details={"error": error_text},
            ) from None

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "weather.upstream_request",
            extra={
                "lookup": lookup,
                "units": query.units,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        if not response.is_success:
            body = scrub_secret(response.text[:MAX_UPSTREAM_BODY_CHARS], self._api_key)
            logger.warning(
                "weather.upstream_error",
                extra={"upstream_status": response.status_code, "lookup": lookup},
            )
            raise UpstreamAppError(
                code="upstream_error",
                message="Upstream error",
                details={
                    "upstream_status": response.status_code,
                    "upstream_body": body,
                },
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamAppError(
                code="fetch_failed",
                message="Fetch failed",
                details={"error": f"Upstream returned invalid JSON: {exc}"},
            ) from None

        if not isinstance(data, dict):
            logger.warning(
                "weather.fetch_failed",
                extra={"lookup": lookup, "body_type": type(data).__name__},
            )
            raise UpstreamAppError(
                code="fetch_failed",
                message="Fetch failed",
                details={"error": f"Upstream returned a JSON {type(data).__name__}, expected an object"},
            )
        return data

    async def aclose(self) -> None:
        await self.client.aclose()
