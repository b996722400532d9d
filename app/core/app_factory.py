from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (settings, pipeline state, middleware, handlers,
routers) so tests can build isolated instances with their own cache and
rate limit tables.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.weather.base import AbstractWeatherClient
from app.adapters.weather.factory import create_weather_client
from app.api.routes import health_router, time_router, weather_router
from app.core.config import Settings, parse_origins, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.pipeline import RequestPipeline, Stage
from app.core.rate_limit import build_rate_limit_stage
from app.core.response_cache import build_cache_stage
from app.services.weather_service import WeatherEndpoint, WeatherService

logger = logging.getLogger(__name__)


def build_weather_pipeline(
    cfg: Settings,
    weather_client: AbstractWeatherClient,
    *,
    clock: Callable[[], float] = time.time,
) -> RequestPipeline:
    """Compose rate limiter → response cache → weather endpoint.

    Each call creates fresh cache and counter tables owned by the returned
    pipeline.

    Args:
        cfg: Resolved settings.
        weather_client: Upstream client used on cache misses.
        clock: Time source shared by the cache and the limiter.

    Returns:
        RequestPipeline ready to handle weather requests.
    """
    stages: list[Stage] = []
    if cfg.app.rate_limit_enabled:
        stages.append(
            build_rate_limit_stage(
                cfg.app.rate_limit_window_ms,
                cfg.app.rate_limit_max_requests,
                include_headers=cfg.app.rate_limit_include_headers,
                clock=clock,
            )
        )
    stages.append(
        build_cache_stage(
            cfg.app.cache_ttl_seconds,
            cfg.app.cache_max_entries,
            clock=clock,
        )
    )

    service = WeatherService(weather_client, default_units=cfg.weather.default_units)
    endpoint = WeatherEndpoint(service, cache_ttl_seconds=cfg.app.cache_ttl_seconds)
    return RequestPipeline(stages, endpoint)


def create_app(
    settings: Settings | None = None,
    *,
    weather_client: AbstractWeatherClient | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to use; defaults to the environment-loaded ones.
        weather_client: Upstream client override (tests pass one backed by
            ``httpx.MockTransport``).
        clock: Time source for cache freshness and rate windows.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log, secrets=(cfg.weather.api_key,))

    client = weather_client or create_weather_client(cfg.weather)
    if not client.is_configured:
        logger.warning("weather.api_key_missing_at_startup")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await client.aclose()

    app = FastAPI(
        title="Weather Proxy API",
        description=(
            "Proxy for a third-party current-weather API. Keeps the provider "
            "key on the server, returns a compact normalized record, caches "
            "identical requests briefly and rate limits each client."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.weather_client = client
    app.state.weather_pipeline = build_weather_pipeline(cfg, client, clock=clock)

    # Middleware
    app.middleware("http")(request_id_middleware)
    origins = parse_origins(cfg.app.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["X-Cache", "Retry-After", cfg.log.request_id_header],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(weather_router)
    app.include_router(time_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags, documented response headers)
    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "cache_ttl_s": cfg.app.cache_ttl_seconds,
            "rate_limit_enabled": cfg.app.rate_limit_enabled,
            "rate_limit_window_ms": cfg.app.rate_limit_window_ms,
            "rate_limit_max_requests": cfg.app.rate_limit_max_requests,
            "cors_origins": len(origins),
        },
    )
    return app
