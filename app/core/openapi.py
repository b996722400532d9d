"""OpenAPI customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Response headers set by the weather pipeline (``X-Cache``,
  ``Cache-Control``, ``Retry-After``)

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {
        "name": "Weather",
        "description": "Cached, rate limited proxy to the current-weather provider.",
    },
    {
        "name": "Time",
        "description": "Server-side clock for an IANA timezone.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

_SUCCESS_HEADERS = {
    "X-Cache": {
        "description": "HIT when served from the in-process cache, MISS otherwise.",
        "schema": {"type": "string", "enum": ["HIT", "MISS"]},
    },
    "Cache-Control": {
        "description": "public, max-age equal to the server cache TTL.",
        "schema": {"type": "string"},
    },
}

_RATE_LIMIT_HEADERS = {
    "Retry-After": {
        "description": "Seconds until the current rate limit window ends.",
        "schema": {"type": "integer"},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and response headers."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        weather_get = schema.get("paths", {}).get("/api/weather", {}).get("get")
        if isinstance(weather_get, dict):
            responses = weather_get.setdefault("responses", {})
            if "200" in responses:
                responses["200"].setdefault("headers", {}).update(_SUCCESS_HEADERS)
            if "429" in responses:
                responses["429"].setdefault("headers", {}).update(_RATE_LIMIT_HEADERS)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
