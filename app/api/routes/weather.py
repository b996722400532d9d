from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from app.core.pipeline import ProxyRequest, RequestPipeline
from app.schemas.weather import NormalizedWeatherRecord

router = APIRouter(prefix="/api", tags=["Weather"])


def _to_proxy_request(request: Request) -> ProxyRequest:
    """Adapt a Starlette request to the pipeline's request type."""
    return ProxyRequest(
        method=request.method,
        path=request.url.path,
        query_string=request.url.query,
        params=dict(request.query_params),
        client_host=request.client.host if request.client else None,
        forwarded_for=request.headers.get("x-forwarded-for"),
    )


@router.get(
    "/weather",
    response_model=NormalizedWeatherRecord,
    responses={
        400: {"description": "Missing or malformed location parameters"},
        429: {"description": "Rate limit exceeded (see Retry-After)"},
        500: {"description": "Weather API key not configured"},
        502: {"description": "Upstream provider failed or was unreachable"},
    },
)
async def get_weather(
    request: Request,
    q: str | None = Query(None, description="Place name, e.g. 'Singapore'. Excludes lat/lon."),
    lat: str | None = Query(None, description="Latitude; requires lon."),
    lon: str | None = Query(None, description="Longitude; requires lat."),
    units: str | None = Query(None, description="metric (default), imperial or standard."),
) -> JSONResponse:
    """Current weather for a place name or a coordinate pair.

    The request goes through the rate limiter, then the response cache, and
    only reaches the provider on a cache miss. Query parameters are read from
    the raw request inside the pipeline; the declarations above document
    them.

    Example:
        GET /api/weather?q=Singapore&units=metric
        GET /api/weather?lat=1.3521&lon=103.8198
    """
    pipeline: RequestPipeline = request.app.state.weather_pipeline
    response = await pipeline.handle(_to_proxy_request(request))
    return JSONResponse(
        content=response.payload,
        status_code=response.status_code,
        headers=response.headers,
    )
