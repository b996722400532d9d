"""Request pipeline shared by the weather proxy stages.

A pipeline is an ordered list of stages in front of a terminal endpoint.
Each stage has the same shape as an HTTP middleware: it receives the request
and a ``call_next`` continuation, and either returns a response of its own
(short-circuit), raises an ``AppError``, or awaits ``call_next``.

The pipeline works on framework-neutral ``ProxyRequest``/``ProxyResponse``
objects; the route adapts Starlette requests into them and back.

Usage:
    pipeline = RequestPipeline([rate_limit_stage, cache_stage], endpoint)
    response = await pipeline.handle(proxy_request)
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Sequence

from app.utils.simple_cache import build_signature


@dataclass(frozen=True)
class ProxyRequest:
    """The parts of an inbound request the pipeline stages look at.

    Attributes:
        method: HTTP method.
        path: URL path without the query string.
        query_string: Raw query string, in the order the client sent it.
        params: Decoded query parameters.
        client_host: Network address of the caller, if known.
        forwarded_for: Raw ``X-Forwarded-For`` header value, if any.
    """

    method: str
    path: str
    query_string: str = ""
    params: Mapping[str, str] = field(default_factory=dict)
    client_host: str | None = None
    forwarded_for: str | None = None

    @property
    def signature(self) -> str:
        return build_signature(self.method, self.path, self.query_string)


@dataclass
class ProxyResponse:
    """A JSON response produced by the endpoint or a short-circuiting stage."""

    payload: dict[str, Any]
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


Handler = Callable[[ProxyRequest], Awaitable[ProxyResponse]]
Stage = Callable[[ProxyRequest, Handler], Awaitable[ProxyResponse]]


class RequestPipeline:
    """Run a request through ``stages`` in order, then ``endpoint``."""

    def __init__(self, stages: Sequence[Stage], endpoint: Handler) -> None:
        self.stages: tuple[Stage, ...] = tuple(stages)
        self.endpoint = endpoint
        self._chain = self._compose()

    def _compose(self) -> Handler:
        handler: Handler = self.endpoint
        for stage in reversed(self.stages):
            handler = functools.partial(stage, call_next=handler)
        return handler

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        return await self._chain(request)
