"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what applies to it.
    """

    hint: str
    parameter: str
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    upstream_status: int
    upstream_body: str
    error: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when client input is missing or malformed."""


class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget for the window."""


class ConfigurationAppError(AppError):
    """Raised when required server configuration is absent at request time."""


class UpstreamAppError(AppError):
    """Raised when the weather provider fails or cannot be reached."""
