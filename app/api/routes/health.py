from __future__ import annotations

import time

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/healthz")
@router.get("/health", include_in_schema=False)
def health_check() -> dict:
    """Health check endpoint.

    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: ``ok`` flag and the server time in epoch milliseconds.
    """

    return {"ok": True, "ts": int(time.time() * 1000)}
