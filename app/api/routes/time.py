from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Query, Request

from app.core.errors import ValidationAppError

router = APIRouter(prefix="/api", tags=["Time"])


def format_clock_time(moment: datetime) -> str:
    """Format a datetime as a 12-hour clock reading, e.g. '3:05 pm'."""
    hour = moment.hour % 12 or 12
    suffix = "am" if moment.hour < 12 else "pm"
    return f"{hour}:{moment.minute:02d} {suffix}"


@router.get("/time")
def current_time(
    request: Request,
    tz: str | None = Query(None, description="IANA timezone, e.g. 'Asia/Singapore'."),
) -> dict:
    """Current wall-clock time in the requested timezone.

    Raises:
        ValidationAppError: If the timezone is unknown.
    """
    zone_name = tz or request.app.state.settings.app.default_timezone
    try:
        zone = ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValidationAppError(
            code="invalid_timezone",
            message="Invalid timezone",
            details={"parameter": "tz", "error": str(exc)},
        ) from exc

    return {"tz": zone_name, "now": format_clock_time(datetime.now(zone))}
