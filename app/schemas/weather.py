"""Pydantic schemas for weather queries and normalized responses."""

from __future__ import annotations

import math
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from app.core.errors import UpstreamAppError, ValidationAppError

NOT_AVAILABLE = "N/A"

UnitSystem = Literal["metric", "imperial", "standard"]
SUPPORTED_UNITS: tuple[str, ...] = ("metric", "imperial", "standard")


def _parse_coordinate(name: str, raw: str, bound: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationAppError(
            code="invalid_parameter",
            message=f"Parameter '{name}' must be a number",
            details={"parameter": name},
        ) from None

    if not math.isfinite(value) or not -bound <= value <= bound:
        raise ValidationAppError(
            code="invalid_parameter",
            message=f"Parameter '{name}' must be between -{bound:g} and {bound:g}",
            details={"parameter": name},
        )
    return value


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _timestamp(value: Any) -> Any:
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return value


class WeatherQuery(BaseModel):
    """A validated current-weather lookup.

    Exactly one of ``q`` or the ``lat``/``lon`` pair is set.
    """

    q: str | None = Field(default=None, description="Place name, e.g. 'Singapore'.")
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)
    units: UnitSystem = Field(default="metric", description="Provider unit system.")

    @classmethod
    def from_params(
        cls,
        *,
        q: str | None = None,
        lat: str | None = None,
        lon: str | None = None,
        units: str | None = None,
        default_units: str = "metric",
    ) -> "WeatherQuery":
        """Validate raw query-string values into a WeatherQuery.

        Empty strings count as absent.

        Raises:
            ValidationAppError: If neither or both location forms are given,
                a coordinate is missing or malformed, or the unit system is
                unknown.
        """
        place = (q or "").strip() or None
        lat_raw = (lat or "").strip() or None
        lon_raw = (lon or "").strip() or None
        has_coords = lat_raw is not None or lon_raw is not None

        if place and has_coords:
            raise ValidationAppError(
                code="ambiguous_location",
                message="Provide either ?q=City or ?lat=..&lon=.., not both",
            )
        if not place and (lat_raw is None or lon_raw is None):
            raise ValidationAppError(
                code="missing_location",
                message="Provide ?q=City or ?lat=..&lon=..",
            )

        unit_system = (units or "").strip().lower() or default_units
        if unit_system not in SUPPORTED_UNITS:
            raise ValidationAppError(
                code="invalid_parameter",
                message=f"Parameter 'units' must be one of: {', '.join(SUPPORTED_UNITS)}",
                details={"parameter": "units"},
            )

        if place:
            return cls(q=place, units=unit_system)
        return cls(
            lat=_parse_coordinate("lat", lat_raw, 90),
            lon=_parse_coordinate("lon", lon_raw, 180),
            units=unit_system,
        )

    def to_params(self) -> dict[str, str]:
        """Provider query parameters for this lookup (credential excluded)."""
        if self.q is not None:
            params = {"q": self.q}
        else:
            params = {"lat": str(self.lat), "lon": str(self.lon)}
        params["units"] = self.units
        return params


class Coordinates(BaseModel):
    lon: float | None = None
    lat: float | None = None


class NormalizedWeatherRecord(BaseModel):
    """Compact, provider-independent current-weather record.

    Every field is always present in the serialized output; values missing
    upstream become "N/A" (text) or null (everything else).
    """

    name: str | None = Field(default=None, description="Resolved location name.")
    coord: Coordinates | None = Field(default=None, description="Location coordinates.")
    weather: str = Field(default=NOT_AVAILABLE, description="Condition group, e.g. 'Clouds'.")
    description: str = Field(
        default=NOT_AVAILABLE, description="Condition detail, e.g. 'broken clouds'."
    )
    temp: float | None = Field(default=None, description="Temperature in the requested units.")
    feels_like: float | None = Field(default=None, description="Perceived temperature.")
    sunrise: int | None = Field(default=None, description="Sunrise, UNIX seconds (UTC).")
    sunset: int | None = Field(default=None, description="Sunset, UNIX seconds (UTC).")
    dt: int | None = Field(default=None, description="Observation time, UNIX seconds (UTC).")

    @classmethod
    def from_upstream(cls, raw: Mapping[str, Any]) -> "NormalizedWeatherRecord":
        """Project a raw OpenWeather payload onto the normalized shape.

        Numbers sent where text is expected are stringified and fractional
        timestamps are truncated. Anything else that does not fit the record
        is reported as an upstream failure.

        Raises:
            UpstreamAppError: If a field has a type the record cannot hold.
        """
        conditions = raw.get("weather")
        first = (
            _mapping(conditions[0])
            if isinstance(conditions, (list, tuple)) and conditions
            else {}
        )
        main = _mapping(raw.get("main"))
        sys_info = _mapping(raw.get("sys"))
        coord = raw.get("coord")

        try:
            return cls(
                name=_text(raw.get("name")),
                coord=Coordinates(**coord) if isinstance(coord, Mapping) else None,
                weather=_text(first.get("main")) or NOT_AVAILABLE,
                description=_text(first.get("description")) or NOT_AVAILABLE,
                temp=main.get("temp"),
                feels_like=main.get("feels_like"),
                sunrise=_timestamp(sys_info.get("sunrise")),
                sunset=_timestamp(sys_info.get("sunset")),
                dt=_timestamp(raw.get("dt")),
            )
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise UpstreamAppError(
                code="fetch_failed",
                message="Fetch failed",
                details={
                    "error": "Upstream payload has unexpected field types",
                    "context": {"fields": fields},
                },
            ) from None
