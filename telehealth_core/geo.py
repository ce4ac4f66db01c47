from __future__ import annotations

import math
from typing import Any

from .errors import InvalidInputError
from .models import Location

EARTH_RADIUS_KM = 6371.0


def distance_km(a: Location, b: Location) -> float:
    """Great-circle distance between two points using the Haversine formula.

    Invalid coordinates are not checked here; NaN inputs yield NaN. Use
    ``validate_location`` at the boundary.
    """
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    h = min(h, 1.0)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def validate_location(value: Any, *, field_name: str = "location") -> Location:
    try:
        location = Location.from_any(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{field_name} is malformed: {exc}") from exc
    if location is None:
        raise InvalidInputError(f"{field_name} is required.")
    if not (math.isfinite(location.lat) and math.isfinite(location.lng)):
        raise InvalidInputError(f"{field_name} coordinates must be finite numbers.")
    if not -90.0 <= location.lat <= 90.0:
        raise InvalidInputError(f"{field_name} latitude {location.lat} is out of range.")
    if not -180.0 <= location.lng <= 180.0:
        raise InvalidInputError(f"{field_name} longitude {location.lng} is out of range.")
    return location
