"""
Coordinate validation for the fallback pricing path.

Service area
------------
Union of three boxes (decimal degrees):

* Continental US  lat 24.0..49.5   lng -125.0..-66.9
* Alaska          lat 51.0..71.5   lng -179.1..-129.0 or 172.0..180.0
                  (the Aleutians cross the antimeridian)
* Hawaii          lat 18.9..28.5   lng -178.0..-154.0

Upstream geocoders return placeholder points such as Null Island when
they fail; those are rejected outright instead of being priced.

Check order: format, range, placeholder, service area.  Every check is
O(1).
"""

from __future__ import annotations

import math
from numbers import Real
from typing import Any

from .distance import haversine_miles, round_half_up
from .entities import Coordinate
from .errors import Err, ErrorCode, Ok, Result


# (lat_min, lat_max, ((lng_min, lng_max), ...))
SERVICE_AREAS: dict[str, tuple[float, float, tuple[tuple[float, float], ...]]] = {
    "continental_us": (24.0, 49.5, ((-125.0, -66.9),)),
    "alaska": (51.0, 71.5, ((-179.1, -129.0), (172.0, 180.0))),
    "hawaii": (18.9, 28.5, ((-178.0, -154.0),)),
}

FALLBACK_COORDINATES: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),  # Null Island
    (1.0, 1.0),
    (90.0, 0.0),
    (-90.0, 0.0),
)
FALLBACK_TOLERANCE_DEG = 0.001

MIN_DISTANCE_MILES = 0.1
MAX_DISTANCE_MILES = 1000.0

COORDINATE_PLACES = 6  # ~0.11 m
DISTANCE_PLACES = 2


def _is_valid_number(value: Any) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def in_service_area(lat: float, lng: float) -> bool:
    for lat_min, lat_max, lng_ranges in SERVICE_AREAS.values():
        if not lat_min <= lat <= lat_max:
            continue
        if any(lo <= lng <= hi for lo, hi in lng_ranges):
            return True
    return False


def is_fallback_coordinate(lat: float, lng: float) -> bool:
    return any(
        abs(lat - f_lat) < FALLBACK_TOLERANCE_DEG
        and abs(lng - f_lng) < FALLBACK_TOLERANCE_DEG
        for f_lat, f_lng in FALLBACK_COORDINATES
    )


class CoordinateValidator:
    """Stateless; safe to share across threads and tasks."""

    @staticmethod
    def validate(coordinate: Coordinate) -> Result[Coordinate]:
        lat, lng = coordinate.lat, coordinate.lng

        if not _is_valid_number(lat) or not _is_valid_number(lng):
            return Err(ErrorCode.INVALID_COORDINATE_FORMAT, "Invalid coordinate format")

        if lat < -90 or lat > 90:
            return Err(ErrorCode.COORDINATE_OUT_OF_RANGE, "Latitude out of valid range")

        if lng < -180 or lng > 180:
            return Err(ErrorCode.COORDINATE_OUT_OF_RANGE, "Longitude out of valid range")

        if is_fallback_coordinate(lat, lng):
            return Err(
                ErrorCode.DEGENERATE_COORDINATE_DETECTED,
                "Invalid location coordinates detected",
            )

        if not in_service_area(lat, lng):
            return Err(
                ErrorCode.COORDINATE_OUT_OF_SERVICE_AREA,
                "Location outside US service area",
            )

        return Ok(
            Coordinate(
                lat=round_half_up(lat, COORDINATE_PLACES),
                lng=round_half_up(lng, COORDINATE_PLACES),
            )
        )

    @classmethod
    def distance_between(cls, pickup: Coordinate, dropoff: Coordinate) -> Result[float]:
        """Validated great-circle distance in miles, rounded on return only."""
        checked_pickup = cls.validate(pickup)
        if isinstance(checked_pickup, Err):
            return checked_pickup.with_context("Pickup location")

        checked_dropoff = cls.validate(dropoff)
        if isinstance(checked_dropoff, Err):
            return checked_dropoff.with_context("Destination")

        a, b = checked_pickup.value, checked_dropoff.value
        distance = haversine_miles(a.lat, a.lng, b.lat, b.lng)

        if not MIN_DISTANCE_MILES <= distance <= MAX_DISTANCE_MILES:
            return Err(
                ErrorCode.DISTANCE_OUT_OF_DOMAIN,
                "Calculated distance outside reasonable limits",
            )

        return Ok(round_half_up(distance, DISTANCE_PLACES))
