"""
Distance calculation using the Haversine formula.

Assumption
----------
This is the fallback path used when the upstream routing service is
unavailable, so distances are great-circle (straight line) rather than
road distances.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_MILES = 3_959.0


def haversine_miles(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **miles** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    a = min(1.0, a)  # float error near antipodes
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def round_half_up(value: float, places: int = 2) -> float:
    """Round like the pricing UI does: halves go up, not to even."""
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor
