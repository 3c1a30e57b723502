"""
Distance calculation using the Haversine formula.

Every distance in the service (dispatch radius, quoted fare, tracked
polyline) goes through ``haversine_km`` so the quote and the final fare
are measured the same way.

Complexity: O(1) per call, O(n) for a polyline of n points.
"""

import math
from typing import Iterable

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    # Rounding can push ``a`` a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def polyline_km(points: Iterable[tuple[float, float]]) -> float:
    """Sum of hops between consecutive ``(lat, lng)`` points; 0 for < 2."""
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += haversine_km(previous[0], previous[1], point[0], point[1])
        previous = point
    return total
