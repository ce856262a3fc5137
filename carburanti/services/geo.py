"""Distance helpers shared by the query engine and the refresh policy"""

import math
from typing import Any

EARTH_RADIUS_KM = 6371.0
# Returned for malformed input so the point never falls inside a radius.
UNREACHABLE_KM = math.inf


def _as_degrees(value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError("non-finite coordinate")
    return number


def distance_km(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> float:
    """
    Great-circle distance between two points using the Haversine formula

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers, or UNREACHABLE_KM when any coordinate is
        missing, unparseable or not finite
    """
    try:
        lat1, lon1, lat2, lon2 = (_as_degrees(v) for v in (lat1, lon1, lat2, lon2))
    except (TypeError, ValueError):
        return UNREACHABLE_KM

    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # clamp rounding noise so sqrt/asin stay in domain
    a = min(1.0, max(0.0, a))
    c = 2 * math.asin(math.sqrt(a))

    return c * EARTH_RADIUS_KM


def is_within_radius(center_lat: Any, center_lon: Any,
                     point_lat: Any, point_lon: Any, radius_km: float) -> bool:
    """Check if a point is within radius_km of the center point"""
    return distance_km(center_lat, center_lon, point_lat, point_lon) <= radius_km
