"""
Distance calculation and unit conversion.

Road distances normally come from the browser's Directions widget or the
Google Maps client.  When only coordinates are known we fall back to the
great-circle (Haversine) distance.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_KM = 6_371.0
METERS_PER_MILE = 1_609.34


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
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def meters_to_km(meters: float) -> float:
    return meters / 1_000.0


def km_to_meters(km: float) -> float:
    return km * 1_000.0
