"""Great-circle distance over an ordered list of coordinates."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

EARTH_RADIUS_KM = 6371.0

Coordinate = tuple[float, float]


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two (latitude, longitude) pairs in degrees, in km."""
    lat1, lon1 = a
    lat2, lon2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def total_distance_km(points: Iterable[Coordinate]) -> float:
    """
    Sum of great-circle legs between consecutive points, rounded to 2 decimals.

    Fewer than two points yields 0.
    """
    seq: Sequence[Coordinate] = list(points)
    if len(seq) < 2:
        return 0.0
    total = sum(haversine_km(seq[i], seq[i + 1]) for i in range(len(seq) - 1))
    return round(total, 2)
