"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import Final, Sequence

from territory_claim.models import Coordinate

EARTH_RADIUS_M: Final[float] = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in meters."""

    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def path_length_m(coords: Sequence[Coordinate]) -> float:
    """Sum of consecutive segment lengths (open path, no wrap)."""

    return sum(distance_m(coords[i - 1], coords[i]) for i in range(1, len(coords)))


def is_within_m(a: Coordinate, b: Coordinate, radius_m: float) -> bool:
    """Check whether ``b`` lies inside or on a circle of ``radius_m`` around ``a``."""

    return distance_m(a, b) <= radius_m


def offset_m(origin: Coordinate, north_m: float, east_m: float) -> Coordinate:
    """Shift a coordinate by local north/east offsets in meters.

    Uses an equirectangular approximation, fine for the few hundred meters a
    walked loop spans.
    """

    d_lat = math.degrees(north_m / EARTH_RADIUS_M)
    d_lon = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(origin.latitude))))
    return Coordinate(origin.latitude + d_lat, origin.longitude + d_lon)
