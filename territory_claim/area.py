"""Enclosed area of a closed geographic path."""

from __future__ import annotations

import math
from typing import Sequence

from territory_claim.geo import EARTH_RADIUS_M
from territory_claim.models import Coordinate


def polygon_area_sqm(points: Sequence[Coordinate], radius_m: float = EARTH_RADIUS_M) -> float:
    """Compute polygon area in square meters with a spherical shoelace formula.

    The ring is closed implicitly (last vertex wraps to the first) and the
    absolute value is taken, so the result does not depend on winding
    direction or on which vertex the path started at.

    Args:
        points: Ordered vertices in degrees.
        radius_m: Sphere radius.

    Returns:
        Area in square meters, 0.0 for fewer than 3 vertices.
    """

    n = len(points)
    if n < 3:
        return 0.0

    total = 0.0
    for i in range(n):
        a = points[i]
        b = points[(i + 1) % n]
        d_lon = math.radians(b.longitude - a.longitude)
        total += d_lon * (2.0 + math.sin(math.radians(a.latitude)) + math.sin(math.radians(b.latitude)))
    return abs(total * radius_m * radius_m / 2.0)
