"""Geometry built in local meters around a fixed origin.

All shapes are given as (north_m, east_m) offsets; ``at`` turns them into
WGS-84 coordinates.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Sequence

from territory_claim.geo import offset_m
from territory_claim.models import Coordinate, Fix

ORIGIN = Coordinate(31.2304000, 121.4737000)
T0_MS = 1_735_689_600_000  # 2025-01-01 00:00:00 UTC


def at(north_m: float, east_m: float) -> Coordinate:
    return offset_m(ORIGIN, north_m, east_m)


def path(offsets: Iterable[tuple[float, float]]) -> list[Coordinate]:
    return [at(n, e) for n, e in offsets]


def ring(corners: Sequence[tuple[float, float]], per_side: int) -> list[Coordinate]:
    """Walk the polygon ``corners`` with ``per_side`` vertices per edge, not returning to the start."""

    out: list[Coordinate] = []
    for k, (n0, e0) in enumerate(corners):
        n1, e1 = corners[(k + 1) % len(corners)]
        for s in range(per_side):
            t = s / per_side
            out.append(at(n0 + (n1 - n0) * t, e0 + (e1 - e0) * t))
    return out


def fixes_from(coords: Sequence[Coordinate], step_s: float = 10.0, start_ms: int = T0_MS) -> list[Fix]:
    return [Fix(c, start_ms + int(i * step_s * 1000)) for i, c in enumerate(coords)]


def write_fix_csv(out: Path, fixes: Sequence[Fix]) -> Path:
    with out.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(["geoTime", "latitude", "longitude", "horizontalAccuracy"])
        for fx in fixes:
            w.writerow([fx.timestamp_ms, f"{fx.coordinate.latitude:.9f}", f"{fx.coordinate.longitude:.9f}", "5.0"])
    return out


# 50 m square, 12 vertices 16.7 m apart; the last vertex is 16.7 m from the first.
SQUARE_CORNERS = [(0.0, 0.0), (0.0, 50.0), (50.0, 50.0), (50.0, 0.0)]

# Figure eight: segments 1 and 7 cross at (30, 30) with endpoints 20 m apart.
BOWTIE_OFFSETS = [
    (0, 0),
    (20, 20),
    (40, 40),
    (60, 60),
    (40, 60),
    (20, 60),
    (0, 60),
    (20, 40),
    (40, 20),
    (60, 0),
    (40, 0),
    (20, 0),
    (0, 0),
]
