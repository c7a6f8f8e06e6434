"""Self-intersection detection for walked paths.

Two tiers share the same segment test:

- :func:`newest_segment_intersects` is the cheap live check run after each
  new vertex. It only looks at the newest segment.
- :func:`find_self_intersections` is the exhaustive check run at
  finalization and is authoritative.

Consumer GPS is off by 5-20 m, so crossings whose segments have endpoints
closer than ``intersection_noise_m`` are treated as noise, and the first and
last few segments are never compared with each other so that closing the
loop near the start is not reported as a crossing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.geo import distance_m
from territory_claim.models import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SegmentCrossing:
    """Segments ``(i, i+1)`` and ``(j, j+1)`` cross."""

    i: int
    j: int
    endpoint_distance_m: float


def ccw(a: Coordinate, b: Coordinate, c: Coordinate) -> int:
    """Orientation sign of the triangle a-b-c (longitude = x, latitude = y).

    Returns:
        1 for counter-clockwise, -1 for clockwise, 0 for collinear.
    """

    cross = (c.latitude - a.latitude) * (b.longitude - a.longitude) - (b.latitude - a.latitude) * (
        c.longitude - a.longitude
    )
    if cross > 0:
        return 1
    if cross < 0:
        return -1
    return 0


def segments_intersect(p1: Coordinate, p2: Coordinate, p3: Coordinate, p4: Coordinate) -> bool:
    """CCW test for segments (p1, p2) and (p3, p4)."""

    return ccw(p1, p3, p4) != ccw(p2, p3, p4) and ccw(p1, p2, p3) != ccw(p1, p2, p4)


def min_endpoint_distance_m(p1: Coordinate, p2: Coordinate, p3: Coordinate, p4: Coordinate) -> float:
    """Smallest distance between an endpoint of one segment and one of the other."""

    return min(distance_m(p1, p3), distance_m(p1, p4), distance_m(p2, p3), distance_m(p2, p4))


def _real_crossing(
    points: Sequence[Coordinate], i: int, j: int, noise_m: float
) -> SegmentCrossing | None:
    p1, p2, p3, p4 = points[i], points[i + 1], points[j], points[j + 1]
    if not segments_intersect(p1, p2, p3, p4):
        return None
    gap = min_endpoint_distance_m(p1, p2, p3, p4)
    if gap < noise_m:
        logger.debug("线段 %s 与 %s 相交但端点距离 %.1f 米，视为GPS噪声", i, j, gap)
        return None
    return SegmentCrossing(i=i, j=j, endpoint_distance_m=gap)


def newest_segment_intersects(points: Sequence[Coordinate], params: EngineParams = DEFAULT_PARAMS) -> bool:
    """Live check: does the newest segment cross any earlier one?

    The last ``live_skip_tail_segments`` segments before the newest one are
    skipped; they share or nearly share its vertices.
    """

    newest = len(points) - 2
    if newest < 1:
        return False
    for j in range(0, newest - params.live_skip_tail_segments):
        if _real_crossing(points, j, newest, params.intersection_noise_m) is not None:
            logger.warning("实时检测：最新线段 #%s 与线段 #%s 相交", newest, j)
            return True
    return False


def find_self_intersections(
    points: Sequence[Coordinate], params: EngineParams = DEFAULT_PARAMS
) -> list[SegmentCrossing]:
    """Exhaustive O(n^2) search for real self-crossings of an open path."""

    segment_count = len(points) - 1
    if segment_count < 2:
        return []

    tail_start = segment_count - params.skip_tail_segments
    crossings: list[SegmentCrossing] = []
    for i in range(segment_count):
        for j in range(i + params.min_segment_gap, segment_count):
            if i < params.skip_head_segments and j >= tail_start:
                continue
            hit = _real_crossing(points, i, j, params.intersection_noise_m)
            if hit is not None:
                crossings.append(hit)
    return crossings


def has_self_intersection(points: Sequence[Coordinate], params: EngineParams = DEFAULT_PARAMS) -> bool:
    crossings = find_self_intersections(points, params)
    if crossings:
        first = crossings[0]
        logger.warning(
            "轨迹自相交：线段 #%s 与 #%s（共 %s 处，端点最近 %.1f 米）",
            first.i,
            first.j,
            len(crossings),
            first.endpoint_distance_m,
        )
        return True
    return False
