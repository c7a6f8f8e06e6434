"""Detection of a path returning to its starting point."""

from __future__ import annotations

import logging
from typing import Sequence

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.geo import distance_m
from territory_claim.models import Coordinate

logger = logging.getLogger(__name__)


def distance_to_start_m(points: Sequence[Coordinate]) -> float | None:
    """Distance between first and last vertex, None with fewer than 2 points."""

    if len(points) < 2:
        return None
    return distance_m(points[0], points[-1])


def is_closed_path(points: Sequence[Coordinate], params: EngineParams = DEFAULT_PARAMS) -> bool:
    """Stateless closure test: enough vertices and endpoints within tolerance."""

    if len(points) < max(2, params.minimum_path_points):
        return False
    gap = distance_to_start_m(points)
    return gap is not None and gap <= params.closure_distance_m


class ClosureDetector:
    """Monotonic closure flag for one tracking session.

    Once closed, the flag never reverts until :meth:`reset`.
    """

    def __init__(self, params: EngineParams = DEFAULT_PARAMS) -> None:
        self._params = params
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def reset(self) -> None:
        self._closed = False

    def update(self, points: Sequence[Coordinate]) -> bool:
        """Re-check closure after a new vertex.

        Returns:
            True only on the transition from open to closed.
        """

        if self._closed:
            return False
        if len(points) < self._params.minimum_path_points:
            logger.debug("闭环检测：点数不足 %s/%s", len(points), self._params.minimum_path_points)
            return False
        gap = distance_to_start_m(points)
        if gap is None or gap > self._params.closure_distance_m:
            logger.debug("闭环检测：距离起点 %.1f 米，需要 <= %.1f 米", gap or 0.0, self._params.closure_distance_m)
            return False
        self._closed = True
        logger.info("闭环成功！距离起点 %.1f 米", gap)
        return True
