"""Distance-gated recording of polygon vertices."""

from __future__ import annotations

import logging

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.geo import distance_m
from territory_claim.models import Coordinate

logger = logging.getLogger(__name__)


class PathSampler:
    """Turns a continuous stream of accepted positions into a sparse vertex list.

    A vertex is recorded only once the walker has moved at least
    ``min_distance_for_new_point_m`` from the previous vertex, which bounds the
    polygon size independently of how often fixes arrive.
    """

    def __init__(self, params: EngineParams = DEFAULT_PARAMS) -> None:
        self._params = params
        self._points: list[Coordinate] = []
        self.total_distance_m = 0.0
        # Bumped on every change so observers can cheaply detect updates.
        self.version = 0

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return tuple(self._points)

    @property
    def first(self) -> Coordinate | None:
        return self._points[0] if self._points else None

    @property
    def last(self) -> Coordinate | None:
        return self._points[-1] if self._points else None

    def should_record(self, coord: Coordinate) -> bool:
        if not self._points:
            return True
        return distance_m(self._points[-1], coord) >= self._params.min_distance_for_new_point_m

    def offer(self, coord: Coordinate) -> bool:
        """Record ``coord`` if it is far enough from the last vertex.

        Returns:
            True if a new vertex was appended.
        """

        if not self.should_record(coord):
            return False
        self.force_append(coord)
        return True

    def force_append(self, coord: Coordinate) -> None:
        """Append without the distance gate, still accumulating distance."""

        if self._points:
            self.total_distance_m += distance_m(self._points[-1], coord)
        self._points.append(coord)
        self.version += 1
        logger.info("记录点 #%s: (%.6f, %.6f)", len(self._points), coord.latitude, coord.longitude)

    def clear(self) -> None:
        self._points.clear()
        self.total_distance_m = 0.0
        self.version += 1
