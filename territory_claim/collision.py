"""Collision and proximity checks against territories claimed by others."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Protocol, Sequence

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.geo import distance_m
from territory_claim.intersection import segments_intersect
from territory_claim.models import (
    BoundingBox,
    CollisionResult,
    CollisionType,
    Coordinate,
    Territory,
    WarningLevel,
)

logger = logging.getLogger(__name__)


class RosterProvider(Protocol):
    """Source of foreign territories (persistence/sync collaborator)."""

    def fetch_roster(self) -> Sequence[Territory]:
        """Return the currently known active territories."""
        ...


def point_in_polygon(point: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    """Ray casting: odd number of edge crossings of a rightward ray means inside."""

    n = len(polygon)
    if n < 3:
        return False

    x = point.longitude
    y = point.latitude
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].longitude, polygon[i].latitude
        xj, yj = polygon[j].longitude, polygon[j].latitude
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


class CollisionDetector:
    """Checks the walked path against a read-only roster of foreign territories.

    The roster may lag behind the server; this is a courtesy check and the
    authoritative one belongs to the persistence layer.
    """

    def __init__(
        self,
        params: EngineParams = DEFAULT_PARAMS,
        roster: Iterable[Territory] = (),
        owner_id: str | None = None,
    ) -> None:
        self._params = params
        self._owner_id = owner_id
        self._foreign: tuple[Territory, ...] = ()
        self.update_roster(roster)

    @property
    def foreign_territories(self) -> tuple[Territory, ...]:
        return self._foreign

    def update_roster(self, territories: Iterable[Territory]) -> None:
        """Replace the roster, keeping only active territories of other owners."""

        owner = self._owner_id.lower() if self._owner_id else None
        self._foreign = tuple(
            t
            for t in territories
            if t.active and len(t.polygon) >= 3 and (owner is None or t.owner_id.lower() != owner)
        )
        logger.debug("他人领地名单已更新：%s 个", len(self._foreign))

    def refresh_from(self, provider: RosterProvider) -> None:
        self.update_roster(provider.fetch_roster())

    def check_point(self, coord: Coordinate) -> CollisionResult:
        for territory in self._foreign:
            if not territory.bounding_box.contains(coord):
                continue
            if point_in_polygon(coord, territory.polygon):
                logger.error("碰撞：位于他人领地内（领地 %s）", territory.id)
                return CollisionResult.violation(CollisionType.POINT_IN_TERRITORY, "不能在他人领地内圈地！")
        return CollisionResult.safe()

    def check_path_crossing(self, path: Sequence[Coordinate]) -> CollisionResult:
        """Edge-crossing test for every path segment, plus the terminal point.

        Every boundary crossing counts; unlike self-intersection there is no
        noise allowance.
        """

        if len(path) < 2:
            return CollisionResult.safe()

        for i in range(len(path) - 1):
            a, b = path[i], path[i + 1]
            seg_box = BoundingBox.of((a, b))
            for territory in self._foreign:
                if not seg_box.intersects(territory.bounding_box):
                    continue
                polygon = territory.polygon
                n = len(polygon)
                for k in range(n):
                    if segments_intersect(a, b, polygon[k], polygon[(k + 1) % n]):
                        logger.error("碰撞：轨迹穿越他人领地边界（领地 %s，线段 #%s）", territory.id, i)
                        return CollisionResult.violation(
                            CollisionType.PATH_CROSSES_TERRITORY, "轨迹不能穿越他人领地！"
                        )

        tip_result = self.check_point(path[-1])
        if tip_result.has_collision:
            return CollisionResult.violation(CollisionType.POINT_IN_TERRITORY, "轨迹不能进入他人领地！")
        return CollisionResult.safe()

    def nearest_distance_m(self, coord: Coordinate) -> float:
        """Distance to the closest vertex of any foreign territory (inf if none)."""

        best = math.inf
        for territory in self._foreign:
            for vertex in territory.polygon:
                best = min(best, distance_m(coord, vertex))
        return best

    def band(self, distance: float) -> WarningLevel:
        p = self._params
        if distance > p.caution_distance_m:
            return WarningLevel.SAFE
        if distance > p.warning_distance_m:
            return WarningLevel.CAUTION
        if distance > p.danger_distance_m:
            return WarningLevel.WARNING
        return WarningLevel.DANGER

    def check(self, path: Sequence[Coordinate]) -> CollisionResult:
        """Comprehensive check used both live and as the finalize gate."""

        if not path:
            return CollisionResult.safe()
        if len(path) == 1:
            return self.check_point(path[0])

        crossing = self.check_path_crossing(path)
        if crossing.has_collision:
            return crossing

        nearest = self.nearest_distance_m(path[-1])
        if math.isinf(nearest):
            return CollisionResult.safe()

        level = self.band(nearest)
        if level is WarningLevel.SAFE:
            return CollisionResult.proximity(level, nearest)
        messages = {
            WarningLevel.CAUTION: f"注意：距离他人领地 {nearest:.0f}m",
            WarningLevel.WARNING: f"警告：正在靠近他人领地（{nearest:.0f}m）",
            WarningLevel.DANGER: f"危险：即将进入他人领地！（{nearest:.0f}m）",
        }
        logger.warning("距离预警：%s，距离 %.0f 米", level.label, nearest)
        return CollisionResult.proximity(level, nearest, messages[level])
