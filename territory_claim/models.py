"""Data models for fixes, paths, territories and check results."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any, Final, Iterable, Sequence


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS-84 position in decimal degrees (no altitude)."""

    latitude: float
    longitude: float

    def as_lat_lon(self) -> dict[str, float]:
        return {"lat": self.latitude, "lon": self.longitude}


@dataclass(frozen=True, slots=True)
class Fix:
    """A single raw location sample delivered by the platform.

    Attributes:
        coordinate: Reported position.
        timestamp_ms: Unix epoch milliseconds.
        horizontal_accuracy_m: Reported accuracy radius in meters, if any.
    """

    coordinate: Coordinate
    timestamp_ms: int
    horizontal_accuracy_m: float | None = None

    @property
    def timestamp_s(self) -> float:
        """Unix epoch seconds as float."""

        return self.timestamp_ms / 1000.0


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Minimal axis-aligned rectangle enclosing a polygon."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def of(cls, coords: Iterable[Coordinate]) -> BoundingBox:
        """Build the box of a coordinate sequence (all zeros if empty)."""

        pts = list(coords)
        if not pts:
            return cls(0.0, 0.0, 0.0, 0.0)
        lats = [c.latitude for c in pts]
        lons = [c.longitude for c in pts]
        return cls(min(lats), max(lats), min(lons), max(lons))

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.min_lat + self.max_lat) / 2.0, (self.min_lon + self.max_lon) / 2.0)

    def contains(self, coord: Coordinate) -> bool:
        return self.min_lat <= coord.latitude <= self.max_lat and self.min_lon <= coord.longitude <= self.max_lon

    def intersects(self, other: BoundingBox) -> bool:
        return not (
            other.min_lat > self.max_lat
            or other.max_lat < self.min_lat
            or other.min_lon > self.max_lon
            or other.max_lon < self.min_lon
        )


class WarningLevel(IntEnum):
    """Proximity tiers, totally ordered from harmless to blocking."""

    SAFE = 0
    CAUTION = 1
    WARNING = 2
    DANGER = 3
    VIOLATION = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def color_name(self) -> str:
        """Banner colour hint for presentation code."""

        return _LEVEL_COLORS[self]

    @property
    def is_blocking(self) -> bool:
        return self >= WarningLevel.DANGER


_LEVEL_COLORS: Final[dict[WarningLevel, str]] = {
    WarningLevel.SAFE: "green",
    WarningLevel.CAUTION: "yellow",
    WarningLevel.WARNING: "orange",
    WarningLevel.DANGER: "red",
    WarningLevel.VIOLATION: "red",
}


class CollisionType(str, Enum):
    POINT_IN_TERRITORY = "point_in_territory"
    PATH_CROSSES_TERRITORY = "path_crosses_territory"


class ReasonCode(str, Enum):
    """Structured outcome codes. None of these are raised as exceptions."""

    INSUFFICIENT_POINTS = "insufficient_points"
    INSUFFICIENT_DISTANCE = "insufficient_distance"
    PATH_NOT_CLOSED = "path_not_closed"
    SELF_INTERSECTION = "self_intersection"
    INSUFFICIENT_AREA = "insufficient_area"
    GPS_DRIFT = "gps_drift"
    SPEED_WARNING = "speed_warning"
    SPEED_VIOLATION_FATAL = "speed_violation_fatal"
    POINT_IN_FOREIGN_TERRITORY = "point_in_foreign_territory"
    PATH_CROSSES_FOREIGN_TERRITORY = "path_crosses_foreign_territory"


class SessionState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    FINALIZING = "finalizing"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Verdict of one finalize attempt.

    Note:
        ``computed_area_sqm`` is 0.0 unless every check up to and including
        the self-intersection check passed.
    """

    is_valid: bool
    failure_reason: ReasonCode | None
    computed_area_sqm: float

    @classmethod
    def passed(cls, area_sqm: float) -> ValidationResult:
        return cls(is_valid=True, failure_reason=None, computed_area_sqm=area_sqm)

    @classmethod
    def failed(cls, reason: ReasonCode, area_sqm: float = 0.0) -> ValidationResult:
        return cls(is_valid=False, failure_reason=reason, computed_area_sqm=area_sqm)


@dataclass(frozen=True, slots=True)
class CollisionResult:
    """Outcome of testing a path against foreign territories."""

    has_collision: bool
    collision_type: CollisionType | None
    warning_level: WarningLevel
    nearest_distance_m: float | None
    message: str = ""

    @classmethod
    def safe(cls) -> CollisionResult:
        return cls(False, None, WarningLevel.SAFE, None)

    @classmethod
    def violation(cls, collision_type: CollisionType, message: str) -> CollisionResult:
        return cls(True, collision_type, WarningLevel.VIOLATION, 0.0, message)

    @classmethod
    def proximity(cls, level: WarningLevel, distance_m: float, message: str = "") -> CollisionResult:
        return cls(False, None, level, distance_m, message)

    @property
    def is_blocking(self) -> bool:
        return self.has_collision or self.warning_level.is_blocking

    @property
    def reason(self) -> ReasonCode | None:
        if self.collision_type is CollisionType.POINT_IN_TERRITORY:
            return ReasonCode.POINT_IN_FOREIGN_TERRITORY
        if self.collision_type is CollisionType.PATH_CROSSES_TERRITORY:
            return ReasonCode.PATH_CROSSES_FOREIGN_TERRITORY
        return None


@dataclass(frozen=True, slots=True)
class Territory:
    """A claimed polygon owned by some user.

    Persisted territories are never mutated in place; soft deletion produces
    a copy with ``active=False``.
    """

    id: str
    owner_id: str
    polygon: Sequence[Coordinate]
    area_sqm: float = 0.0
    # Derived from the polygon when omitted.
    bounding_box: BoundingBox | None = None
    created_at_ms: int = 0
    active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "polygon", tuple(self.polygon))
        if self.bounding_box is None:
            object.__setattr__(self, "bounding_box", BoundingBox.of(self.polygon))

    @property
    def center(self) -> Coordinate:
        return self.bounding_box.center

    def deactivated(self) -> Territory:
        return replace(self, active=False)


@dataclass(frozen=True, slots=True)
class TerritoryRecord:
    """Outbound record handed to the persistence collaborator on success."""

    owner_id: str
    ordered_points: tuple[Coordinate, ...]
    area_sqm: float
    bounding_box: BoundingBox
    point_count: int
    started_at_ms: int | None
    completed_at_ms: int | None

    def to_wkt(self) -> str:
        """Render as a closed WKT polygon (longitude first)."""

        if len(self.ordered_points) < 3:
            return "POLYGON EMPTY"
        coords = list(self.ordered_points)
        if coords[0] != coords[-1]:
            coords.append(coords[0])
        body = ", ".join(f"{c.longitude} {c.latitude}" for c in coords)
        return f"POLYGON(({body}))"

    def to_payload(self) -> dict[str, Any]:
        """Row-shaped dict for a persistence backend."""

        bbox = self.bounding_box
        return {
            "owner_id": self.owner_id,
            "path": [c.as_lat_lon() for c in self.ordered_points],
            "polygon": self.to_wkt(),
            "area_sqm": self.area_sqm,
            "point_count": self.point_count,
            "bbox_min_lat": bbox.min_lat,
            "bbox_max_lat": bbox.max_lat,
            "bbox_min_lon": bbox.min_lon,
            "bbox_max_lon": bbox.max_lon,
            "started_at": self.started_at_ms,
            "completed_at": self.completed_at_ms,
        }


DEFAULT_TZ: Final[str] = "Asia/Shanghai"
