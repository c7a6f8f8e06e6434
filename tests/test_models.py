from __future__ import annotations

from territory_claim.models import (
    BoundingBox,
    CollisionResult,
    Coordinate,
    Fix,
    ReasonCode,
    Territory,
    TerritoryRecord,
    ValidationResult,
    WarningLevel,
)

from tests.fixtures import path


def test_warning_levels_are_ordered() -> None:
    assert WarningLevel.SAFE < WarningLevel.CAUTION < WarningLevel.WARNING < WarningLevel.DANGER < WarningLevel.VIOLATION
    assert max(WarningLevel.CAUTION, WarningLevel.DANGER) is WarningLevel.DANGER
    assert [lvl.is_blocking for lvl in WarningLevel] == [False, False, False, True, True]
    assert WarningLevel.WARNING.color_name == "orange"
    assert WarningLevel.CAUTION.label == "Caution"


def test_result_constructors() -> None:
    ok = ValidationResult.passed(123.0)
    assert ok.is_valid and ok.failure_reason is None and ok.computed_area_sqm == 123.0
    bad = ValidationResult.failed(ReasonCode.INSUFFICIENT_AREA, 50.0)
    assert not bad.is_valid and bad.computed_area_sqm == 50.0

    safe = CollisionResult.safe()
    assert not safe.is_blocking and safe.reason is None and safe.nearest_distance_m is None


def test_fix_seconds() -> None:
    assert Fix(Coordinate(0.0, 0.0), 1500).timestamp_s == 1.5


def test_territory_derives_bounding_box() -> None:
    poly = path([(0, 0), (0, 10), (10, 10)])
    t = Territory(id="t", owner_id="o", polygon=poly)
    assert isinstance(t.polygon, tuple)
    assert t.bounding_box == BoundingBox.of(poly)
    assert t.bounding_box.contains(t.center)


def test_record_wkt_and_payload() -> None:
    pts = (Coordinate(31.0, 121.0), Coordinate(31.0, 121.001), Coordinate(31.001, 121.001))
    rec = TerritoryRecord(
        owner_id="me",
        ordered_points=pts,
        area_sqm=5000.0,
        bounding_box=BoundingBox.of(pts),
        point_count=3,
        started_at_ms=1,
        completed_at_ms=2,
    )
    assert rec.to_wkt() == "POLYGON((121.0 31.0, 121.001 31.0, 121.001 31.001, 121.0 31.0))"

    payload = rec.to_payload()
    assert payload["path"][0] == {"lat": 31.0, "lon": 121.0}
    assert payload["polygon"] == rec.to_wkt()
    assert payload["bbox_max_lat"] == 31.001
    assert payload["point_count"] == 3
    assert payload["completed_at"] == 2


def test_record_wkt_empty_below_three_points() -> None:
    pts = (Coordinate(31.0, 121.0), Coordinate(31.0, 121.001))
    rec = TerritoryRecord("me", pts, 0.0, BoundingBox.of(pts), 2, None, None)
    assert rec.to_wkt() == "POLYGON EMPTY"
