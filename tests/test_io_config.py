from __future__ import annotations

import json
from pathlib import Path

import pytest

from territory_claim.config import DEFAULT_PARAMS, EngineParams, load_params, params_from_mapping
from territory_claim.csv_io import iter_fixes, load_fixes, load_roster_json, write_path_csv, write_record_json
from territory_claim.models import BoundingBox, Coordinate, TerritoryRecord


def _write(p: Path, text: str) -> Path:
    p.write_text(text, encoding="utf-8")
    return p


def test_load_fixes_sorts_and_skips_broken_rows(tmp_path: Path) -> None:
    csv_path = _write(
        tmp_path / "Path.csv",
        "geoTime,latitude,longitude,horizontalAccuracy\n"
        "2000,31.2305,121.4737,5.0\n"
        "1000,31.2304,121.4737,-1\n"
        "oops,31.2306,121.4737,5.0\n"
        "3000,31.2306,121.4737,\n",
    )
    fixes, summary = load_fixes(csv_path)
    assert [fx.timestamp_ms for fx in fixes] == [1000, 2000, 3000]
    assert fixes[0].horizontal_accuracy_m is None
    assert fixes[1].horizontal_accuracy_m == 5.0
    assert fixes[2].horizontal_accuracy_m is None
    assert fixes[0].coordinate == Coordinate(31.2304, 121.4737)
    assert (summary.rows_total, summary.rows_parsed, summary.rows_skipped) == (4, 3, 1)
    assert list(summary.fieldnames) == ["geoTime", "latitude", "longitude", "horizontalAccuracy"]


def test_iter_fixes_requires_columns(tmp_path: Path) -> None:
    csv_path = _write(tmp_path / "bad.csv", "time,lat,lon\n1000,31.0,121.0\n")
    with pytest.raises(KeyError):
        list(iter_fixes(csv_path))


def test_iter_fixes_keeps_file_order(tmp_path: Path) -> None:
    csv_path = _write(tmp_path / "Path.csv", "geoTime,latitude,longitude\n2000,31.0,121.0\n1000,31.0,121.0\n")
    assert [fx.timestamp_ms for fx in iter_fixes(csv_path)] == [2000, 1000]


def test_load_roster(tmp_path: Path) -> None:
    roster_path = _write(
        tmp_path / "roster.json",
        json.dumps(
            [
                {
                    "id": "t1",
                    "owner_id": "bob",
                    "path": [{"lat": 31.0, "lon": 121.0}, {"lat": 31.0, "lon": 121.001}, {"lat": 31.001, "lon": 121.0}],
                    "area_sqm": 4000,
                    "created_at": 123,
                },
                {"id": 2, "owner_id": "carol", "path": [], "is_active": False},
            ]
        ),
    )
    roster = load_roster_json(roster_path)
    assert [t.id for t in roster] == ["t1", "2"]
    assert roster[0].area_sqm == 4000.0
    assert roster[0].created_at_ms == 123
    assert roster[0].bounding_box.max_lat == 31.001
    assert not roster[1].active


@pytest.mark.parametrize(
    "text",
    ["not json", json.dumps({"id": "t1"}), json.dumps([{"id": "t1", "path": []}]), json.dumps([{"id": "t1", "owner_id": "a", "path": [{"lat": "x"}]}])],
)
def test_load_roster_rejects_malformed(tmp_path: Path, text: str) -> None:
    with pytest.raises(ValueError):
        load_roster_json(_write(tmp_path / "roster.json", text))


def test_write_record_and_path(tmp_path: Path, square_path: list[Coordinate]) -> None:
    rec = TerritoryRecord("me", tuple(square_path), 2500.0, BoundingBox.of(square_path), len(square_path), 1, 2)
    out = tmp_path / "out" / "record.json"
    write_record_json(rec, out)
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["owner_id"] == "me"
    assert payload["point_count"] == 12
    assert payload["polygon"].startswith("POLYGON((")

    csv_out = tmp_path / "vertices.csv"
    write_path_csv(square_path, csv_out)
    lines = csv_out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "index,latitude,longitude"
    assert len(lines) == 13


def test_default_params() -> None:
    p = EngineParams()
    assert p.min_distance_for_new_point_m == 10.0
    assert p.closure_distance_m == 30.0
    assert p.minimum_path_points == 10
    assert p.minimum_total_distance_m == 50.0
    assert p.minimum_enclosed_area_sqm == 100.0
    assert (p.warning_speed_kmh, p.stop_speed_kmh, p.gps_drift_kmh) == (15.0, 30.0, 50.0)
    assert (p.caution_distance_m, p.warning_distance_m, p.danger_distance_m) == (100.0, 50.0, 25.0)
    assert p.tick_interval_s == 2.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"warning_speed_kmh": 40.0},
        {"danger_distance_m": 200.0},
        {"tick_interval_s": 0.0},
        {"closure_distance_m": -1.0},
        {"min_segment_gap": 0},
    ],
)
def test_invalid_params_rejected(overrides: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        DEFAULT_PARAMS.with_overrides(**overrides)


def test_params_from_mapping() -> None:
    p = params_from_mapping({"closure_distance_m": 20.0})
    assert p.closure_distance_m == 20.0
    assert p.minimum_path_points == DEFAULT_PARAMS.minimum_path_points
    with pytest.raises(ValueError, match="未知配置项"):
        params_from_mapping({"closure_m": 20.0})


def test_params_from_mapping_coerces_json_numbers() -> None:
    p = params_from_mapping({"closure_distance_m": 20, "minimum_path_points": 12.0})
    assert p.closure_distance_m == 20.0 and isinstance(p.closure_distance_m, float)
    assert p.minimum_path_points == 12 and isinstance(p.minimum_path_points, int)


@pytest.mark.parametrize(
    "mapping",
    [
        {"minimum_path_points": "10"},
        {"minimum_path_points": 10.5},
        {"closure_distance_m": True},
        {"require_closure": 0},
        {"gps_drift_kmh": None},
    ],
)
def test_params_from_mapping_rejects_wrong_types(mapping: dict[str, object]) -> None:
    with pytest.raises(ValueError, match="类型"):
        params_from_mapping(mapping)


def test_load_params_from_json(tmp_path: Path) -> None:
    assert load_params(None) is DEFAULT_PARAMS
    cfg = _write(tmp_path / "cfg.json", json.dumps({"intersection_noise_m": 5.0, "require_closure": False}))
    p = load_params(str(cfg))
    assert p.intersection_noise_m == 5.0
    assert not p.require_closure

    with pytest.raises(ValueError):
        load_params(str(_write(tmp_path / "list.json", "[1, 2]")))
    with pytest.raises(ValueError):
        load_params(str(_write(tmp_path / "broken.json", "{")))
