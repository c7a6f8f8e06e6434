from __future__ import annotations

import json
from pathlib import Path

import pytest

from territory_claim.cli import build_parser, main
from territory_claim.models import Fix

from tests.fixtures import fixes_from, path, write_fix_csv


@pytest.fixture
def square_csv(tmp_path: Path, square_fixes: list[Fix]) -> Path:
    return write_fix_csv(tmp_path / "Path.csv", square_fixes)


@pytest.fixture
def roster_json(tmp_path: Path) -> Path:
    corners = path([(20, 20), (20, 200), (200, 200), (200, 20)])
    out = tmp_path / "roster.json"
    out.write_text(
        json.dumps([{"id": "t1", "owner_id": "bob", "path": [{"lat": c.latitude, "lon": c.longitude} for c in corners]}]),
        encoding="utf-8",
    )
    return out


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_inspect(square_csv: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["inspect", "--csv", str(square_csv), "--json"]) == 0
    out = capsys.readouterr().out
    assert "parsed=12, skipped=0" in out
    payload = json.loads(out[out.index("{") :])
    assert payload["fixes"] == 12
    assert payload["drift_jumps"] == 0


def test_replay_valid_square(square_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    record = tmp_path / "record.json"
    vertices = tmp_path / "vertices.csv"
    code = main(
        ["replay", "--csv", str(square_csv), "--out-record", str(record), "--out-path", str(vertices), "--json"]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "VALID area=" in out
    assert json.loads(record.read_text(encoding="utf-8"))["point_count"] == 12
    assert len(vertices.read_text(encoding="utf-8").splitlines()) == 13


def test_replay_blocked_by_roster(square_csv: Path, roster_json: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["replay", "--csv", str(square_csv), "--roster", str(roster_json), "--owner", "me"])
    assert code == 1
    assert "path_crosses_foreign_territory" in capsys.readouterr().out


def test_replay_time_window(square_csv: Path, capsys: pytest.CaptureFixture[str]) -> None:
    # Only the first five fixes (08:00:00 - 08:00:40 Asia/Shanghai).
    code = main(["replay", "--csv", str(square_csv), "--until", "2025-01-01 08:00:40"])
    assert code == 1
    out = capsys.readouterr().out
    assert "fixes=5/5" in out
    assert "insufficient_points" in out


def test_check(square_csv: Path, roster_json: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["check", "--csv", str(square_csv), "--roster", str(roster_json)]) == 1
    assert "collision=True" in capsys.readouterr().out
    assert main(["check", "--csv", str(square_csv), "--roster", str(roster_json), "--owner", "BOB"]) == 0


def test_area(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    csv_path = write_fix_csv(tmp_path / "Path.csv", fixes_from(path([(0, 0), (0, 40), (40, 40), (40, 0)])))
    assert main(["area", "--csv", str(csv_path)]) == 0
    out = capsys.readouterr().out
    assert "raw_points=4" in out
    assert "raw_area=1600." in out or "raw_area=1599." in out


def test_bad_config_reports_error(square_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"no_such_option": 1}), encoding="utf-8")
    assert main(["replay", "--csv", str(square_csv), "--config", str(cfg)]) == 2
    assert "未知配置项" in capsys.readouterr().err


def test_mistyped_config_reports_error(square_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"minimum_path_points": "10"}), encoding="utf-8")
    assert main(["replay", "--csv", str(square_csv), "--config", str(cfg)]) == 2
    assert "minimum_path_points" in capsys.readouterr().err
