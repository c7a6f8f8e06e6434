"""Input/output for fix logs, territory rosters and finalized records."""

from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Sequence

from territory_claim.models import Coordinate, Fix, Territory, TerritoryRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_accuracy(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    acc = float(value.strip())
    # Exports use -1 when the platform reported no accuracy.
    return acc if acc >= 0 else None


def _row_to_fix(row: dict[str, str]) -> Fix:
    return Fix(
        coordinate=Coordinate(float(row["latitude"].strip()), float(row["longitude"].strip())),
        timestamp_ms=int(row["geoTime"].strip()),
        horizontal_accuracy_m=_parse_accuracy(row.get("horizontalAccuracy")),
    )


def iter_fixes(csv_path: str | Path) -> Iterator[Fix]:
    """Yield fixes from an exported fix log in file order.

    Required columns: ``geoTime`` (epoch ms), ``latitude``, ``longitude``.
    ``horizontalAccuracy`` is optional. Broken rows are skipped.

    Raises:
        KeyError: If a required column is missing.
    """

    p = Path(csv_path)
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return
        for row in reader:
            try:
                yield _row_to_fix(row)
            except KeyError as exc:
                raise KeyError(f"CSV缺少必要字段：{exc}. 实际字段：{reader.fieldnames}") from exc
            except (ValueError, TypeError, AttributeError):
                # 某些行可能损坏/空行，直接跳过
                continue


def load_fixes(csv_path: str | Path) -> tuple[list[Fix], CsvSummary]:
    """Load all fixes into memory, sorted by timestamp (stable for ties)."""

    p = Path(csv_path)
    rows_total = 0
    parsed: list[Fix] = []
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames: Sequence[str] = reader.fieldnames or ()
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_row_to_fix(row))
            except (KeyError, ValueError, TypeError, AttributeError):
                continue

    parsed.sort(key=lambda fx: fx.timestamp_ms)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary


def _territory_from_json(item: dict[str, Any]) -> Territory:
    polygon = [Coordinate(float(pt["lat"]), float(pt["lon"])) for pt in item["path"]]
    return Territory(
        id=str(item["id"]),
        owner_id=str(item["owner_id"]),
        polygon=polygon,
        area_sqm=float(item.get("area_sqm", 0.0) or 0.0),
        created_at_ms=int(item.get("created_at", 0) or 0),
        active=bool(item.get("is_active", True)),
    )


def load_roster_json(json_path: str | Path) -> list[Territory]:
    """Read a roster file: a JSON list of ``{id, owner_id, path: [{lat, lon}, ...]}``.

    Raises:
        ValueError: If the file is not a JSON list or an entry is malformed.
    """

    p = Path(json_path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"领地名单不是合法JSON：{p}") from exc
    if not isinstance(data, list):
        raise ValueError(f"领地名单必须是JSON数组：{p}")

    roster: list[Territory] = []
    for idx, item in enumerate(data):
        try:
            roster.append(_territory_from_json(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"领地名单第 {idx} 项格式错误：{exc}") from exc
    return roster


def write_record_json(record: TerritoryRecord, out_path: str | Path) -> None:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(record.to_payload(), ensure_ascii=False, indent=2), encoding="utf-8")


def write_path_csv(points: Sequence[Coordinate], out_path: str | Path) -> None:
    """Write sampled vertices (index, latitude, longitude) to CSV."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["index", "latitude", "longitude"])
        w.writeheader()
        for i, c in enumerate(points):
            w.writerow({"index": i, "latitude": f"{c.latitude:.7f}", "longitude": f"{c.longitude:.7f}"})
