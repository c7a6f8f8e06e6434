from __future__ import annotations

import argparse
import csv
import json
import math
import random
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo

from territory_claim.geo import offset_m
from territory_claim.models import Coordinate


TZ: Final[str] = "Asia/Shanghai"
ORIGIN: Final[Coordinate] = Coordinate(31.2304000, 121.4737000)


@dataclass(frozen=True, slots=True)
class Leg:
    """Straight walk from the current position to (north_m, east_m) at ``speed_kmh``."""

    north_m: float
    east_m: float
    speed_kmh: float


SHAPES: Final[dict[str, list[Leg]]] = {
    # 80 m square walked counter-clockwise.
    "square": [Leg(0, 80, 5), Leg(80, 80, 5), Leg(80, 0, 5), Leg(0, 0, 5)],
    # Bow tie: the two diagonals cross in the middle.
    "figure8": [Leg(80, 80, 5), Leg(0, 80, 5), Leg(80, 0, 5), Leg(0, 0, 5)],
    # Starts walking, then gets into a car.
    "drive": [Leg(0, 60, 5), Leg(0, 400, 40), Leg(0, 900, 40)],
}


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def generate_fixes(
    *,
    shape: str,
    seed: int,
    start_local: datetime,
    interval_s: float,
    jitter_m: float,
    glitch_rate: float,
) -> list[dict[str, str]]:
    """Generate fake fix rows walking ``shape`` with jitter and occasional drift glitches."""

    rng = random.Random(seed)
    t_ms = _epoch_ms(start_local.replace(tzinfo=ZoneInfo(TZ)))
    north, east = 0.0, 0.0
    out: list[dict[str, str]] = []

    def emit(n: float, e: float, hacc: float) -> None:
        c = offset_m(ORIGIN, n + rng.uniform(-jitter_m, jitter_m), e + rng.uniform(-jitter_m, jitter_m))
        out.append(
            {
                "geoTime": str(t_ms),
                "latitude": f"{c.latitude:.7f}",
                "longitude": f"{c.longitude:.7f}",
                "horizontalAccuracy": f"{hacc:.1f}",
            }
        )

    emit(north, east, 5.0)
    for leg in SHAPES[shape]:
        length = math.hypot(leg.north_m - north, leg.east_m - east)
        step_m = leg.speed_kmh / 3.6 * interval_s
        steps = max(1, math.ceil(length / step_m))
        for k in range(1, steps + 1):
            t_ms += int(interval_s * 1000)
            n = north + (leg.north_m - north) * k / steps
            e = east + (leg.east_m - east) * k / steps
            if rng.random() < glitch_rate:
                # Multipath jump a few hundred meters away, then back on track next fix.
                emit(n + rng.uniform(200, 400), e - rng.uniform(200, 400), 65.0)
                continue
            emit(n, e, rng.choice([3.0, 5.0, 8.0, 12.0]))
        north, east = leg.north_m, leg.east_m
    return out


def generate_roster(seed: int) -> list[dict[str, object]]:
    """A foreign territory just east of the square, for proximity warnings."""

    rng = random.Random(seed)
    corners = [(10, 150), (10, 230), (70, 230), (70, 150)]
    path = []
    for n, e in corners:
        c = offset_m(ORIGIN, n + rng.uniform(-1, 1), e + rng.uniform(-1, 1))
        path.append({"lat": round(c.latitude, 7), "lon": round(c.longitude, 7)})
    return [{"id": "t-neighbour", "owner_id": "neighbour", "path": path, "area_sqm": 4800.0, "is_active": True}]


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake fix log for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/Path.csv", help="Output CSV path")
    p.add_argument("--shape", type=str, default="square", choices=sorted(SHAPES), help="Walked shape")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--interval", type=float, default=2.0, help="Seconds between fixes")
    p.add_argument("--jitter", type=float, default=2.0, help="Uniform position jitter in meters")
    p.add_argument("--glitch-rate", type=float, default=0.02, help="Probability of a drift glitch per fix")
    p.add_argument("--roster-out", type=str, default=None, help="Also write a roster JSON next to the path")
    p.add_argument(
        "--start",
        type=str,
        default="2025-01-01 08:00:00",
        help="Start local time in Asia/Shanghai, e.g. '2025-01-01 08:00:00'",
    )
    args = p.parse_args()

    rows = generate_fixes(
        shape=args.shape,
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
        interval_s=args.interval,
        jitter_m=args.jitter,
        glitch_rate=args.glitch_rate,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["geoTime", "latitude", "longitude", "horizontalAccuracy"])
        w.writeheader()
        w.writerows(rows)
    print(f"Generated: {out_path} (rows={len(rows)}, shape={args.shape}, seed={args.seed})")

    if args.roster_out:
        roster_path = Path(args.roster_out)
        roster_path.parent.mkdir(parents=True, exist_ok=True)
        roster_path.write_text(json.dumps(generate_roster(args.seed), indent=2), encoding="utf-8")
        print(f"Generated: {roster_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
