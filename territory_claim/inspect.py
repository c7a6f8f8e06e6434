"""Inspect a fix log before replaying it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.geo import path_length_m
from territory_claim.models import BoundingBox, Fix
from territory_claim.speed import speed_kmh_between
from territory_claim.timeutils import DeltaStats, delta_stats


@dataclass(frozen=True, slots=True)
class InspectResult:
    """High-level fix log inspection result."""

    fixes: int
    min_time_ms: int | None
    max_time_ms: int | None
    delta: DeltaStats | None
    bounding_box: BoundingBox | None
    raw_length_m: float
    max_speed_kmh: float | None
    # Consecutive pairs whose implied speed exceeds the drift threshold.
    drift_jumps: int
    duplicate_timestamps: int


def inspect_fixes(fixes: Sequence[Fix], params: EngineParams = DEFAULT_PARAMS) -> InspectResult:
    """Summarize fixes (assumed sorted by timestamp)."""

    if not fixes:
        return InspectResult(
            fixes=0,
            min_time_ms=None,
            max_time_ms=None,
            delta=None,
            bounding_box=None,
            raw_length_m=0.0,
            max_speed_kmh=None,
            drift_jumps=0,
            duplicate_timestamps=0,
        )

    times = [fx.timestamp_ms for fx in fixes]
    dupe = sum(1 for i in range(1, len(times)) if times[i] == times[i - 1])

    speeds = [s for s in (speed_kmh_between(fixes[i - 1], fixes[i]) for i in range(1, len(fixes))) if s is not None]
    coords = [fx.coordinate for fx in fixes]
    return InspectResult(
        fixes=len(fixes),
        min_time_ms=min(times),
        max_time_ms=max(times),
        delta=delta_stats(sorted(times)),
        bounding_box=BoundingBox.of(coords),
        raw_length_m=path_length_m(coords),
        max_speed_kmh=max(speeds) if speeds else None,
        drift_jumps=sum(1 for s in speeds if s > params.gps_drift_kmh),
        duplicate_timestamps=dupe,
    )
