"""Tunable thresholds for the claim engine."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class EngineParams:
    """Parameters controlling sampling, filtering and validation.

    Distances are meters, speeds km/h, areas square meters.
    """

    # Path sampling
    min_distance_for_new_point_m: float = 10.0
    tick_interval_s: float = 2.0
    # When False, deliveries only update the last known fix and the tick does the sampling.
    sample_on_delivery: bool = True

    # Closure
    closure_distance_m: float = 30.0
    minimum_path_points: int = 10

    # Batch validation
    minimum_total_distance_m: float = 50.0
    minimum_enclosed_area_sqm: float = 100.0
    require_closure: bool = True

    # Speed / drift classification
    warning_speed_kmh: float = 15.0
    stop_speed_kmh: float = 30.0
    gps_drift_kmh: float = 50.0
    warning_consecutive_count: int = 2
    stop_consecutive_count: int = 2

    # Self-intersection. These are empirically tuned against 5-20 m consumer GPS error.
    live_skip_tail_segments: int = 2
    min_segment_gap: int = 5
    skip_head_segments: int = 4
    skip_tail_segments: int = 4
    intersection_noise_m: float = 10.0

    # Proximity banding (upper bounds of each tier)
    caution_distance_m: float = 100.0
    warning_distance_m: float = 50.0
    danger_distance_m: float = 25.0

    earth_radius_m: float = 6_371_000.0

    def __post_init__(self) -> None:
        for name in (
            "min_distance_for_new_point_m",
            "closure_distance_m",
            "minimum_total_distance_m",
            "minimum_enclosed_area_sqm",
            "intersection_noise_m",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)!r}")
        if self.tick_interval_s <= 0:
            raise ValueError(f"tick_interval_s must be > 0, got {self.tick_interval_s!r}")
        if self.earth_radius_m <= 0:
            raise ValueError(f"earth_radius_m must be > 0, got {self.earth_radius_m!r}")
        if not (0 < self.warning_speed_kmh <= self.stop_speed_kmh <= self.gps_drift_kmh):
            raise ValueError(
                "speed thresholds must satisfy 0 < warning <= stop <= drift, got "
                f"{self.warning_speed_kmh}/{self.stop_speed_kmh}/{self.gps_drift_kmh}"
            )
        if not (0 < self.danger_distance_m <= self.warning_distance_m <= self.caution_distance_m):
            raise ValueError(
                "proximity bands must satisfy 0 < danger <= warning <= caution, got "
                f"{self.danger_distance_m}/{self.warning_distance_m}/{self.caution_distance_m}"
            )
        for name in ("warning_consecutive_count", "stop_consecutive_count", "min_segment_gap"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)!r}")
        for name in ("minimum_path_points", "live_skip_tail_segments", "skip_head_segments", "skip_tail_segments"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)!r}")

    def with_overrides(self, **overrides: Any) -> EngineParams:
        return replace(self, **overrides)


DEFAULT_PARAMS = EngineParams()


def _coerce(name: str, kind: str, value: Any) -> Any:
    if kind == "bool":
        if isinstance(value, bool):
            return value
    elif kind == "int":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"配置项 {name} 需要 {kind} 类型，实际为 {value!r}")


def params_from_mapping(mapping: Mapping[str, Any], base: EngineParams = DEFAULT_PARAMS) -> EngineParams:
    """Apply a mapping of overrides on top of ``base``.

    Raises:
        ValueError: On unknown keys, mistyped values or values that fail validation.
    """

    known = {f.name: f.type for f in fields(EngineParams)}
    unknown = sorted(set(mapping) - set(known))
    if unknown:
        raise ValueError(f"未知配置项：{unknown}。可用：{sorted(known)}")
    return replace(base, **{k: _coerce(k, known[k], v) for k, v in mapping.items()})


@lru_cache(maxsize=None)
def load_params(path: str | Path | None = None) -> EngineParams:
    """Load engine parameters from a JSON object file (defaults if ``path`` is None)."""

    if path is None:
        return DEFAULT_PARAMS
    cfg_path = Path(path)
    with cfg_path.open("r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"配置文件不是合法JSON：{cfg_path}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"配置文件必须是JSON对象：{cfg_path}")
    return params_from_mapping(data)
