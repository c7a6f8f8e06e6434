"""Offline replay of a recorded fix log through a tracking session."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from territory_claim.collision import CollisionDetector
from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.models import (
    Coordinate,
    Fix,
    SessionState,
    Territory,
    TerritoryRecord,
    ValidationResult,
    WarningLevel,
)
from territory_claim.session import SessionSnapshot, TrackingSession
from territory_claim.speed import SpeedVerdictKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SpeedEvent:
    fix_index: int
    timestamp_ms: int
    kind: SpeedVerdictKind
    speed_kmh: float | None
    message: str


@dataclass(frozen=True, slots=True)
class LevelChange:
    fix_index: int
    timestamp_ms: int
    level: WarningLevel
    nearest_distance_m: float | None


@dataclass(slots=True)
class ReplayReport:
    """Everything a replay produced, for CLI output and the dashboard."""

    fixes_delivered: int = 0
    path: tuple[Coordinate, ...] = ()
    validation: ValidationResult | None = None
    record: TerritoryRecord | None = None
    final: SessionSnapshot | None = None
    forced_stop: bool = False
    closed_at_fix: int | None = None
    self_intersection_at_fix: int | None = None
    speed_events: list[SpeedEvent] = field(default_factory=list)
    level_changes: list[LevelChange] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.validation is not None and self.validation.is_valid


class _ReplayClock:
    """Session clock that follows fix timestamps instead of wall time."""

    def __init__(self) -> None:
        self.now_ms = 0

    def __call__(self) -> int:
        return self.now_ms


def replay_fixes(
    fixes: Sequence[Fix],
    params: EngineParams = DEFAULT_PARAMS,
    owner_id: str = "replay",
    roster: Iterable[Territory] = (),
    tick_every: int | None = None,
) -> ReplayReport:
    """Run a full session (start, deliver every fix, stop) over ``fixes``.

    Args:
        fixes: Fixes in delivery order.
        params: Engine thresholds.
        owner_id: Owner of the session; roster entries of this owner are ignored.
        roster: Territories claimed by anyone.
        tick_every: Also fire a sampling tick after every N-th delivery.
            Needed when ``params.sample_on_delivery`` is False.

    Returns:
        ReplayReport. The session stops on its own on sustained overspeed;
        remaining fixes are then not delivered.
    """

    clock = _ReplayClock()
    if fixes:
        clock.now_ms = fixes[0].timestamp_ms
    detector = CollisionDetector(params, roster=roster, owner_id=owner_id)
    session = TrackingSession(params, owner_id=owner_id, collision_detector=detector, clock=clock)
    report = ReplayReport()

    last_level = WarningLevel.SAFE
    session.start()
    for idx, fix in enumerate(fixes):
        clock.now_ms = max(clock.now_ms, fix.timestamp_ms)
        verdict = session.deliver_fix(fix)
        report.fixes_delivered += 1
        if tick_every and (idx + 1) % tick_every == 0:
            verdict = session.tick() or verdict

        if verdict is not None and verdict.kind is not SpeedVerdictKind.ACCEPTED:
            report.speed_events.append(
                SpeedEvent(idx, fix.timestamp_ms, verdict.kind, verdict.speed_kmh, verdict.message)
            )

        snap = session.snapshot()
        if snap.is_closed and report.closed_at_fix is None:
            report.closed_at_fix = idx
        if snap.live_self_intersection and report.self_intersection_at_fix is None:
            report.self_intersection_at_fix = idx
        if snap.warning_level is not last_level:
            report.level_changes.append(LevelChange(idx, fix.timestamp_ms, snap.warning_level, snap.nearest_distance_m))
            last_level = snap.warning_level

        if snap.state is not SessionState.TRACKING:
            report.forced_stop = True
            logger.warning("回放在第 %s 个点处被强制停止", idx)
            break

    if session.state is SessionState.TRACKING:
        session.stop()

    report.path = session.path
    report.validation = session.validation
    report.record = session.build_record()
    report.final = session.snapshot()
    return report
