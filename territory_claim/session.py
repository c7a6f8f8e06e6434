"""Tracking session: the single writer that owns a user's path.

Two producers feed a session: the platform's fix delivery (irregular,
push-based) and a fixed-interval sampling tick that re-evaluates the last
known fix. Both go through one re-entrant lock, so vertex order is never
corrupted by concurrent appends.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from territory_claim.closure import ClosureDetector
from territory_claim.collision import CollisionDetector, RosterProvider
from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.intersection import newest_segment_intersects
from territory_claim.models import (
    BoundingBox,
    CollisionResult,
    Coordinate,
    Fix,
    ReasonCode,
    SessionState,
    TerritoryRecord,
    ValidationResult,
    WarningLevel,
)
from territory_claim.sampler import PathSampler
from territory_claim.speed import SpeedFilter, SpeedVerdict, SpeedVerdictKind
from territory_claim.validation import validate_path

logger = logging.getLogger(__name__)

Subscriber = Callable[["SessionSnapshot"], None]


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only projection of a session for presentation code."""

    state: SessionState
    point_count: int
    total_distance_m: float
    duration_s: float
    speed_kmh: float | None
    speed_warning: str | None
    warning_level: WarningLevel
    proximity_message: str
    nearest_distance_m: float | None
    is_closed: bool
    live_self_intersection: bool
    path_version: int
    stop_reason: ReasonCode | None
    validation: ValidationResult | None

    @property
    def blocking(self) -> bool:
        """True when the UI should refuse to finalize."""

        if self.warning_level.is_blocking:
            return True
        return self.validation is not None and not self.validation.is_valid


class TrackingSession:
    """State machine ``IDLE -> TRACKING -> FINALIZING -> VALID | INVALID``.

    ``INVALID`` sessions can be resumed (keep walking, then stop again) or
    reset; they are never auto-corrected.
    """

    def __init__(
        self,
        params: EngineParams = DEFAULT_PARAMS,
        owner_id: str = "",
        collision_detector: CollisionDetector | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._params = params
        self.owner_id = owner_id
        self._clock = clock or _wall_clock_ms
        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []
        self._ticker: SamplingTicker | None = None

        self._filter = SpeedFilter(params)
        self._sampler = PathSampler(params)
        self._closure = ClosureDetector(params)
        self._collision_detector = collision_detector or CollisionDetector(params, owner_id=owner_id or None)

        self._state = SessionState.IDLE
        self._latest_fix: Fix | None = None
        self._latest_processed = True
        self._started_at_ms: int | None = None
        self._stopped_at_ms: int | None = None
        self._live_intersection = False
        self._collision = CollisionResult.safe()
        self._validation: ValidationResult | None = None
        self._stop_reason: ReasonCode | None = None
        self.last_speed_verdict: SpeedVerdict | None = None

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def params(self) -> EngineParams:
        return self._params

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def path(self) -> tuple[Coordinate, ...]:
        with self._lock:
            return self._sampler.points

    @property
    def total_distance_m(self) -> float:
        with self._lock:
            return self._sampler.total_distance_m

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closure.is_closed

    @property
    def collision(self) -> CollisionResult:
        with self._lock:
            return self._collision

    @property
    def validation(self) -> ValidationResult | None:
        with self._lock:
            return self._validation

    @property
    def started_at_ms(self) -> int | None:
        return self._started_at_ms

    @property
    def collision_detector(self) -> CollisionDetector:
        return self._collision_detector

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._snapshot_locked()

    # ------------------------------------------------------------------
    # Change notification

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for snapshots; returns an unsubscribe function."""

        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, snap: SessionSnapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snap)
            except Exception:
                logger.exception("会话订阅者回调失败：%r", callback)

    # ------------------------------------------------------------------
    # Roster

    def refresh_roster(self, provider: RosterProvider) -> None:
        """Pull a fresh roster of foreign territories."""

        territories = provider.fetch_roster()
        with self._lock:
            self._collision_detector.update_roster(territories)

    # ------------------------------------------------------------------
    # Transitions

    def start(self) -> bool:
        """Begin tracking. Only valid from IDLE."""

        with self._lock:
            if self._state is not SessionState.IDLE:
                logger.warning("开始追踪失败：当前状态为 %s", self._state.value)
                return False
            self._clear_locked()
            self._state = SessionState.TRACKING
            self._started_at_ms = self._clock()
            logger.info("开始路径追踪")
            if self._latest_fix is not None:
                self._process_locked(self._latest_fix)
            snap = self._snapshot_locked()
        self._notify(snap)
        return True

    def deliver_fix(self, fix: Fix) -> SpeedVerdict | None:
        """Fix-delivery callback. Stores the fix and samples it if configured to."""

        with self._lock:
            self._latest_fix = fix
            self._latest_processed = False
            if self._state is not SessionState.TRACKING or not self._params.sample_on_delivery:
                return None
            verdict = self._process_locked(fix)
            snap = self._snapshot_locked()
        self._notify(snap)
        return verdict

    def tick(self) -> SpeedVerdict | None:
        """Sampling tick. Re-evaluates the last known fix if it is still pending."""

        with self._lock:
            if self._state is not SessionState.TRACKING:
                return None
            verdict = None
            if self._latest_fix is not None and not self._latest_processed:
                verdict = self._process_locked(self._latest_fix)
            snap = self._snapshot_locked()
        self._notify(snap)
        return verdict

    def stop(self) -> ValidationResult | None:
        """Stop tracking and finalize. Returns None if not tracking."""

        with self._lock:
            if self._state is not SessionState.TRACKING:
                logger.warning("停止追踪失败：当前未在追踪（%s）", self._state.value)
                return None
            result = self._stop_locked(None)
            snap = self._snapshot_locked()
        self._notify(snap)
        return result

    def resume(self) -> bool:
        """Continue tracking an INVALID session, keeping the recorded path."""

        with self._lock:
            if self._state is not SessionState.INVALID:
                logger.warning("继续追踪失败：当前状态为 %s", self._state.value)
                return False
            self._state = SessionState.TRACKING
            self._validation = None
            self._stop_reason = None
            self._stopped_at_ms = None
            self._filter.clear_overspeed()
            logger.info("继续路径追踪，已有 %s 个点", len(self._sampler))
            snap = self._snapshot_locked()
        self._notify(snap)
        return True

    def reset(self) -> None:
        """Drop the path and return to IDLE from any state."""

        with self._lock:
            self._cancel_ticker_locked()
            self._clear_locked()
            self._state = SessionState.IDLE
            logger.info("会话已重置")
            snap = self._snapshot_locked()
        self._notify(snap)

    def build_record(self, completed_at_ms: int | None = None) -> TerritoryRecord | None:
        """Outbound record for the persistence collaborator; only for VALID sessions."""

        with self._lock:
            if self._state is not SessionState.VALID or self._validation is None:
                return None
            points = self._sampler.points
            return TerritoryRecord(
                owner_id=self.owner_id,
                ordered_points=points,
                area_sqm=self._validation.computed_area_sqm,
                bounding_box=BoundingBox.of(points),
                point_count=len(points),
                started_at_ms=self._started_at_ms,
                completed_at_ms=completed_at_ms if completed_at_ms is not None else self._stopped_at_ms,
            )

    # ------------------------------------------------------------------
    # Ticker

    def start_ticker(self, interval_s: float | None = None) -> SamplingTicker:
        """Start a background sampling tick bound to this session."""

        with self._lock:
            self._cancel_ticker_locked()
            ticker = SamplingTicker(self, interval_s or self._params.tick_interval_s)
            self._ticker = ticker
        ticker.start()
        return ticker

    def _cancel_ticker_locked(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    # ------------------------------------------------------------------
    # Internals (lock held)

    def _clear_locked(self) -> None:
        self._filter.reset()
        self._sampler.clear()
        self._closure.reset()
        self._started_at_ms = None
        self._stopped_at_ms = None
        self._live_intersection = False
        self._collision = CollisionResult.safe()
        self._validation = None
        self._stop_reason = None
        self.last_speed_verdict = None

    def _process_locked(self, fix: Fix) -> SpeedVerdict:
        self._latest_processed = True
        verdict = self._filter.classify(fix)
        self.last_speed_verdict = verdict

        if verdict.kind is SpeedVerdictKind.FATAL:
            self._stop_locked(ReasonCode.SPEED_VIOLATION_FATAL)
            return verdict
        if not verdict.accepted:
            return verdict

        if self._sampler.offer(fix.coordinate):
            points = self._sampler.points
            self._closure.update(points)
            if not self._live_intersection and newest_segment_intersects(points, self._params):
                self._live_intersection = True
            self._collision = self._collision_detector.check(points)
        return verdict

    def _stop_locked(self, reason: ReasonCode | None) -> ValidationResult:
        self._cancel_ticker_locked()
        self._state = SessionState.FINALIZING
        self._stop_reason = reason
        self._stopped_at_ms = self._clock()
        logger.info(
            "停止路径追踪，共 %s 个点，距离 %.0f 米%s",
            len(self._sampler),
            self._sampler.total_distance_m,
            "（超速强制停止）" if reason is ReasonCode.SPEED_VIOLATION_FATAL else "",
        )
        return self._finalize_locked()

    def _finalize_locked(self) -> ValidationResult:
        points = self._sampler.points
        collision = self._collision_detector.check(points)
        self._collision = collision
        result = validate_path(
            points,
            self._sampler.total_distance_m,
            self._params,
            is_closed=self._closure.is_closed,
        )
        if collision.has_collision:
            logger.error("圈地被阻止：%s", collision.message)
            result = ValidationResult.failed(collision.reason, result.computed_area_sqm)

        self._validation = result
        self._state = SessionState.VALID if result.is_valid else SessionState.INVALID
        if result.is_valid:
            logger.info("圈地成功，面积 %.0f 平方米", result.computed_area_sqm)
        else:
            logger.warning("圈地失败：%s", result.failure_reason.value)
        return result

    def _snapshot_locked(self) -> SessionSnapshot:
        if self._started_at_ms is None:
            duration_s = 0.0
        else:
            end_ms = self._stopped_at_ms if self._stopped_at_ms is not None else self._clock()
            duration_s = max(0.0, (end_ms - self._started_at_ms) / 1000.0)
        return SessionSnapshot(
            state=self._state,
            point_count=len(self._sampler),
            total_distance_m=self._sampler.total_distance_m,
            duration_s=duration_s,
            speed_kmh=self._filter.last_speed_kmh,
            speed_warning=self._filter.warning_message,
            warning_level=self._collision.warning_level,
            proximity_message=self._collision.message,
            nearest_distance_m=self._collision.nearest_distance_m,
            is_closed=self._closure.is_closed,
            live_self_intersection=self._live_intersection,
            path_version=self._sampler.version,
            stop_reason=self._stop_reason,
            validation=self._validation,
        )


class SamplingTicker:
    """Background thread calling :meth:`TrackingSession.tick` at a fixed interval."""

    def __init__(self, session: TrackingSession, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s!r}")
        self._session = session
        self._interval_s = interval_s
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name="territory-sampling-tick", daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        # Called with the session lock held, so never join here.
        self._stopped.set()

    def join(self, timeout: float | None = None) -> None:
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.wait(self._interval_s):
            self._session.tick()
