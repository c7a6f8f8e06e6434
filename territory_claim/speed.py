"""Speed and GPS-drift classification of incoming fixes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.geo import distance_m
from territory_claim.models import Fix, ReasonCode

logger = logging.getLogger(__name__)


class SpeedVerdictKind(str, Enum):
    ACCEPTED = "accepted"
    # Implausible jump, discarded without touching the overspeed counter.
    DRIFT = "drift"
    # Too fast, rejected from sampling, counter below the warning threshold.
    OVERSPEED = "overspeed"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class SpeedVerdict:
    """Classification of one fix."""

    kind: SpeedVerdictKind
    speed_kmh: float | None
    consecutive_overspeed: int
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.kind is SpeedVerdictKind.ACCEPTED

    @property
    def reason(self) -> ReasonCode | None:
        if self.kind is SpeedVerdictKind.DRIFT:
            return ReasonCode.GPS_DRIFT
        if self.kind is SpeedVerdictKind.WARNING:
            return ReasonCode.SPEED_WARNING
        if self.kind is SpeedVerdictKind.FATAL:
            return ReasonCode.SPEED_VIOLATION_FATAL
        return None


def speed_kmh_between(prev: Fix, cur: Fix) -> float | None:
    """Implied speed between two fixes, or None if time did not advance."""

    elapsed_s = (cur.timestamp_ms - prev.timestamp_ms) / 1000.0
    if elapsed_s <= 0:
        return None
    return distance_m(prev.coordinate, cur.coordinate) / elapsed_s * 3.6


class SpeedFilter:
    """Stateful classifier separating sensor drift from sustained overspeed.

    A single wild fix is treated as drift and never counts toward the
    overspeed counter; only consecutive plausible-but-too-fast fixes do.
    """

    def __init__(self, params: EngineParams = DEFAULT_PARAMS) -> None:
        self._params = params
        self.last_fix: Fix | None = None
        self.consecutive_overspeed = 0
        self.warning_message: str | None = None
        self.last_speed_kmh: float | None = None

    @property
    def warning_active(self) -> bool:
        return self.warning_message is not None

    def reset(self) -> None:
        self.last_fix = None
        self.consecutive_overspeed = 0
        self.warning_message = None
        self.last_speed_kmh = None

    def clear_overspeed(self) -> None:
        """Forget the overspeed streak and banner but keep the reference fix."""

        self.consecutive_overspeed = 0
        self.warning_message = None

    def classify(self, fix: Fix) -> SpeedVerdict:
        """Classify ``fix`` against the previously accepted fix and update state."""

        p = self._params
        if self.last_fix is None:
            self.last_fix = fix
            return SpeedVerdict(SpeedVerdictKind.ACCEPTED, None, self.consecutive_overspeed)

        speed = speed_kmh_between(self.last_fix, fix)
        if speed is None:
            # Same or older timestamp: only a co-located fix is plausible.
            jump_m = distance_m(self.last_fix.coordinate, fix.coordinate)
            if jump_m >= p.min_distance_for_new_point_m:
                logger.warning("GPS漂移：时间未前进却跳动 %.0f m，已忽略该点", jump_m)
                return SpeedVerdict(SpeedVerdictKind.DRIFT, None, self.consecutive_overspeed)
            return SpeedVerdict(SpeedVerdictKind.ACCEPTED, None, self.consecutive_overspeed)

        self.last_speed_kmh = speed
        logger.debug("速度检测：%.1f km/h，连续超速=%s", speed, self.consecutive_overspeed)

        if speed > p.gps_drift_kmh:
            logger.warning("GPS漂移：%.0f km/h，已忽略该点", speed)
            return SpeedVerdict(SpeedVerdictKind.DRIFT, speed, self.consecutive_overspeed)

        self.last_fix = fix

        if speed > p.stop_speed_kmh:
            self.consecutive_overspeed += 1
            if self.consecutive_overspeed >= p.stop_consecutive_count:
                self.warning_message = f"速度过快（{speed:.0f} km/h），已停止追踪"
                logger.error("连续严重超速 %.0f km/h（%s次），自动停止追踪", speed, self.consecutive_overspeed)
                return SpeedVerdict(
                    SpeedVerdictKind.FATAL, speed, self.consecutive_overspeed, self.warning_message
                )
            self.warning_message = f"速度过快（{speed:.0f} km/h），请减速"
            logger.warning(
                "严重超速 %.0f km/h（%s/%s）", speed, self.consecutive_overspeed, p.stop_consecutive_count
            )
            return SpeedVerdict(SpeedVerdictKind.WARNING, speed, self.consecutive_overspeed, self.warning_message)

        if speed > p.warning_speed_kmh:
            self.consecutive_overspeed += 1
            if self.consecutive_overspeed >= p.warning_consecutive_count:
                self.warning_message = f"移动速度过快（{speed:.0f} km/h），请步行"
                logger.warning("连续超速警告 %.0f km/h", speed)
                return SpeedVerdict(
                    SpeedVerdictKind.WARNING, speed, self.consecutive_overspeed, self.warning_message
                )
            return SpeedVerdict(SpeedVerdictKind.OVERSPEED, speed, self.consecutive_overspeed)

        self.consecutive_overspeed = 0
        if self.warning_message is not None:
            logger.info("速度恢复正常")
            self.warning_message = None
        return SpeedVerdict(SpeedVerdictKind.ACCEPTED, speed, 0)
