"""Batch validation of a finished path."""

from __future__ import annotations

import logging
from typing import Sequence

from territory_claim.area import polygon_area_sqm
from territory_claim.closure import is_closed_path
from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.intersection import has_self_intersection
from territory_claim.models import Coordinate, ReasonCode, ValidationResult

logger = logging.getLogger(__name__)


def validate_path(
    points: Sequence[Coordinate],
    total_distance_m: float,
    params: EngineParams = DEFAULT_PARAMS,
    *,
    is_closed: bool | None = None,
) -> ValidationResult:
    """Run the ordered, short-circuiting validation pipeline.

    Order: point count, traveled distance, closure (if required),
    self-intersection, enclosed area. The first failing check decides the
    reason.

    Args:
        points: Sampled vertices in walking order.
        total_distance_m: Distance accumulated by the sampler.
        params: Thresholds.
        is_closed: Closure flag already known to the session. Computed from
            ``points`` when omitted.

    Returns:
        An immutable ValidationResult.
    """

    n = len(points)
    if n < params.minimum_path_points:
        logger.info("验证失败：点数不足 %s/%s", n, params.minimum_path_points)
        return ValidationResult.failed(ReasonCode.INSUFFICIENT_POINTS)

    if total_distance_m < params.minimum_total_distance_m:
        logger.info("验证失败：距离不足 %.1f/%.1f 米", total_distance_m, params.minimum_total_distance_m)
        return ValidationResult.failed(ReasonCode.INSUFFICIENT_DISTANCE)

    if params.require_closure:
        closed = is_closed_path(points, params) if is_closed is None else is_closed
        if not closed:
            logger.info("验证失败：轨迹未闭合")
            return ValidationResult.failed(ReasonCode.PATH_NOT_CLOSED)

    if has_self_intersection(points, params):
        logger.info("验证失败：轨迹自相交")
        return ValidationResult.failed(ReasonCode.SELF_INTERSECTION)

    area = polygon_area_sqm(points, params.earth_radius_m)
    if area < params.minimum_enclosed_area_sqm:
        logger.info("验证失败：面积不足 %.1f/%.1f 平方米", area, params.minimum_enclosed_area_sqm)
        return ValidationResult.failed(ReasonCode.INSUFFICIENT_AREA, area)

    logger.info("验证通过：%s 个点，距离 %.0f 米，面积 %.0f 平方米", n, total_distance_m, area)
    return ValidationResult.passed(area)
