from __future__ import annotations

import pytest

from territory_claim.closure import ClosureDetector, distance_to_start_m, is_closed_path
from territory_claim.config import EngineParams
from territory_claim.models import Coordinate
from territory_claim.sampler import PathSampler

from tests.fixtures import at, path

# Nine vertices around an 80 m square, ending on the start meridian.
_LOOP = [(0, 0), (0, 40), (0, 80), (40, 80), (80, 80), (80, 40), (80, 0), (60, 0), (45, 0)]


def test_sampler_records_first_point_and_gates_by_distance(params: EngineParams) -> None:
    s = PathSampler(params)
    assert s.offer(at(0, 0))
    assert not s.offer(at(0, 5))
    assert s.offer(at(0, 12))
    assert len(s) == 2
    assert s.total_distance_m == pytest.approx(12.0, rel=1e-3)
    assert s.first == at(0, 0)
    assert s.last == at(0, 12)


def test_sampler_accepts_point_just_past_threshold(params: EngineParams) -> None:
    s = PathSampler(params)
    s.offer(at(0, 0))
    assert s.offer(at(10.01, 0))


def test_sampler_version_and_clear(params: EngineParams) -> None:
    s = PathSampler(params)
    s.offer(at(0, 0))
    s.offer(at(0, 3))
    v = s.version
    assert v == 1
    s.force_append(at(0, 3))
    assert len(s) == 2
    assert s.version == 2
    s.clear()
    assert len(s) == 0
    assert s.total_distance_m == 0.0
    assert s.version == 3
    assert s.first is None


def test_sampler_points_are_a_copy(params: EngineParams) -> None:
    s = PathSampler(params)
    s.offer(at(0, 0))
    pts = s.points
    s.offer(at(0, 20))
    assert len(pts) == 1


def test_distance_to_start() -> None:
    assert distance_to_start_m([at(0, 0)]) is None
    assert distance_to_start_m(path([(0, 0), (0, 40), (30, 0)])) == pytest.approx(30.0, rel=1e-6)


def test_nine_vertices_never_close(params: EngineParams) -> None:
    pts = path(_LOOP[:-1] + [(1, 0)])
    assert len(pts) == 9
    assert not is_closed_path(pts, params)


@pytest.mark.parametrize(
    ("gap_m", "closed"),
    [(29.9, True), (30.1, False)],
)
def test_closure_tolerance(params: EngineParams, gap_m: float, closed: bool) -> None:
    pts = path(_LOOP + [(gap_m, 0)])
    assert len(pts) == 10
    assert is_closed_path(pts, params) is closed


def test_detector_reports_transition_once_and_stays_closed(params: EngineParams) -> None:
    d = ClosureDetector(params)
    pts: list[Coordinate] = path(_LOOP)
    assert not d.update(pts)
    pts.append(at(20, 0))
    assert d.update(pts)
    assert d.is_closed

    pts.append(at(20, 200))
    assert not d.update(pts)
    assert d.is_closed

    d.reset()
    assert not d.is_closed
