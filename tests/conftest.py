from __future__ import annotations

import pytest

from territory_claim.config import DEFAULT_PARAMS, EngineParams
from territory_claim.models import Coordinate, Fix, Territory

from tests.fixtures import BOWTIE_OFFSETS, SQUARE_CORNERS, T0_MS, fixes_from, path, ring


@pytest.fixture
def params() -> EngineParams:
    return DEFAULT_PARAMS


@pytest.fixture
def square_path() -> list[Coordinate]:
    return ring(SQUARE_CORNERS, per_side=3)


@pytest.fixture
def square_fixes(square_path: list[Coordinate]) -> list[Fix]:
    """The square walked at 6 km/h, one fix every 10 s."""

    return fixes_from(square_path, step_s=10.0)


@pytest.fixture
def bowtie_path() -> list[Coordinate]:
    return path(BOWTIE_OFFSETS)


@pytest.fixture
def bowtie_fixes(bowtie_path: list[Coordinate]) -> list[Fix]:
    return fixes_from(bowtie_path, step_s=20.0)


@pytest.fixture
def foreign_block() -> Territory:
    """100 m x 100 m territory of another user, 200-300 m east of the origin."""

    return Territory(
        id="t-foreign",
        owner_id="other",
        polygon=path([(0, 200), (0, 300), (100, 300), (100, 200)]),
        area_sqm=10_000.0,
        created_at_ms=T0_MS,
    )


class FakeClock:
    def __init__(self, now_ms: int = T0_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
