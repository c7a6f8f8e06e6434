from __future__ import annotations

import pytest

from territory_claim.models import BoundingBox, Coordinate, Territory, TerritoryRecord
from territory_claim.store import InMemoryTerritoryStore

from tests.fixtures import T0_MS, path


def _record(points: list[Coordinate], owner: str = "me", completed_at_ms: int = T0_MS) -> TerritoryRecord:
    return TerritoryRecord(
        owner_id=owner,
        ordered_points=tuple(points),
        area_sqm=2500.0,
        bounding_box=BoundingBox.of(points),
        point_count=len(points),
        started_at_ms=completed_at_ms - 60_000,
        completed_at_ms=completed_at_ms,
    )


def test_save_assigns_id_and_keeps_near_closed_polygon(square_path: list[Coordinate]) -> None:
    store = InMemoryTerritoryStore()
    saved = store.save(_record(square_path))
    assert saved.id
    assert len(store) == 1
    assert store.get(saved.id) == saved
    assert saved.polygon == tuple(square_path)
    assert saved.area_sqm == 2500.0
    assert saved.created_at_ms == T0_MS
    assert saved.active


def test_save_closes_wide_open_polygon() -> None:
    u_shape = path([(0, 0), (80, 0), (80, 80), (0, 80)])
    saved = InMemoryTerritoryStore().save(_record(u_shape))
    assert len(saved.polygon) == 5
    assert saved.polygon[-1] == saved.polygon[0]


def test_roster_is_newest_first_and_skips_deleted(square_path: list[Coordinate]) -> None:
    store = InMemoryTerritoryStore()
    old = store.save(_record(square_path, owner="a", completed_at_ms=T0_MS))
    new = store.save(_record(square_path, owner="b", completed_at_ms=T0_MS + 1000))
    assert [t.id for t in store.fetch_roster()] == [new.id, old.id]

    assert store.deactivate(old.id)
    assert [t.id for t in store.fetch_roster()] == [new.id]
    gone = store.get(old.id)
    assert gone is not None and not gone.active
    assert len(store) == 2


def test_deactivate_unknown_id() -> None:
    assert not InMemoryTerritoryStore().deactivate("nope")


def test_list_owned_is_case_insensitive(foreign_block: Territory, square_path: list[Coordinate]) -> None:
    store = InMemoryTerritoryStore([foreign_block])
    mine = store.save(_record(square_path, owner="Me"))
    assert [t.id for t in store.list_owned("me")] == [mine.id]
    assert [t.id for t in store.list_owned("OTHER")] == [foreign_block.id]


def test_territory_is_immutable(foreign_block: Territory) -> None:
    with pytest.raises(AttributeError):
        foreign_block.active = False  # type: ignore[misc]
    assert not foreign_block.deactivated().active
    assert foreign_block.active
