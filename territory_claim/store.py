"""In-memory stand-in for the territory persistence collaborator."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Iterable

from territory_claim.geo import distance_m
from territory_claim.models import Territory, TerritoryRecord

logger = logging.getLogger(__name__)


class InMemoryTerritoryStore:
    """Keeps territories in a dict keyed by id.

    Serves as both the sink for finalized records and the roster provider
    for collision checks. Deletion is soft: the stored territory is replaced
    by an inactive copy.
    """

    def __init__(self, territories: Iterable[Territory] = (), closure_tolerance_m: float = 30.0) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[str, Territory] = {t.id: t for t in territories}
        self._closure_tolerance_m = closure_tolerance_m

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def save(self, record: TerritoryRecord) -> Territory:
        """Persist a finalized record and return the stored territory.

        The polygon is closed explicitly if its endpoints are further apart
        than the closure tolerance.
        """

        polygon = list(record.ordered_points)
        if polygon and distance_m(polygon[0], polygon[-1]) > self._closure_tolerance_m:
            polygon.append(polygon[0])
        territory = Territory(
            id=str(uuid.uuid4()),
            owner_id=record.owner_id,
            polygon=polygon,
            area_sqm=record.area_sqm,
            bounding_box=record.bounding_box,
            created_at_ms=record.completed_at_ms or int(time.time() * 1000),
        )
        with self._lock:
            self._by_id[territory.id] = territory
        logger.info("领地保存成功，ID: %s，面积 %.0f 平方米", territory.id, territory.area_sqm)
        return territory

    def get(self, territory_id: str) -> Territory | None:
        with self._lock:
            return self._by_id.get(territory_id)

    def fetch_roster(self) -> list[Territory]:
        """All active territories, newest first."""

        with self._lock:
            active = [t for t in self._by_id.values() if t.active]
        return sorted(active, key=lambda t: t.created_at_ms, reverse=True)

    def list_owned(self, owner_id: str) -> list[Territory]:
        owner = owner_id.lower()
        return [t for t in self.fetch_roster() if t.owner_id.lower() == owner]

    def deactivate(self, territory_id: str) -> bool:
        """Soft-delete a territory. Returns False if it does not exist."""

        with self._lock:
            current = self._by_id.get(territory_id)
            if current is None:
                return False
            self._by_id[territory_id] = current.deactivated()
        logger.info("领地已删除: %s", territory_id)
        return True
