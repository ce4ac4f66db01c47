from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from .geo import distance_km, validate_location
from .models import (
    AvailabilityStatus,
    DispatchCandidate,
    DispatchOutcome,
    DispatchUnit,
    EntityKind,
    round_half_up,
)
from .store_protocol import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class DispatchSelector:
    store: EntityStore
    hotline: str = "994"
    eta_minutes_per_km: float = 3.0

    def _units(self) -> list[DispatchUnit]:
        return [DispatchUnit.from_record(row) for row in self.store.get_all(EntityKind.DISPATCHES)]

    def find_closest_dispatch(self, location: Any) -> DispatchUnit | None:
        """Nearest AVAILABLE unit; falls back to any located unit when none is free."""
        origin = validate_location(location)
        units = self._units()
        available = [
            unit
            for unit in units
            if unit.status == AvailabilityStatus.AVAILABLE and unit.location is not None
        ]
        if not available:
            fallback = next((unit for unit in units if unit.location is not None), None)
            if fallback is not None:
                logger.warning(
                    "No AVAILABLE dispatch unit; falling back to %s (status=%s)",
                    fallback.id,
                    fallback.status.value,
                )
            return fallback

        closest: DispatchUnit | None = None
        min_distance = float("inf")
        for unit in available:
            distance = distance_km(origin, unit.location)
            if distance < min_distance:
                min_distance = distance
                closest = unit
        return closest

    def dispatch_emergency(self, location: Any) -> DispatchOutcome:
        origin = validate_location(location)
        candidates: list[DispatchCandidate] = []
        for unit in self._units():
            if unit.status != AvailabilityStatus.AVAILABLE or unit.location is None:
                continue
            distance = distance_km(origin, unit.location)
            candidates.append(
                DispatchCandidate(
                    unit=unit,
                    distance_km=distance,
                    eta_minutes=round_half_up(distance * self.eta_minutes_per_km),
                )
            )
        if not candidates:
            return DispatchOutcome(
                success=False,
                message="No responders available. Escalating to national hotline.",
                hotline=self.hotline,
            )

        candidates.sort(key=lambda item: item.eta_minutes)
        chosen = candidates[0]
        chosen = replace(chosen, unit=replace(chosen.unit, status=AvailabilityStatus.EN_ROUTE))
        return DispatchOutcome(
            success=True,
            message=f"{chosen.unit.name} dispatched. ETA: {chosen.eta_minutes} minutes",
            candidate=chosen,
        )
