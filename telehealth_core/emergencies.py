from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .errors import InvalidTransitionError, NotFoundError
from .geo import validate_location
from .models import (
    DispatchUnit,
    Emergency,
    EmergencyStatus,
    EntityKind,
    Priority,
    priority_rank,
    round_half_up,
)
from .transitions import TransitionRecorder, new_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmergencyCategory:
    id: str
    label: str
    priority: Priority


EMERGENCY_CATALOG: dict[str, EmergencyCategory] = {
    item.id: item
    for item in (
        EmergencyCategory("chest_pain", "Chest Pain / Heart Attack", Priority.CRITICAL),
        EmergencyCategory("breathing", "Difficulty Breathing", Priority.CRITICAL),
        EmergencyCategory("unconscious", "Person Unconscious", Priority.CRITICAL),
        EmergencyCategory("severe_bleeding", "Severe Bleeding", Priority.CRITICAL),
        EmergencyCategory("stroke", "Stroke Symptoms", Priority.CRITICAL),
        EmergencyCategory("accident", "Accident / Injury", Priority.HIGH),
        EmergencyCategory("seizure", "Seizure / Convulsions", Priority.HIGH),
        EmergencyCategory("allergic", "Severe Allergic Reaction", Priority.HIGH),
        EmergencyCategory("poisoning", "Poisoning / Overdose", Priority.HIGH),
        EmergencyCategory("burn", "Severe Burns", Priority.HIGH),
        EmergencyCategory("childbirth", "Childbirth / Labor", Priority.HIGH),
        EmergencyCategory("other", "Other Emergency", Priority.MEDIUM),
    )
}


def categorize(emergency_type: str) -> EmergencyCategory:
    category = EMERGENCY_CATALOG.get(emergency_type)
    if category is None:
        return EmergencyCategory(emergency_type, emergency_type, Priority.HIGH)
    return category


def sort_by_priority(emergencies: list[Emergency]) -> list[Emergency]:
    """Most urgent first; oldest first within a priority."""
    return sorted(
        emergencies,
        key=lambda item: (
            priority_rank(item.priority),
            item.created_at is None,
            item.created_at or datetime.min,
        ),
    )


@dataclass
class EmergencyLifecycle:
    recorder: TransitionRecorder

    def get(self, emergency_id: str) -> Emergency:
        row = self.recorder.store.get(EntityKind.EMERGENCIES, emergency_id)
        if row is None:
            raise NotFoundError("emergency", emergency_id)
        return Emergency.from_record(row)

    def create(
        self,
        *,
        emergency_type: str,
        location: Any,
        patient_id: str | None = None,
        patient_name: str | None = None,
        phone: str | None = None,
        additional_info: str | None = None,
    ) -> Emergency:
        category = categorize(emergency_type)
        now = self.recorder.clock()
        emergency = Emergency(
            id=new_id("EMG"),
            patient_id=patient_id or "anonymous",
            emergency_type=emergency_type,
            type_label=category.label,
            priority=category.priority,
            location=validate_location(location),
            patient_name=patient_name or "Anonymous",
            phone=phone,
            description=additional_info or category.label,
            status=EmergencyStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._save(emergency, action="EMERGENCY_CREATED")
        logger.info(
            "Emergency %s created type=%s priority=%s",
            emergency.id,
            emergency_type,
            emergency.priority.value,
        )
        return emergency

    def assign(self, emergency_id: str, unit: DispatchUnit, *, respond: bool = False) -> Emergency:
        """Attach a unit; the emergency stays PENDING unless ``respond`` is set."""
        emergency = self.get(emergency_id)
        self._require_open(emergency, "assign")
        emergency.assigned_dispatch = unit.id
        emergency.dispatch_name = unit.name
        if respond:
            self._mark_responding(emergency)
        else:
            emergency.updated_at = self.recorder.clock()
        self._save(emergency, action="EMERGENCY_ASSIGNED")
        return emergency

    def respond(self, emergency_id: str, unit: DispatchUnit) -> Emergency | None:
        """Unit accepts the call. A missing emergency is a no-op, not an error."""
        row = self.recorder.store.get(EntityKind.EMERGENCIES, emergency_id)
        if row is None:
            logger.info("Respond ignored: emergency %s not found", emergency_id)
            return None
        emergency = Emergency.from_record(row)
        self._require_open(emergency, "respond to")
        emergency.assigned_dispatch = unit.id
        emergency.dispatch_name = unit.name
        self._mark_responding(emergency)
        self._save(emergency, action="EMERGENCY_RESPONDING")
        return emergency

    def complete(self, emergency_id: str) -> Emergency:
        return self._close(emergency_id, EmergencyStatus.COMPLETED)

    def resolve(self, emergency_id: str) -> Emergency:
        return self._close(emergency_id, EmergencyStatus.RESOLVED)

    def cancel(self, emergency_id: str) -> Emergency:
        return self._close(emergency_id, EmergencyStatus.CANCELLED)

    def list_all(self) -> list[Emergency]:
        return [Emergency.from_record(row) for row in self.recorder.store.get_all(EntityKind.EMERGENCIES)]

    def active(self) -> list[Emergency]:
        return sort_by_priority([item for item in self.list_all() if not item.is_closed])

    def open_for_unit(self, unit_id: str) -> list[Emergency]:
        return [
            item
            for item in self.active()
            if item.assigned_dispatch in (None, unit_id)
        ]

    def _mark_responding(self, emergency: Emergency) -> None:
        now = self.recorder.clock()
        emergency.status = EmergencyStatus.RESPONDING
        emergency.updated_at = now
        if emergency.created_at is not None:
            emergency.response_time = round_half_up((now - emergency.created_at).total_seconds() / 60)

    def _close(self, emergency_id: str, status: EmergencyStatus) -> Emergency:
        emergency = self.get(emergency_id)
        self._require_open(emergency, f"mark {status.value.lower()}")
        now = self.recorder.clock()
        emergency.status = status
        emergency.updated_at = now
        if status == EmergencyStatus.COMPLETED:
            emergency.completed_at = now
        self._save(emergency, action=f"EMERGENCY_{status.value}")
        return emergency

    def _save(self, emergency: Emergency, *, action: str) -> None:
        self.recorder.commit(
            EntityKind.EMERGENCIES,
            emergency.to_record(),
            action=action,
            payload={
                "priority": emergency.priority.value,
                "assigned_dispatch": emergency.assigned_dispatch,
            },
        )

    @staticmethod
    def _require_open(emergency: Emergency, operation: str) -> None:
        if emergency.is_closed:
            raise InvalidTransitionError(
                f"Cannot {operation} emergency {emergency.id}: it is already {emergency.status.value}."
            )
