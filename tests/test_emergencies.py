from datetime import datetime, timedelta

import pytest

from telehealth_core.config import TelehealthConfig
from telehealth_core.emergencies import EMERGENCY_CATALOG, categorize
from telehealth_core.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from telehealth_core.memory_store import InMemoryRepository
from telehealth_core.models import (
    AvailabilityStatus,
    DispatchUnit,
    EmergencyStatus,
    Location,
    Priority,
    UnitType,
)
from telehealth_core.service import TelehealthService

SCENE = {"lat": 0.0, "lng": 0.0}


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 2, 22, 15, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _build_service(clock: _Clock | None = None) -> TelehealthService:
    service = TelehealthService.build(
        store=InMemoryRepository(),
        config=TelehealthConfig(db_path=":memory:"),
        clock=clock or _Clock(),
    )
    for unit_id, lng in (("AMB_FAR", 0.3), ("AMB_NEAR", 0.02)):
        service.availability.register_unit(
            DispatchUnit(
                id=unit_id,
                account_id=f"USR_{unit_id}",
                name=f"Ambulance {unit_id}",
                unit_type=UnitType.AMBULANCE,
                location=Location(0.0, lng),
                status=AvailabilityStatus.AVAILABLE,
            )
        )
    return service


def test_catalog_and_unknown_types() -> None:
    assert len(EMERGENCY_CATALOG) == 12
    assert categorize("stroke").priority == Priority.CRITICAL
    assert categorize("burn").label == "Severe Burns"
    assert categorize("other").priority == Priority.MEDIUM
    unknown = categorize("snake_bite")
    assert unknown.label == "snake_bite"
    assert unknown.priority == Priority.HIGH


def test_raise_emergency_assigns_nearest_unit_and_stays_pending() -> None:
    service = _build_service()
    emergency, unit = service.raise_emergency(emergency_type="chest_pain", location=SCENE)

    assert unit is not None and unit.id == "AMB_NEAR"
    assert emergency.status == EmergencyStatus.PENDING
    assert emergency.priority == Priority.CRITICAL
    assert emergency.type_label == "Chest Pain / Heart Attack"
    assert emergency.description == "Chest Pain / Heart Attack"
    assert emergency.patient_id == "anonymous"
    assert emergency.patient_name == "Anonymous"
    assert emergency.assigned_dispatch == "AMB_NEAR"
    assert emergency.dispatch_name == "Ambulance AMB_NEAR"
    assert service.availability.get_unit("AMB_NEAR").status == AvailabilityStatus.AVAILABLE


def test_raise_emergency_without_auto_assign() -> None:
    service = _build_service()
    emergency, unit = service.raise_emergency(
        emergency_type="seizure",
        location=SCENE,
        patient_id="PAT_9",
        patient_name="Rudo",
        phone="+263771000000",
        additional_info="Second seizure today",
        auto_assign=False,
    )
    assert unit is None
    assert emergency.assigned_dispatch is None
    assert emergency.description == "Second seizure today"
    assert emergency.patient_name == "Rudo"


def test_raise_emergency_rejects_bad_location() -> None:
    service = _build_service()
    with pytest.raises(InvalidInputError):
        service.raise_emergency(emergency_type="accident", location={"lat": -95, "lng": 0})
    assert service.emergencies.list_all() == []


def test_respond_records_rounded_response_time() -> None:
    clock = _Clock()
    service = _build_service(clock)
    emergency, _ = service.raise_emergency(emergency_type="breathing", location=SCENE)

    clock.advance(150)
    responded = service.respond_to_emergency(emergency.id, "AMB_FAR")
    assert responded.status == EmergencyStatus.RESPONDING
    assert responded.response_time == 3
    assert responded.assigned_dispatch == "AMB_FAR"
    assert responded.dispatch_name == "Ambulance AMB_FAR"
    assert service.availability.get_unit("AMB_FAR").status == AvailabilityStatus.RESPONDING


def test_respond_to_missing_emergency_is_a_no_op() -> None:
    service = _build_service()
    assert service.respond_to_emergency("EMG_missing", "AMB_NEAR") is None
    assert service.availability.get_unit("AMB_NEAR").status == AvailabilityStatus.AVAILABLE


def test_respond_with_unknown_unit_fails() -> None:
    service = _build_service()
    emergency, _ = service.raise_emergency(emergency_type="burn", location=SCENE)
    with pytest.raises(NotFoundError):
        service.respond_to_emergency(emergency.id, "AMB_GHOST")


def test_complete_releases_unit_and_is_terminal() -> None:
    clock = _Clock()
    service = _build_service(clock)
    emergency, unit = service.raise_emergency(emergency_type="accident", location=SCENE)
    service.respond_to_emergency(emergency.id, unit.id)

    clock.advance(1200)
    completed = service.complete_emergency(emergency.id)
    assert completed.status == EmergencyStatus.COMPLETED
    assert completed.completed_at == clock.now
    assert service.availability.get_unit(unit.id).status == AvailabilityStatus.AVAILABLE

    with pytest.raises(InvalidTransitionError):
        service.complete_emergency(emergency.id)
    with pytest.raises(InvalidTransitionError):
        service.cancel_emergency(emergency.id)


def test_resolve_and_cancel_close_without_completion_time() -> None:
    service = _build_service()
    first, _ = service.raise_emergency(emergency_type="poisoning", location=SCENE)
    second, _ = service.raise_emergency(emergency_type="allergic", location=SCENE)

    resolved = service.resolve_emergency(first.id)
    cancelled = service.cancel_emergency(second.id)
    assert resolved.status == EmergencyStatus.RESOLVED
    assert resolved.completed_at is None
    assert cancelled.status == EmergencyStatus.CANCELLED
    assert service.emergencies.active() == []


def test_unit_stays_busy_while_another_emergency_is_responding() -> None:
    service = _build_service()
    first, _ = service.raise_emergency(emergency_type="accident", location=SCENE)
    second, _ = service.raise_emergency(emergency_type="burn", location=SCENE)
    service.respond_to_emergency(first.id, "AMB_NEAR")
    service.respond_to_emergency(second.id, "AMB_NEAR")

    service.complete_emergency(first.id)
    assert service.availability.get_unit("AMB_NEAR").status == AvailabilityStatus.RESPONDING
    service.complete_emergency(second.id)
    assert service.availability.get_unit("AMB_NEAR").status == AvailabilityStatus.AVAILABLE


def test_active_emergencies_sorted_by_priority_then_age() -> None:
    clock = _Clock()
    service = _build_service(clock)
    minor, _ = service.raise_emergency(emergency_type="other", location=SCENE, auto_assign=False)
    clock.advance(60)
    older_high, _ = service.raise_emergency(emergency_type="accident", location=SCENE, auto_assign=False)
    clock.advance(60)
    critical, _ = service.raise_emergency(emergency_type="stroke", location=SCENE, auto_assign=False)
    clock.advance(60)
    newer_high, _ = service.raise_emergency(emergency_type="childbirth", location=SCENE, auto_assign=False)

    ordered = [item.id for item in service.emergencies.active()]
    assert ordered == [critical.id, older_high.id, newer_high.id, minor.id]


def test_unit_feed_shows_unassigned_and_own_emergencies() -> None:
    service = _build_service()
    mine, _ = service.raise_emergency(emergency_type="accident", location=SCENE)
    open_call, _ = service.raise_emergency(emergency_type="burn", location=SCENE, auto_assign=False)
    service.respond_to_emergency(mine.id, "AMB_NEAR")
    service.raise_emergency(emergency_type="seizure", location={"lat": 0.0, "lng": 0.31})

    far_feed = {item.id for item in service.emergencies.open_for_unit("AMB_FAR")}
    near_feed = {item.id for item in service.emergencies.open_for_unit("AMB_NEAR")}
    assert open_call.id in far_feed and mine.id not in far_feed
    assert {mine.id, open_call.id} <= near_feed
    assert len(near_feed) == 2


def test_reassigned_emergency_releases_the_previous_unit() -> None:
    service = _build_service()
    emergency, _ = service.raise_emergency(emergency_type="stroke", location=SCENE, auto_assign=False)
    service.respond_to_emergency(emergency.id, "AMB_FAR")
    responded = service.respond_to_emergency(emergency.id, "AMB_NEAR")

    assert responded.assigned_dispatch == "AMB_NEAR"
    assert service.availability.get_unit("AMB_FAR").status == AvailabilityStatus.AVAILABLE
    assert service.availability.get_unit("AMB_NEAR").status == AvailabilityStatus.RESPONDING

    service.complete_emergency(emergency.id)
    assert service.availability.get_unit("AMB_FAR").status == AvailabilityStatus.AVAILABLE
    assert service.availability.get_unit("AMB_NEAR").status == AvailabilityStatus.AVAILABLE


def test_reassignment_keeps_previous_unit_busy_with_its_other_call() -> None:
    service = _build_service()
    first, _ = service.raise_emergency(emergency_type="accident", location=SCENE, auto_assign=False)
    second, _ = service.raise_emergency(emergency_type="burn", location=SCENE, auto_assign=False)
    service.respond_to_emergency(first.id, "AMB_FAR")
    service.respond_to_emergency(second.id, "AMB_FAR")

    service.respond_to_emergency(first.id, "AMB_NEAR")
    assert service.availability.get_unit("AMB_FAR").status == AvailabilityStatus.RESPONDING
