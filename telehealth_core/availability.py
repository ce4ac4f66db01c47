from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from .errors import InvalidInputError, NotFoundError
from .models import AvailabilityStatus, Doctor, DispatchUnit, EntityKind
from .transitions import TransitionRecorder

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityService:
    """Doctor and dispatch-unit presence.

    Doctor profiles are keyed by profile id but addressed by the owning
    account id through the ``account_id`` index.
    """

    recorder: TransitionRecorder
    heartbeat_timeout_seconds: int = 90

    def get_doctor(self, profile_id: str) -> Doctor:
        row = self.recorder.store.get(EntityKind.DOCTORS, profile_id)
        if row is None:
            raise NotFoundError("doctor", profile_id)
        return Doctor.from_record(row)

    def get_doctor_by_account(self, account_id: str) -> Doctor:
        row = self.recorder.store.find_one_by_index(EntityKind.DOCTORS, "account_id", account_id)
        if row is None:
            raise NotFoundError("doctor", account_id)
        return Doctor.from_record(row)

    def register_doctor(self, doctor: Doctor) -> Doctor:
        existing = self.recorder.store.find_one_by_index(
            EntityKind.DOCTORS, "account_id", doctor.account_id
        )
        if existing is not None and existing["id"] != doctor.id:
            raise InvalidInputError(f"Account {doctor.account_id} already owns a doctor profile.")
        self.recorder.commit(EntityKind.DOCTORS, doctor.to_record(), action="DOCTOR_REGISTERED")
        return doctor

    def heartbeat(self, account_id: str) -> Doctor:
        doctor = self.get_doctor_by_account(account_id)
        doctor.last_heartbeat = self.recorder.clock()
        self.recorder.store.put(EntityKind.DOCTORS, doctor.to_record())
        return doctor

    def update_status(self, account_id: str, status: AvailabilityStatus) -> Doctor:
        doctor = self.get_doctor_by_account(account_id)
        doctor.status = AvailabilityStatus(status)
        doctor.last_heartbeat = self.recorder.clock()
        self.recorder.commit(
            EntityKind.DOCTORS,
            doctor.to_record(),
            action="DOCTOR_STATUS_UPDATED",
            payload={"account_id": account_id},
        )
        logger.info("Doctor %s status -> %s", doctor.id, doctor.status.value)
        return doctor

    def adjust_queue(self, profile_id: str, delta: int) -> Doctor:
        doctor = self.get_doctor(profile_id)
        doctor.queue = max(0, doctor.queue + delta)
        self.recorder.store.put(EntityKind.DOCTORS, doctor.to_record())
        return doctor

    def record_completed_consult(self, profile_id: str) -> Doctor:
        doctor = self.get_doctor(profile_id)
        doctor.total_consults += 1
        doctor.queue = max(0, doctor.queue - 1)
        self.recorder.store.put(EntityKind.DOCTORS, doctor.to_record())
        return doctor

    def list_doctors(self) -> list[Doctor]:
        """Return every doctor, marking stale heartbeats OFFLINE on the way out."""
        now = self.recorder.clock()
        timeout = timedelta(seconds=self.heartbeat_timeout_seconds)
        doctors: list[Doctor] = []
        for row in self.recorder.store.get_all(EntityKind.DOCTORS):
            doctor = Doctor.from_record(row)
            if (
                doctor.last_heartbeat is not None
                and now - doctor.last_heartbeat > timeout
                and doctor.status != AvailabilityStatus.OFFLINE
            ):
                doctor.status = AvailabilityStatus.OFFLINE
                self.recorder.commit(
                    EntityKind.DOCTORS,
                    doctor.to_record(),
                    action="HEARTBEAT_EXPIRED",
                    payload={"last_heartbeat": row.get("last_heartbeat")},
                )
                logger.info("Doctor %s marked OFFLINE after missed heartbeat", doctor.id)
            doctors.append(doctor)
        return doctors

    def online_doctors(self) -> list[Doctor]:
        return [doc for doc in self.list_doctors() if doc.status == AvailabilityStatus.AVAILABLE]

    def get_unit(self, unit_id: str) -> DispatchUnit:
        row = self.recorder.store.get(EntityKind.DISPATCHES, unit_id)
        if row is None:
            raise NotFoundError("dispatch unit", unit_id)
        return DispatchUnit.from_record(row)

    def get_unit_by_account(self, account_id: str) -> DispatchUnit:
        row = self.recorder.store.find_one_by_index(EntityKind.DISPATCHES, "account_id", account_id)
        if row is None:
            raise NotFoundError("dispatch unit", account_id)
        return DispatchUnit.from_record(row)

    def register_unit(self, unit: DispatchUnit) -> DispatchUnit:
        self.recorder.commit(EntityKind.DISPATCHES, unit.to_record(), action="UNIT_REGISTERED")
        return unit

    def set_unit_status(self, unit_id: str, status: AvailabilityStatus) -> DispatchUnit:
        unit = self.get_unit(unit_id)
        unit.status = AvailabilityStatus(status)
        self.recorder.commit(
            EntityKind.DISPATCHES,
            unit.to_record(),
            action="UNIT_STATUS_UPDATED",
        )
        return unit

    def update_unit_status(self, account_id: str, status: AvailabilityStatus) -> DispatchUnit:
        """Operator toggle from the dispatch console, addressed by the owning account."""
        unit = self.get_unit_by_account(account_id)
        unit.status = AvailabilityStatus(status)
        self.recorder.commit(
            EntityKind.DISPATCHES,
            unit.to_record(),
            action="UNIT_STATUS_UPDATED",
            payload={"account_id": account_id},
        )
        logger.info("Dispatch unit %s status -> %s", unit.id, unit.status.value)
        return unit

    def list_units(self) -> list[DispatchUnit]:
        return [DispatchUnit.from_record(row) for row in self.recorder.store.get_all(EntityKind.DISPATCHES)]
