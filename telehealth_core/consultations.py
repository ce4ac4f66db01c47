from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .errors import InvalidTransitionError, NotFoundError, UnauthorizedError
from .models import (
    Consultation,
    ConsultationStatus,
    EntityKind,
    PaymentStatus,
    TriageLevel,
    round_half_up,
)
from .transitions import TransitionRecorder, new_id

logger = logging.getLogger(__name__)


@dataclass
class ConsultationLifecycle:
    """PENDING -> IN_SESSION -> COMPLETED, with CANCELLED/DECLINED off PENDING.

    ``doctor_id`` is the doctor's account id. Doctor status and queue
    bookkeeping belong to the caller.
    """

    recorder: TransitionRecorder

    def get(self, consultation_id: str) -> Consultation:
        row = self.recorder.store.get(EntityKind.CONSULTATIONS, consultation_id)
        if row is None:
            raise NotFoundError("consultation", consultation_id)
        return Consultation.from_record(row)

    def create(
        self,
        patient_id: str,
        doctor_id: str,
        symptoms: Any,
        triage_level: TriageLevel | str,
    ) -> Consultation:
        consultation = Consultation(
            id=new_id("CONS"),
            patient_id=patient_id,
            doctor_id=doctor_id,
            symptoms=symptoms,
            triage_level=TriageLevel(triage_level),
            status=ConsultationStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            created_at=self.recorder.clock(),
        )
        self._save(consultation, action="CONSULTATION_REQUESTED")
        return consultation

    def accept(self, consultation_id: str, doctor_id: str) -> Consultation:
        consultation = self.get(consultation_id)
        if consultation.doctor_id != doctor_id:
            raise UnauthorizedError(
                f"Doctor {doctor_id} is not assigned to consultation {consultation_id}."
            )
        self._require_status(consultation, ConsultationStatus.PENDING, "accept")
        consultation.status = ConsultationStatus.IN_SESSION
        consultation.accepted_at = self.recorder.clock()
        self._save(consultation, action="CONSULTATION_ACCEPTED")
        return consultation

    def start(self, consultation_id: str) -> Consultation:
        consultation = self.get(consultation_id)
        self._require_mutable(consultation, "start")
        consultation.started_at = self.recorder.clock()
        self.recorder.commit(
            EntityKind.CONSULTATIONS,
            consultation.to_record(),
            action="CONSULTATION_STARTED",
            publish=False,
        )
        return consultation

    def end(self, consultation_id: str, notes: str = "") -> Consultation:
        consultation = self.get(consultation_id)
        self._require_mutable(consultation, "end")
        ended_at = self.recorder.clock()
        if consultation.started_at is not None:
            consultation.duration = round_half_up((ended_at - consultation.started_at).total_seconds())
        else:
            logger.warning("Consultation %s ended without a start time", consultation_id)
            consultation.duration = None
        consultation.status = ConsultationStatus.COMPLETED
        consultation.ended_at = ended_at
        consultation.notes = notes
        self._save(consultation, action="CONSULTATION_COMPLETED")
        return consultation

    def cancel(self, consultation_id: str, actor_id: str) -> Consultation:
        consultation = self.get(consultation_id)
        if actor_id == consultation.doctor_id:
            new_status = ConsultationStatus.DECLINED
        elif actor_id == consultation.patient_id:
            new_status = ConsultationStatus.CANCELLED
        else:
            raise UnauthorizedError(
                f"{actor_id} is not a participant of consultation {consultation_id}."
            )
        self._require_status(consultation, ConsultationStatus.PENDING, "cancel")
        consultation.status = new_status
        consultation.ended_at = self.recorder.clock()
        self._save(consultation, action=f"CONSULTATION_{new_status.value}")
        return consultation

    def mark_paid(self, consultation_id: str) -> Consultation:
        consultation = self.get(consultation_id)
        consultation.payment_status = PaymentStatus.PAID
        self.recorder.commit(
            EntityKind.CONSULTATIONS,
            consultation.to_record(),
            action="CONSULTATION_PAID",
            publish=False,
        )
        return consultation

    def for_patient(self, patient_id: str) -> list[Consultation]:
        rows = self.recorder.store.find_all_by_index(EntityKind.CONSULTATIONS, "patient_id", patient_id)
        return [Consultation.from_record(row) for row in rows]

    def for_doctor(self, doctor_id: str) -> list[Consultation]:
        rows = self.recorder.store.find_all_by_index(EntityKind.CONSULTATIONS, "doctor_id", doctor_id)
        return [Consultation.from_record(row) for row in rows]

    def pending_for_doctor(self, doctor_id: str) -> list[Consultation]:
        return [
            item for item in self.for_doctor(doctor_id) if item.status == ConsultationStatus.PENDING
        ]

    def _save(self, consultation: Consultation, *, action: str) -> None:
        self.recorder.commit(
            EntityKind.CONSULTATIONS,
            consultation.to_record(),
            action=action,
            payload={"doctor_id": consultation.doctor_id, "patient_id": consultation.patient_id},
        )

    @staticmethod
    def _require_mutable(consultation: Consultation, operation: str) -> None:
        if consultation.is_terminal:
            raise InvalidTransitionError(
                f"Cannot {operation} consultation {consultation.id}: "
                f"it is already {consultation.status.value}."
            )

    @staticmethod
    def _require_status(
        consultation: Consultation,
        expected: ConsultationStatus,
        operation: str,
    ) -> None:
        if consultation.status != expected:
            raise InvalidTransitionError(
                f"Cannot {operation} consultation {consultation.id} in status "
                f"{consultation.status.value}; expected {expected.value}."
            )
