from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from .availability import AvailabilityService
from .config import TelehealthConfig
from .consultations import ConsultationLifecycle
from .dispatch import DispatchSelector
from .emergencies import EmergencyLifecycle
from .matching import DoctorMatcher
from .messaging import ConsultationChat
from .models import (
    AvailabilityStatus,
    Consultation,
    DispatchOutcome,
    DispatchUnit,
    Emergency,
    EmergencyStatus,
    EntityKind,
    MatchCandidate,
    Message,
    Prescription,
    TriageLevel,
    TriageResult,
    utc_now,
)
from .notifications import EventBus, Subscriber
from .observability import Observability
from .prescriptions import PrescriptionBook
from .store_protocol import EntityStore
from .transitions import TransitionRecorder
from .triage import TriageEngine

logger = logging.getLogger(__name__)


@dataclass
class TelehealthService:
    """Entry point for the front-ends.

    Keeps the cross-entity bookkeeping the lifecycles leave to their caller:
    doctor status and queue on consultation changes, unit status on
    emergency changes.
    """

    config: TelehealthConfig
    recorder: TransitionRecorder
    triage_engine: TriageEngine
    availability: AvailabilityService
    matcher: DoctorMatcher
    dispatcher: DispatchSelector
    consultations: ConsultationLifecycle
    emergencies: EmergencyLifecycle
    chat: ConsultationChat
    prescriptions: PrescriptionBook
    observability: Observability

    @classmethod
    def build(
        cls,
        *,
        store: EntityStore,
        config: TelehealthConfig | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> "TelehealthService":
        config = config or TelehealthConfig()
        recorder = TransitionRecorder(store=store, events=events or EventBus(), clock=clock)
        availability = AvailabilityService(
            recorder=recorder,
            heartbeat_timeout_seconds=config.heartbeat_timeout_seconds,
        )
        consultations = ConsultationLifecycle(recorder=recorder)
        return cls(
            config=config,
            recorder=recorder,
            triage_engine=TriageEngine(),
            availability=availability,
            matcher=DoctorMatcher(availability=availability),
            dispatcher=DispatchSelector(
                store=store,
                hotline=config.emergency_hotline,
                eta_minutes_per_km=config.eta_minutes_per_km,
            ),
            consultations=consultations,
            emergencies=EmergencyLifecycle(recorder=recorder),
            chat=ConsultationChat(consultations=consultations),
            prescriptions=PrescriptionBook(consultations=consultations),
            observability=Observability(availability=availability),
        )

    @property
    def store(self) -> EntityStore:
        return self.recorder.store

    def subscribe(
        self,
        callback: Subscriber,
        kinds: Iterable[EntityKind | str] | None = None,
    ) -> Callable[[], None]:
        return self.recorder.events.subscribe(callback, kinds)

    # Triage and matching

    def assess_symptoms(
        self,
        *,
        symptoms: Iterable[str],
        age: float,
        vitals: Mapping[str, Any] | None = None,
        comorbidities: Iterable[str] | None = None,
    ) -> TriageResult:
        return self.triage_engine.triage(symptoms, age, vitals, comorbidities)

    def find_doctors(
        self,
        *,
        location: Any,
        specialty: str | None = None,
        urgency_level: TriageLevel | str = TriageLevel.LOW,
    ) -> list[MatchCandidate]:
        return self.matcher.match_doctors(location, specialty, urgency_level)

    # Consultations

    def request_consultation(
        self,
        *,
        patient_id: str,
        doctor_account_id: str,
        symptoms: Any,
        triage_level: TriageLevel | str,
    ) -> Consultation:
        doctor = self.availability.get_doctor_by_account(doctor_account_id)
        consultation = self.consultations.create(
            patient_id,
            doctor.account_id,
            symptoms,
            triage_level,
        )
        self.availability.adjust_queue(doctor.id, +1)
        return consultation

    def accept_consultation(self, consultation_id: str, doctor_account_id: str) -> Consultation:
        consultation = self.consultations.accept(consultation_id, doctor_account_id)
        self.availability.update_status(doctor_account_id, AvailabilityStatus.IN_SESSION)
        return consultation

    def start_consultation(self, consultation_id: str) -> Consultation:
        return self.consultations.start(consultation_id)

    def end_consultation(self, consultation_id: str, notes: str = "") -> Consultation:
        consultation = self.consultations.end(consultation_id, notes)
        doctor = self.availability.get_doctor_by_account(consultation.doctor_id)
        self.availability.record_completed_consult(doctor.id)
        self.availability.update_status(doctor.account_id, AvailabilityStatus.AVAILABLE)
        return consultation

    def cancel_consultation(self, consultation_id: str, actor_id: str) -> Consultation:
        consultation = self.consultations.cancel(consultation_id, actor_id)
        doctor = self.availability.get_doctor_by_account(consultation.doctor_id)
        self.availability.adjust_queue(doctor.id, -1)
        return consultation

    def pay_consultation(self, consultation_id: str) -> Consultation:
        return self.consultations.mark_paid(consultation_id)

    def send_message(self, consultation_id: str, sender_id: str, content: str) -> Message:
        return self.chat.send(consultation_id, sender_id, content)

    def consultation_messages(self, consultation_id: str) -> list[Message]:
        self.consultations.get(consultation_id)
        return self.chat.messages(consultation_id)

    def mark_messages_read(self, consultation_id: str, reader_id: str) -> int:
        self.consultations.get(consultation_id)
        return self.chat.mark_read(consultation_id, reader_id)

    def write_prescription(
        self,
        consultation_id: str,
        doctor_account_id: str,
        *,
        diagnosis: str,
        medications: Iterable[Mapping[str, Any]] | None = None,
        notes: str = "",
        finish_consultation: bool = False,
    ) -> Prescription:
        """Record a prescription; optionally close the session with the diagnosis as notes."""
        prescription = self.prescriptions.write(
            consultation_id,
            doctor_account_id,
            diagnosis=diagnosis,
            medications=medications,
            notes=notes,
        )
        if finish_consultation:
            self.end_consultation(consultation_id, prescription.diagnosis)
        return prescription

    # Emergencies

    def raise_emergency(
        self,
        *,
        emergency_type: str,
        location: Any,
        patient_id: str | None = None,
        patient_name: str | None = None,
        phone: str | None = None,
        additional_info: str | None = None,
        auto_assign: bool = True,
    ) -> tuple[Emergency, DispatchUnit | None]:
        emergency = self.emergencies.create(
            emergency_type=emergency_type,
            location=location,
            patient_id=patient_id,
            patient_name=patient_name,
            phone=phone,
            additional_info=additional_info,
        )
        if not auto_assign:
            return emergency, None
        unit = self.dispatcher.find_closest_dispatch(emergency.location)
        if unit is None:
            logger.warning("Emergency %s has no dispatch unit to assign", emergency.id)
            return emergency, None
        emergency = self.emergencies.assign(emergency.id, unit)
        return emergency, unit

    def respond_to_emergency(self, emergency_id: str, unit_id: str) -> Emergency | None:
        """Assign the responding unit; the last unit to respond wins the emergency."""
        unit = self.availability.get_unit(unit_id)
        previous = self.store.get(EntityKind.EMERGENCIES, emergency_id)
        emergency = self.emergencies.respond(emergency_id, unit)
        if emergency is None:
            return None
        self.availability.set_unit_status(unit.id, AvailabilityStatus.RESPONDING)
        previous_unit = previous.get("assigned_dispatch") if previous else None
        if previous_unit and previous_unit != unit.id:
            self._release_unit(previous_unit, emergency.id)
        return emergency

    def complete_emergency(self, emergency_id: str) -> Emergency:
        emergency = self.emergencies.complete(emergency_id)
        self._release_unit(emergency.assigned_dispatch, emergency.id)
        return emergency

    def resolve_emergency(self, emergency_id: str) -> Emergency:
        emergency = self.emergencies.resolve(emergency_id)
        self._release_unit(emergency.assigned_dispatch, emergency.id)
        return emergency

    def cancel_emergency(self, emergency_id: str) -> Emergency:
        emergency = self.emergencies.cancel(emergency_id)
        self._release_unit(emergency.assigned_dispatch, emergency.id)
        return emergency

    def dispatch_nearest(self, location: Any) -> DispatchOutcome:
        return self.dispatcher.dispatch_emergency(location)

    # Reporting

    def get_dashboard_metrics(self) -> dict[str, int | float]:
        return self.observability.snapshot()

    def recent_audit_log(self, limit: int = 100) -> list[dict[str, Any]]:
        return self.store.recent_audit_log(limit=limit)

    def _release_unit(self, unit_id: str | None, emergency_id: str) -> None:
        """Return a RESPONDING unit to AVAILABLE unless another emergency still holds it."""
        if not unit_id:
            return
        unit = self.store.get(EntityKind.DISPATCHES, unit_id)
        if unit is None:
            return
        if unit.get("status") != AvailabilityStatus.RESPONDING.value:
            return
        still_busy = any(
            item.id != emergency_id
            and item.assigned_dispatch == unit_id
            and item.status == EmergencyStatus.RESPONDING
            for item in self.emergencies.list_all()
        )
        if not still_busy:
            self.availability.set_unit_status(unit_id, AvailabilityStatus.AVAILABLE)
