from datetime import datetime

import pytest

from telehealth_core.config import TelehealthConfig
from telehealth_core.errors import InvalidInputError, UnauthorizedError
from telehealth_core.memory_store import InMemoryRepository
from telehealth_core.models import AvailabilityStatus, ConsultationStatus, Doctor, Location
from telehealth_core.service import TelehealthService


def _build_service() -> TelehealthService:
    service = TelehealthService.build(
        store=InMemoryRepository(),
        config=TelehealthConfig(db_path=":memory:"),
        clock=lambda: datetime(2026, 3, 2, 16, 0, 0),
    )
    for index in (1, 2):
        service.availability.register_doctor(
            Doctor(
                id=f"DOC_{index}",
                account_id=f"USR_DOC_{index}",
                name=f"Dr. {index}",
                location=Location(0.0, 0.0),
                status=AvailabilityStatus.AVAILABLE,
            )
        )
    return service


def _in_session(service: TelehealthService, patient_id: str = "PAT_1") -> str:
    consultation = service.request_consultation(
        patient_id=patient_id,
        doctor_account_id="USR_DOC_1",
        symptoms=["sore throat"],
        triage_level="LOW",
    )
    service.accept_consultation(consultation.id, "USR_DOC_1")
    service.start_consultation(consultation.id)
    return consultation.id


def test_prescription_skips_blank_medication_rows() -> None:
    service = _build_service()
    consultation_id = _in_session(service)
    prescription = service.write_prescription(
        consultation_id,
        "USR_DOC_1",
        diagnosis=" Strep throat ",
        medications=[
            {"name": "Amoxicillin", "dosage": "500mg", "frequency": "3x daily", "duration": "10 days"},
            {"name": "", "dosage": "1 tab"},
        ],
        notes="Return if fever persists.",
    )
    assert prescription.diagnosis == "Strep throat"
    assert prescription.patient_id == "PAT_1"
    assert prescription.doctor_id == "USR_DOC_1"
    assert [item.name for item in prescription.medications] == ["Amoxicillin"]
    assert prescription.created_at == datetime(2026, 3, 2, 16, 0, 0)
    assert service.consultations.get(consultation_id).status == ConsultationStatus.IN_SESSION


def test_only_the_assigned_doctor_may_prescribe() -> None:
    service = _build_service()
    consultation_id = _in_session(service)
    with pytest.raises(UnauthorizedError):
        service.write_prescription(consultation_id, "USR_DOC_2", diagnosis="Flu")
    with pytest.raises(InvalidInputError):
        service.write_prescription(consultation_id, "USR_DOC_1", diagnosis="  ")
    assert service.prescriptions.for_consultation(consultation_id) == []


def test_finishing_with_a_prescription_completes_the_consultation() -> None:
    service = _build_service()
    consultation_id = _in_session(service)
    service.write_prescription(consultation_id, "USR_DOC_1", diagnosis="Tonsillitis", finish_consultation=True)

    consultation = service.consultations.get(consultation_id)
    assert consultation.status == ConsultationStatus.COMPLETED
    assert consultation.notes == "Tonsillitis"


def test_prescriptions_are_listed_per_patient() -> None:
    service = _build_service()
    first = service.write_prescription(_in_session(service), "USR_DOC_1", diagnosis="Flu")
    second = service.write_prescription(_in_session(service), "USR_DOC_1", diagnosis="Migraine")
    service.write_prescription(_in_session(service, patient_id="PAT_2"), "USR_DOC_1", diagnosis="Rash")

    assert [item.id for item in service.prescriptions.for_patient("PAT_1")] == [first.id, second.id]
    assert service.prescriptions.for_patient("PAT_9") == []
