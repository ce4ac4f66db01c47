from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .consultations import ConsultationLifecycle
from .errors import InvalidInputError, UnauthorizedError
from .models import EntityKind, Medication, Prescription
from .transitions import new_id


def _medications(rows: Iterable[Mapping[str, Any]] | None) -> list[Medication]:
    # Rows without a drug name are blank form lines.
    medications: list[Medication] = []
    for row in rows or []:
        name = str(row.get("name") or "").strip()
        if not name:
            continue
        medications.append(
            Medication(
                name=name,
                dosage=str(row.get("dosage") or ""),
                frequency=str(row.get("frequency") or ""),
                duration=str(row.get("duration") or ""),
            )
        )
    return medications


@dataclass
class PrescriptionBook:
    consultations: ConsultationLifecycle

    def write(
        self,
        consultation_id: str,
        doctor_id: str,
        *,
        diagnosis: str,
        medications: Iterable[Mapping[str, Any]] | None = None,
        notes: str = "",
    ) -> Prescription:
        consultation = self.consultations.get(consultation_id)
        if doctor_id != consultation.doctor_id:
            raise UnauthorizedError(
                f"Doctor {doctor_id} is not assigned to consultation {consultation_id}."
            )
        diagnosis = (diagnosis or "").strip()
        if not diagnosis:
            raise InvalidInputError("A prescription needs a diagnosis.")

        recorder = self.consultations.recorder
        prescription = Prescription(
            id=new_id("RX"),
            consultation_id=consultation_id,
            patient_id=consultation.patient_id,
            doctor_id=doctor_id,
            diagnosis=diagnosis,
            medications=_medications(medications),
            notes=notes,
            created_at=recorder.clock(),
        )
        recorder.commit(
            EntityKind.PRESCRIPTIONS,
            prescription.to_record(),
            action="PRESCRIPTION_CREATED",
            payload={"consultation_id": consultation_id, "patient_id": consultation.patient_id},
        )
        return prescription

    def for_patient(self, patient_id: str) -> list[Prescription]:
        rows = self.consultations.recorder.store.find_all_by_index(
            EntityKind.PRESCRIPTIONS, "patient_id", patient_id
        )
        return [Prescription.from_record(row) for row in rows]

    def for_consultation(self, consultation_id: str) -> list[Prescription]:
        rows = self.consultations.recorder.store.find_all_by_index(
            EntityKind.PRESCRIPTIONS, "consultation_id", consultation_id
        )
        return [Prescription.from_record(row) for row in rows]
