from __future__ import annotations

import logging
from dataclasses import dataclass

from .availability import AvailabilityService
from .models import (
    AvailabilityStatus,
    Consultation,
    ConsultationStatus,
    Emergency,
    EmergencyStatus,
    EntityKind,
)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@dataclass
class Observability:
    availability: AvailabilityService

    def snapshot(self) -> dict[str, int | float]:
        store = self.availability.recorder.store
        doctors = self.availability.list_doctors()
        consultations = [
            Consultation.from_record(row) for row in store.get_all(EntityKind.CONSULTATIONS)
        ]
        emergencies = [Emergency.from_record(row) for row in store.get_all(EntityKind.EMERGENCIES)]
        response_times = [
            item.response_time
            for item in emergencies
            if item.status == EmergencyStatus.COMPLETED and item.response_time is not None
        ]
        return {
            "doctors_total": len(doctors),
            "doctors_online": sum(1 for doc in doctors if doc.status != AvailabilityStatus.OFFLINE),
            "doctors_available": sum(
                1 for doc in doctors if doc.status == AvailabilityStatus.AVAILABLE
            ),
            "consultations_total": len(consultations),
            "consultations_pending": sum(
                1 for item in consultations if item.status == ConsultationStatus.PENDING
            ),
            "consultations_in_session": sum(
                1 for item in consultations if item.status == ConsultationStatus.IN_SESSION
            ),
            "consultations_completed": sum(
                1 for item in consultations if item.status == ConsultationStatus.COMPLETED
            ),
            "emergencies_active": sum(1 for item in emergencies if not item.is_closed),
            "emergencies_resolved": sum(
                1 for item in emergencies if item.status == EmergencyStatus.RESOLVED
            ),
            "emergencies_completed": sum(
                1 for item in emergencies if item.status == EmergencyStatus.COMPLETED
            ),
            "avg_response_time_minutes": (
                round(sum(response_times) / len(response_times), 1) if response_times else 0.0
            ),
        }
