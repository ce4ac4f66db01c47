from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .availability import AvailabilityService
from .geo import distance_km, validate_location
from .models import AvailabilityStatus, Doctor, Location, MatchCandidate, TriageLevel, round_half_up


@dataclass
class DoctorMatcher:
    availability: AvailabilityService
    proximity_weight: float = 0.3
    rating_weight: float = 0.4
    queue_weight: float = 0.3
    # The queue penalty is scaled a second time on top of queue_weight.
    queue_penalty_scale: float = 0.3

    def match_doctors(
        self,
        patient_location: Any,
        specialty: str | None = None,
        urgency_level: TriageLevel | str = TriageLevel.LOW,
    ) -> list[MatchCandidate]:
        location = validate_location(patient_location, field_name="patient_location")
        return self.rank(
            self.availability.list_doctors(),
            location,
            specialty=specialty,
            urgency_level=TriageLevel(urgency_level),
        )

    def rank(
        self,
        doctors: Iterable[Doctor],
        patient_location: Location,
        *,
        specialty: str | None = None,
        urgency_level: TriageLevel = TriageLevel.LOW,
    ) -> list[MatchCandidate]:
        candidates: list[MatchCandidate] = []
        for doctor in doctors:
            if specialty and doctor.specialty.lower() != specialty.lower():
                continue
            if not self.is_eligible(doctor, urgency_level):
                continue
            if doctor.location is None:
                continue
            distance = distance_km(patient_location, doctor.location)
            candidates.append(
                MatchCandidate(
                    doctor=doctor,
                    distance_km=distance,
                    match_score=self.score(distance, doctor.rating, doctor.queue),
                )
            )
        # Scores that round to the same integer count as tied and keep store order.
        candidates.sort(key=lambda item: round_half_up(item.match_score), reverse=True)
        return candidates

    @staticmethod
    def is_eligible(doctor: Doctor, urgency_level: TriageLevel) -> bool:
        if urgency_level == TriageLevel.EMERGENCY:
            return doctor.status != AvailabilityStatus.OFFLINE and (
                doctor.status == AvailabilityStatus.AVAILABLE or doctor.emergency_capable
            )
        return doctor.status == AvailabilityStatus.AVAILABLE

    def score(self, distance: float, rating: float, queue: int) -> float:
        proximity_score = max(0.0, 100 - distance * 10)
        rating_score = rating * 20
        queue_score = max(0.0, 100 - queue * 15)
        return (
            self.proximity_weight * proximity_score
            + self.rating_weight * rating_score
            - self.queue_weight * (100 - queue_score) * self.queue_penalty_scale
        )
