from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .errors import InvalidInputError
from .models import TriageLevel, TriageResult, round_half_up

EMERGENCY_SCORE = 100

SYMPTOM_WEIGHTS: dict[str, float] = {
    "chest pain": 50,
    "difficulty breathing": 45,
    "severe bleeding": 50,
    "unconscious": 60,
    "stroke symptoms": 55,
    "high fever": 25,
    "persistent cough": 15,
    "headache": 10,
    "body aches": 10,
    "nausea": 12,
    "vomiting": 15,
    "diarrhea": 15,
    "fatigue": 8,
    "sore throat": 10,
    "runny nose": 5,
    "skin rash": 12,
    "joint pain": 10,
    "dizziness": 20,
    "abdominal pain": 18,
    "back pain": 12,
}


@dataclass
class TriageEngine:
    """Rule-based symptom scoring used before matching a patient to a doctor."""

    emergency_symptoms: tuple[str, ...] = (
        "chest pain",
        "unconscious",
        "stroke symptoms",
        "severe bleeding",
    )
    default_weight: float = 5
    emergency_threshold: float = 45
    high_threshold: float = 30
    moderate_threshold: float = 15
    spo2_emergency_below: float = 90
    comorbidity_factor: float = 0.15
    symptom_weights: dict[str, float] = field(default_factory=lambda: dict(SYMPTOM_WEIGHTS))

    def triage(
        self,
        symptoms: Iterable[str],
        age: float,
        vitals: Mapping[str, Any] | None = None,
        comorbidities: Iterable[str] | None = None,
    ) -> TriageResult:
        if isinstance(symptoms, str):
            raise InvalidInputError("symptoms must be a collection of labels, not a single string.")
        normalized = {self.normalize(item) for item in symptoms}
        normalized.discard("")
        age = self._validate_age(age)

        if any(item in self.emergency_symptoms for item in normalized):
            return TriageResult(
                level=TriageLevel.EMERGENCY,
                score=EMERGENCY_SCORE,
                recommendation="Seek immediate emergency care. Dispatching responder.",
            )

        spo2 = (vitals or {}).get("spo2")
        # A zero/absent reading is treated as "not measured".
        if spo2 and float(spo2) < self.spo2_emergency_below:
            return TriageResult(
                level=TriageLevel.EMERGENCY,
                score=EMERGENCY_SCORE,
                recommendation="Low oxygen saturation detected. Seek emergency care immediately.",
            )

        risk_score = sum(self.weight(item) for item in normalized)
        risk_score *= self.age_multiplier(age)
        risk_score *= 1 + self.comorbidity_factor * len(list(comorbidities or []))

        level = self.classify(risk_score)
        return TriageResult(
            level=level,
            score=round_half_up(risk_score),
            recommendation=RECOMMENDATIONS[level],
        )

    @staticmethod
    def normalize(symptom: str) -> str:
        return str(symptom).strip().lower()

    def weight(self, symptom: str) -> float:
        return self.symptom_weights.get(self.normalize(symptom), self.default_weight)

    @staticmethod
    def age_multiplier(age: float) -> float:
        if age > 65:
            return 1.3
        if age < 5:
            return 1.2
        return 1.0

    def classify(self, score: float) -> TriageLevel:
        if score >= self.emergency_threshold:
            return TriageLevel.EMERGENCY
        if score >= self.high_threshold:
            return TriageLevel.HIGH
        if score >= self.moderate_threshold:
            return TriageLevel.MODERATE
        return TriageLevel.LOW

    @staticmethod
    def _validate_age(age: Any) -> float:
        if age is None or isinstance(age, bool):
            raise InvalidInputError("age is required.")
        try:
            value = float(age)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"age must be a number, got {age!r}.") from exc
        if not math.isfinite(value) or value < 0:
            raise InvalidInputError(f"age must be a non-negative number, got {age!r}.")
        return value


RECOMMENDATIONS = {
    TriageLevel.EMERGENCY: "Your symptoms indicate a serious condition. Emergency dispatch recommended.",
    TriageLevel.HIGH: "Priority consultation recommended. Please consult a doctor soon.",
    TriageLevel.MODERATE: "Schedule a consultation at your convenience.",
    TriageLevel.LOW: "Self-care may be sufficient. Consult if symptoms persist.",
}
