from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


TriageLevelName = Literal["LOW", "MODERATE", "HIGH", "EMERGENCY"]
AvailabilityName = Literal["OFFLINE", "AVAILABLE", "IN_SESSION", "RESPONDING"]


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class LocationIn(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class LocationOut(BaseModel):
    lat: float
    lng: float


class TriageRequest(BaseModel):
    symptoms: list[str] = Field(default_factory=list, max_length=50)
    age: float = Field(ge=0, le=150)
    vitals: dict[str, float] | None = None
    comorbidities: list[str] = Field(default_factory=list)


class TriageResultOut(BaseModel):
    level: TriageLevelName
    score: int
    recommendation: str


class DoctorOut(BaseModel):
    id: str
    account_id: str
    name: str
    specialty: str
    status: str
    rating: float
    queue: int
    emergency_capable: bool
    location: LocationOut | None = None
    last_heartbeat: str | None = None
    total_consults: int = 0


class DoctorListResponse(BaseModel):
    items: list[DoctorOut]


class MatchRequest(BaseModel):
    location: LocationIn
    specialty: str | None = Field(default=None, max_length=100)
    urgency_level: TriageLevelName = "LOW"


class MatchCandidateOut(BaseModel):
    doctor: DoctorOut
    distance_km: float
    match_score: int


class MatchResponse(BaseModel):
    items: list[MatchCandidateOut]


class DoctorStatusRequest(BaseModel):
    status: AvailabilityName


class ConsultationCreateRequest(BaseModel):
    patient_id: str = Field(min_length=1, max_length=100)
    doctor_account_id: str = Field(min_length=1, max_length=100)
    symptoms: list[str] | str
    triage_level: TriageLevelName = "LOW"


class ConsultationActorRequest(BaseModel):
    actor_id: str = Field(min_length=1, max_length=100)


class ConsultationEndRequest(BaseModel):
    notes: str = Field(default="", max_length=5000)


class ConsultationOut(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    symptoms: Any
    triage_level: str
    status: str
    payment_status: str
    created_at: str | None = None
    accepted_at: str | None = None
    started_at: str | None = None
    ended_at: str | None = None
    duration: int | None = None
    notes: str = ""


class ConsultationListResponse(BaseModel):
    items: list[ConsultationOut]


class EmergencyCreateRequest(BaseModel):
    emergency_type: str = Field(min_length=1, max_length=100)
    location: LocationIn
    patient_id: str | None = None
    patient_name: str | None = None
    phone: str | None = None
    additional_info: str | None = Field(default=None, max_length=2000)
    auto_assign: bool = True


class EmergencyRespondRequest(BaseModel):
    unit_id: str = Field(min_length=1, max_length=100)


class DispatchUnitOut(BaseModel):
    id: str
    account_id: str
    name: str
    unit_type: str
    status: str
    unit_id: str = ""
    location: LocationOut | None = None


class EmergencyOut(BaseModel):
    id: str
    patient_id: str
    patient_name: str
    phone: str | None = None
    emergency_type: str
    type_label: str
    description: str
    priority: str
    status: str
    location: LocationOut | None = None
    assigned_dispatch: str | None = None
    dispatch_name: str | None = None
    response_time: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None


class EmergencyCreateResponse(BaseModel):
    emergency: EmergencyOut
    assigned_unit: DispatchUnitOut | None = None


class EmergencyRespondResponse(BaseModel):
    emergency: EmergencyOut | None = None


class EmergencyListResponse(BaseModel):
    items: list[EmergencyOut]


class DispatchLocationRequest(BaseModel):
    location: LocationIn


class ClosestDispatchResponse(BaseModel):
    unit: DispatchUnitOut | None = None


class DispatchOutcomeOut(BaseModel):
    success: bool
    message: str
    hotline: str | None = None
    unit: DispatchUnitOut | None = None
    distance_km: float | None = None
    eta_minutes: int | None = None


class DashboardMetricsResponse(BaseModel):
    doctors_total: int
    doctors_online: int
    doctors_available: int
    consultations_total: int
    consultations_pending: int
    consultations_in_session: int
    consultations_completed: int
    emergencies_active: int
    emergencies_resolved: int
    emergencies_completed: int
    avg_response_time_minutes: float


class AuditResponse(BaseModel):
    audit_log: list[dict[str, Any]]


class UnitStatusRequest(BaseModel):
    status: Literal["OFFLINE", "AVAILABLE", "RESPONDING"]


class MessageCreateRequest(BaseModel):
    sender_id: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1, max_length=5000)


class MessageOut(BaseModel):
    id: str
    consultation_id: str
    sender_id: str
    sender_type: Literal["patient", "doctor"]
    content: str
    timestamp: str | None = None
    read: bool = False


class MessageListResponse(BaseModel):
    items: list[MessageOut]


class MessagesReadResponse(BaseModel):
    marked: int


class MedicationIn(BaseModel):
    name: str = Field(default="", max_length=200)
    dosage: str = Field(default="", max_length=100)
    frequency: str = Field(default="", max_length=100)
    duration: str = Field(default="", max_length=100)


class PrescriptionCreateRequest(BaseModel):
    doctor_account_id: str = Field(min_length=1, max_length=100)
    diagnosis: str = Field(min_length=1, max_length=2000)
    medications: list[MedicationIn] = Field(default_factory=list, max_length=30)
    notes: str = Field(default="", max_length=5000)
    finish_consultation: bool = False


class MedicationOut(BaseModel):
    name: str
    dosage: str
    frequency: str
    duration: str


class PrescriptionOut(BaseModel):
    id: str
    consultation_id: str
    patient_id: str
    doctor_id: str
    diagnosis: str
    medications: list[MedicationOut]
    notes: str = ""
    created_at: str | None = None


class PrescriptionListResponse(BaseModel):
    items: list[PrescriptionOut]
