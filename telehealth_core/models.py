from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

TIME_FMT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.strftime(TIME_FMT)


def parse_db_time(value: str | datetime | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    text = str(value).strip()
    try:
        return datetime.strptime(text, TIME_FMT)
    except ValueError:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed.replace(microsecond=0)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class EntityKind(str, Enum):
    USERS = "users"
    DOCTORS = "doctors"
    DISPATCHES = "dispatches"
    CONSULTATIONS = "consultations"
    EMERGENCIES = "emergencies"
    MESSAGES = "messages"
    PRESCRIPTIONS = "prescriptions"


class TriageLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    EMERGENCY = "EMERGENCY"


class AvailabilityStatus(str, Enum):
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"
    IN_SESSION = "IN_SESSION"
    RESPONDING = "RESPONDING"
    EN_ROUTE = "EN_ROUTE"


class UnitType(str, Enum):
    AMBULANCE = "ambulance"
    HOSPITAL = "hospital"
    OTHER = "other"


class ConsultationStatus(str, Enum):
    PENDING = "PENDING"
    IN_SESSION = "IN_SESSION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DECLINED = "DECLINED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class EmergencyStatus(str, Enum):
    PENDING = "PENDING"
    RESPONDING = "RESPONDING"
    COMPLETED = "COMPLETED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class SenderType(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


class Priority(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

TERMINAL_CONSULTATION_STATUSES = frozenset(
    {ConsultationStatus.COMPLETED, ConsultationStatus.CANCELLED, ConsultationStatus.DECLINED}
)
CLOSED_EMERGENCY_STATUSES = frozenset(
    {EmergencyStatus.COMPLETED, EmergencyStatus.RESOLVED, EmergencyStatus.CANCELLED}
)


def priority_rank(value: Priority | str) -> int:
    priority = value if isinstance(value, Priority) else Priority(value)
    return PRIORITY_RANK[priority]


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float

    @classmethod
    def from_any(cls, value: Any) -> Optional["Location"]:
        """Accept a Location, a (lat, lng) pair or a lat/lng or latitude/longitude mapping."""
        if value is None:
            return None
        if isinstance(value, Location):
            return value
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(lat=float(value[0]), lng=float(value[1]))
        if isinstance(value, dict):
            lat = value.get("lat", value.get("latitude"))
            lng = value.get("lng", value.get("longitude"))
            if lat is None or lng is None:
                return None
            return cls(lat=float(lat), lng=float(lng))
        raise TypeError(f"Unsupported location value: {value!r}")

    def to_record(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class TriageResult:
    level: TriageLevel
    score: int
    recommendation: str


@dataclass
class Doctor:
    id: str
    account_id: str
    name: str
    specialty: str = "General Practice"
    location: Optional[Location] = None
    status: AvailabilityStatus = AvailabilityStatus.OFFLINE
    rating: float = 5.0
    queue: int = 0
    emergency_capable: bool = False
    last_heartbeat: Optional[datetime] = None
    total_consults: int = 0

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Doctor":
        return cls(
            id=str(row["id"]),
            account_id=str(row.get("account_id") or row.get("odctrId") or row.get("userId") or ""),
            name=str(row.get("name") or row.get("fullName") or ""),
            specialty=str(row.get("specialty") or "General Practice"),
            location=Location.from_any(row.get("location")),
            status=AvailabilityStatus(row.get("status") or AvailabilityStatus.OFFLINE.value),
            rating=float(row["rating"]) if row.get("rating") is not None else 5.0,
            queue=int(row.get("queue") or 0),
            emergency_capable=bool(row.get("emergency_capable", row.get("emergencyCapable", False))),
            last_heartbeat=parse_db_time(row.get("last_heartbeat", row.get("lastHeartbeat"))),
            total_consults=int(row.get("total_consults", row.get("totalConsults")) or 0),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "specialty": self.specialty,
            "location": self.location.to_record() if self.location else None,
            "status": self.status.value,
            "rating": self.rating,
            "queue": self.queue,
            "emergency_capable": self.emergency_capable,
            "last_heartbeat": to_db_time(self.last_heartbeat),
            "total_consults": self.total_consults,
        }


@dataclass
class DispatchUnit:
    id: str
    account_id: str
    name: str
    unit_type: UnitType = UnitType.AMBULANCE
    location: Optional[Location] = None
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    unit_id: str = ""

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "DispatchUnit":
        raw_type = str(row.get("unit_type") or row.get("type") or UnitType.OTHER.value).lower()
        try:
            unit_type = UnitType(raw_type)
        except ValueError:
            unit_type = UnitType.OTHER
        return cls(
            id=str(row["id"]),
            account_id=str(row.get("account_id") or row.get("userId") or ""),
            name=str(row.get("name") or row.get("fullName") or ""),
            unit_type=unit_type,
            location=Location.from_any(row.get("location")),
            status=AvailabilityStatus(row.get("status") or AvailabilityStatus.OFFLINE.value),
            unit_id=str(row.get("unit_id") or row.get("unitId") or ""),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "name": self.name,
            "unit_type": self.unit_type.value,
            "location": self.location.to_record() if self.location else None,
            "status": self.status.value,
            "unit_id": self.unit_id,
        }


@dataclass
class Consultation:
    id: str
    patient_id: str
    doctor_id: str
    symptoms: Any
    triage_level: TriageLevel
    status: ConsultationStatus = ConsultationStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration: Optional[int] = None
    notes: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CONSULTATION_STATUSES

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Consultation":
        duration = row.get("duration")
        return cls(
            id=str(row["id"]),
            patient_id=str(row.get("patient_id") or row.get("patientId") or ""),
            doctor_id=str(row.get("doctor_id") or row.get("doctorId") or ""),
            symptoms=row.get("symptoms"),
            triage_level=TriageLevel(row.get("triage_level") or row.get("triageLevel") or "LOW"),
            status=ConsultationStatus(row.get("status") or ConsultationStatus.PENDING.value),
            payment_status=PaymentStatus(
                row.get("payment_status") or row.get("paymentStatus") or PaymentStatus.UNPAID.value
            ),
            created_at=parse_db_time(row.get("created_at", row.get("createdAt"))),
            accepted_at=parse_db_time(row.get("accepted_at", row.get("acceptedAt"))),
            started_at=parse_db_time(row.get("started_at", row.get("startedAt"))),
            ended_at=parse_db_time(row.get("ended_at", row.get("endedAt"))),
            duration=int(duration) if duration is not None else None,
            notes=str(row.get("notes") or ""),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "symptoms": self.symptoms,
            "triage_level": self.triage_level.value,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "created_at": to_db_time(self.created_at),
            "accepted_at": to_db_time(self.accepted_at),
            "started_at": to_db_time(self.started_at),
            "ended_at": to_db_time(self.ended_at),
            "duration": self.duration,
            "notes": self.notes,
        }


@dataclass
class Emergency:
    id: str
    patient_id: str
    emergency_type: str
    type_label: str
    priority: Priority
    location: Optional[Location] = None
    patient_name: str = "Anonymous"
    phone: Optional[str] = None
    description: str = ""
    status: EmergencyStatus = EmergencyStatus.PENDING
    assigned_dispatch: Optional[str] = None
    dispatch_name: Optional[str] = None
    response_time: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_EMERGENCY_STATUSES

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Emergency":
        response_time = row.get("response_time", row.get("responseTime"))
        return cls(
            id=str(row["id"]),
            patient_id=str(row.get("patient_id") or row.get("patientId") or "anonymous"),
            emergency_type=str(row.get("emergency_type") or row.get("emergencyType") or "other"),
            type_label=str(row.get("type_label") or row.get("type") or ""),
            priority=Priority(row.get("priority") or Priority.HIGH.value),
            location=Location.from_any(row.get("location")),
            patient_name=str(row.get("patient_name") or row.get("patientName") or "Anonymous"),
            phone=row.get("phone"),
            description=str(row.get("description") or ""),
            status=EmergencyStatus(row.get("status") or EmergencyStatus.PENDING.value),
            assigned_dispatch=row.get("assigned_dispatch", row.get("assignedDispatch")),
            dispatch_name=row.get("dispatch_name", row.get("dispatchName")),
            response_time=int(response_time) if response_time is not None else None,
            created_at=parse_db_time(row.get("created_at", row.get("createdAt"))),
            updated_at=parse_db_time(row.get("updated_at", row.get("updatedAt"))),
            completed_at=parse_db_time(row.get("completed_at", row.get("completedAt"))),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "emergency_type": self.emergency_type,
            "type_label": self.type_label,
            "priority": self.priority.value,
            "location": self.location.to_record() if self.location else None,
            "patient_name": self.patient_name,
            "phone": self.phone,
            "description": self.description,
            "status": self.status.value,
            "assigned_dispatch": self.assigned_dispatch,
            "dispatch_name": self.dispatch_name,
            "response_time": self.response_time,
            "created_at": to_db_time(self.created_at),
            "updated_at": to_db_time(self.updated_at),
            "completed_at": to_db_time(self.completed_at),
        }


@dataclass
class Message:
    id: str
    consultation_id: str
    sender_id: str
    sender_type: SenderType
    content: str
    timestamp: Optional[datetime] = None
    read: bool = False

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Message":
        return cls(
            id=str(row["id"]),
            consultation_id=str(row.get("consultation_id") or row.get("consultationId") or ""),
            sender_id=str(row.get("sender_id") or row.get("senderId") or ""),
            sender_type=SenderType(row.get("sender_type") or row.get("senderType") or "patient"),
            content=str(row.get("content") or ""),
            timestamp=parse_db_time(row.get("timestamp")),
            read=bool(row.get("read", False)),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "consultation_id": self.consultation_id,
            "sender_id": self.sender_id,
            "sender_type": self.sender_type.value,
            "content": self.content,
            "timestamp": to_db_time(self.timestamp),
            "read": self.read,
        }


@dataclass
class Medication:
    name: str
    dosage: str = ""
    frequency: str = ""
    duration: str = ""

    def to_record(self) -> dict[str, str]:
        return {
            "name": self.name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "duration": self.duration,
        }


@dataclass
class Prescription:
    id: str
    consultation_id: str
    patient_id: str
    doctor_id: str
    diagnosis: str
    medications: list[Medication] = field(default_factory=list)
    notes: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Prescription":
        return cls(
            id=str(row["id"]),
            consultation_id=str(row.get("consultation_id") or row.get("consultationId") or ""),
            patient_id=str(row.get("patient_id") or row.get("patientId") or ""),
            doctor_id=str(row.get("doctor_id") or row.get("doctorId") or ""),
            diagnosis=str(row.get("diagnosis") or ""),
            medications=[
                Medication(
                    name=str(item.get("name") or ""),
                    dosage=str(item.get("dosage") or ""),
                    frequency=str(item.get("frequency") or ""),
                    duration=str(item.get("duration") or ""),
                )
                for item in row.get("medications") or []
            ],
            notes=str(row.get("notes") or ""),
            created_at=parse_db_time(row.get("created_at", row.get("createdAt"))),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "consultation_id": self.consultation_id,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "diagnosis": self.diagnosis,
            "medications": [item.to_record() for item in self.medications],
            "notes": self.notes,
            "created_at": to_db_time(self.created_at),
        }


@dataclass
class MatchCandidate:
    doctor: Doctor
    distance_km: float
    match_score: float


@dataclass
class DispatchCandidate:
    unit: DispatchUnit
    distance_km: float
    eta_minutes: int


@dataclass
class DispatchOutcome:
    success: bool
    message: str
    candidate: Optional[DispatchCandidate] = None
    hotline: Optional[str] = None


@dataclass
class StatusChangeEvent:
    entity_kind: EntityKind
    entity_id: str
    new_status: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "entity_kind": self.entity_kind.value,
            "entity_id": self.entity_id,
            "new_status": self.new_status,
            "timestamp": to_db_time(self.timestamp),
            "metadata": self.metadata,
        }
