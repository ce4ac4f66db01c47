from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from telehealth_core import (
    InMemoryRepository,
    SQLiteRepository,
    TelehealthConfig,
    TelehealthService,
    build_event_bus,
    seed_demo_data_if_empty,
)
from telehealth_core.errors import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from telehealth_core.models import (
    AvailabilityStatus,
    Consultation,
    Doctor,
    DispatchUnit,
    Emergency,
    Message,
    Prescription,
    round_half_up,
)
from telehealth_core.observability import configure_logging

from .schemas import (
    AuditResponse,
    ClosestDispatchResponse,
    ConsultationActorRequest,
    ConsultationCreateRequest,
    ConsultationEndRequest,
    ConsultationListResponse,
    ConsultationOut,
    DashboardMetricsResponse,
    DispatchLocationRequest,
    DispatchOutcomeOut,
    DispatchUnitOut,
    DoctorListResponse,
    DoctorOut,
    DoctorStatusRequest,
    EmergencyCreateRequest,
    EmergencyCreateResponse,
    EmergencyListResponse,
    EmergencyOut,
    EmergencyRespondRequest,
    EmergencyRespondResponse,
    HealthResponse,
    MatchCandidateOut,
    MatchRequest,
    MatchResponse,
    MessageCreateRequest,
    MessageListResponse,
    MessageOut,
    MessagesReadResponse,
    PrescriptionCreateRequest,
    PrescriptionListResponse,
    PrescriptionOut,
    TriageRequest,
    TriageResultOut,
    UnitStatusRequest,
)

logger = logging.getLogger(__name__)


def _parse_origins(raw: str | None) -> list[str]:
    if not raw:
        return ["http://localhost:8080", "http://127.0.0.1:8080"]
    return [item.strip() for item in raw.split(",") if item.strip()]


def _build_service() -> TelehealthService:
    config = TelehealthConfig.from_env()
    configure_logging(config.log_level)
    if config.store_backend == "memory":
        store = InMemoryRepository()
    else:
        store = SQLiteRepository(config.db_path)
        store.init_db()
    if config.seed_demo_data:
        seed_demo_data_if_empty(store)
    service = TelehealthService.build(
        store=store,
        config=config,
        events=build_event_bus(config),
    )
    logger.info("Telehealth service ready (store=%s)", config.store_backend)
    return service


def _doctor_out(value: Doctor) -> DoctorOut:
    return DoctorOut(**value.to_record())


def _unit_out(value: DispatchUnit | None) -> DispatchUnitOut | None:
    if value is None:
        return None
    return DispatchUnitOut(**value.to_record())


def _consultation_out(value: Consultation) -> ConsultationOut:
    return ConsultationOut(**value.to_record())


def _emergency_out(value: Emergency) -> EmergencyOut:
    return EmergencyOut(**value.to_record())


def _message_out(value: Message) -> MessageOut:
    return MessageOut(**value.to_record())


def _prescription_out(value: Prescription) -> PrescriptionOut:
    return PrescriptionOut(**value.to_record())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.telehealth_service = _build_service()
    try:
        yield
    finally:
        if hasattr(app.state, "telehealth_service"):
            delattr(app.state, "telehealth_service")


def get_service(request: Request) -> TelehealthService:
    service = getattr(request.app.state, "telehealth_service", None)
    if not service:
        raise HTTPException(status_code=503, detail="Service is not initialized.")
    return service


ServiceDep = Annotated[TelehealthService, Depends(get_service)]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
def health() -> HealthResponse:
    return HealthResponse(status="ok", service="telehealth-core-api", version="1.0.0")


@router.post("/api/v1/triage", response_model=TriageResultOut, tags=["triage"])
def triage(payload: TriageRequest, service: ServiceDep) -> TriageResultOut:
    result = service.assess_symptoms(
        symptoms=payload.symptoms,
        age=payload.age,
        vitals=payload.vitals,
        comorbidities=payload.comorbidities,
    )
    return TriageResultOut(level=result.level.value, score=result.score, recommendation=result.recommendation)


@router.get("/api/v1/doctors", response_model=DoctorListResponse, tags=["doctors"])
def list_doctors(service: ServiceDep) -> DoctorListResponse:
    return DoctorListResponse(items=[_doctor_out(doc) for doc in service.availability.list_doctors()])


@router.post("/api/v1/doctors/match", response_model=MatchResponse, tags=["doctors"])
def match_doctors(payload: MatchRequest, service: ServiceDep) -> MatchResponse:
    candidates = service.find_doctors(
        location=payload.location.model_dump(),
        specialty=payload.specialty,
        urgency_level=payload.urgency_level,
    )
    return MatchResponse(
        items=[
            MatchCandidateOut(
                doctor=_doctor_out(item.doctor),
                distance_km=round(item.distance_km, 1),
                match_score=round_half_up(item.match_score),
            )
            for item in candidates
        ]
    )


@router.post("/api/v1/doctors/{account_id}/heartbeat", response_model=DoctorOut, tags=["doctors"])
def doctor_heartbeat(account_id: str, service: ServiceDep) -> DoctorOut:
    return _doctor_out(service.availability.heartbeat(account_id))


@router.put("/api/v1/doctors/{account_id}/status", response_model=DoctorOut, tags=["doctors"])
def doctor_status(account_id: str, payload: DoctorStatusRequest, service: ServiceDep) -> DoctorOut:
    doctor = service.availability.update_status(account_id, AvailabilityStatus(payload.status))
    return _doctor_out(doctor)


@router.post(
    "/api/v1/consultations",
    response_model=ConsultationOut,
    tags=["consultations"],
    status_code=status.HTTP_201_CREATED,
)
def create_consultation(payload: ConsultationCreateRequest, service: ServiceDep) -> ConsultationOut:
    consultation = service.request_consultation(
        patient_id=payload.patient_id,
        doctor_account_id=payload.doctor_account_id,
        symptoms=payload.symptoms,
        triage_level=payload.triage_level,
    )
    return _consultation_out(consultation)


@router.get("/api/v1/consultations/{consultation_id}", response_model=ConsultationOut, tags=["consultations"])
def get_consultation(consultation_id: str, service: ServiceDep) -> ConsultationOut:
    return _consultation_out(service.consultations.get(consultation_id))


@router.post(
    "/api/v1/consultations/{consultation_id}/accept",
    response_model=ConsultationOut,
    tags=["consultations"],
)
def accept_consultation(
    consultation_id: str,
    payload: ConsultationActorRequest,
    service: ServiceDep,
) -> ConsultationOut:
    return _consultation_out(service.accept_consultation(consultation_id, payload.actor_id))


@router.post(
    "/api/v1/consultations/{consultation_id}/start",
    response_model=ConsultationOut,
    tags=["consultations"],
)
def start_consultation(consultation_id: str, service: ServiceDep) -> ConsultationOut:
    return _consultation_out(service.start_consultation(consultation_id))


@router.post(
    "/api/v1/consultations/{consultation_id}/end",
    response_model=ConsultationOut,
    tags=["consultations"],
)
def end_consultation(
    consultation_id: str,
    payload: ConsultationEndRequest,
    service: ServiceDep,
) -> ConsultationOut:
    return _consultation_out(service.end_consultation(consultation_id, payload.notes))


@router.post(
    "/api/v1/consultations/{consultation_id}/cancel",
    response_model=ConsultationOut,
    tags=["consultations"],
)
def cancel_consultation(
    consultation_id: str,
    payload: ConsultationActorRequest,
    service: ServiceDep,
) -> ConsultationOut:
    return _consultation_out(service.cancel_consultation(consultation_id, payload.actor_id))


@router.post(
    "/api/v1/consultations/{consultation_id}/pay",
    response_model=ConsultationOut,
    tags=["consultations"],
)
def pay_consultation(consultation_id: str, service: ServiceDep) -> ConsultationOut:
    return _consultation_out(service.pay_consultation(consultation_id))


@router.post(
    "/api/v1/consultations/{consultation_id}/messages",
    response_model=MessageOut,
    tags=["messages"],
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    consultation_id: str,
    payload: MessageCreateRequest,
    service: ServiceDep,
) -> MessageOut:
    return _message_out(service.send_message(consultation_id, payload.sender_id, payload.content))


@router.get(
    "/api/v1/consultations/{consultation_id}/messages",
    response_model=MessageListResponse,
    tags=["messages"],
)
def list_messages(consultation_id: str, service: ServiceDep) -> MessageListResponse:
    items = service.consultation_messages(consultation_id)
    return MessageListResponse(items=[_message_out(item) for item in items])


@router.post(
    "/api/v1/consultations/{consultation_id}/messages/read",
    response_model=MessagesReadResponse,
    tags=["messages"],
)
def read_messages(
    consultation_id: str,
    payload: ConsultationActorRequest,
    service: ServiceDep,
) -> MessagesReadResponse:
    return MessagesReadResponse(marked=service.mark_messages_read(consultation_id, payload.actor_id))


@router.post(
    "/api/v1/consultations/{consultation_id}/prescriptions",
    response_model=PrescriptionOut,
    tags=["prescriptions"],
    status_code=status.HTTP_201_CREATED,
)
def write_prescription(
    consultation_id: str,
    payload: PrescriptionCreateRequest,
    service: ServiceDep,
) -> PrescriptionOut:
    prescription = service.write_prescription(
        consultation_id,
        payload.doctor_account_id,
        diagnosis=payload.diagnosis,
        medications=[item.model_dump() for item in payload.medications],
        notes=payload.notes,
        finish_consultation=payload.finish_consultation,
    )
    return _prescription_out(prescription)


@router.get(
    "/api/v1/patients/{patient_id}/prescriptions",
    response_model=PrescriptionListResponse,
    tags=["prescriptions"],
)
def patient_prescriptions(patient_id: str, service: ServiceDep) -> PrescriptionListResponse:
    items = service.prescriptions.for_patient(patient_id)
    return PrescriptionListResponse(items=[_prescription_out(item) for item in items])


@router.get(
    "/api/v1/patients/{patient_id}/consultations",
    response_model=ConsultationListResponse,
    tags=["consultations"],
)
def patient_consultations(patient_id: str, service: ServiceDep) -> ConsultationListResponse:
    items = service.consultations.for_patient(patient_id)
    return ConsultationListResponse(items=[_consultation_out(item) for item in items])


@router.get(
    "/api/v1/doctors/{account_id}/consultations",
    response_model=ConsultationListResponse,
    tags=["consultations"],
)
def doctor_consultations(
    account_id: str,
    service: ServiceDep,
    pending_only: bool = Query(default=False),
) -> ConsultationListResponse:
    if pending_only:
        items = service.consultations.pending_for_doctor(account_id)
    else:
        items = service.consultations.for_doctor(account_id)
    return ConsultationListResponse(items=[_consultation_out(item) for item in items])


@router.post(
    "/api/v1/emergencies",
    response_model=EmergencyCreateResponse,
    tags=["emergencies"],
    status_code=status.HTTP_201_CREATED,
)
def create_emergency(payload: EmergencyCreateRequest, service: ServiceDep) -> EmergencyCreateResponse:
    emergency, unit = service.raise_emergency(
        emergency_type=payload.emergency_type,
        location=payload.location.model_dump(),
        patient_id=payload.patient_id,
        patient_name=payload.patient_name,
        phone=payload.phone,
        additional_info=payload.additional_info,
        auto_assign=payload.auto_assign,
    )
    return EmergencyCreateResponse(emergency=_emergency_out(emergency), assigned_unit=_unit_out(unit))


@router.get("/api/v1/emergencies/active", response_model=EmergencyListResponse, tags=["emergencies"])
def active_emergencies(
    service: ServiceDep,
    unit_id: str | None = Query(default=None),
) -> EmergencyListResponse:
    if unit_id:
        items = service.emergencies.open_for_unit(unit_id)
    else:
        items = service.emergencies.active()
    return EmergencyListResponse(items=[_emergency_out(item) for item in items])


@router.post(
    "/api/v1/emergencies/{emergency_id}/respond",
    response_model=EmergencyRespondResponse,
    tags=["emergencies"],
)
def respond_to_emergency(
    emergency_id: str,
    payload: EmergencyRespondRequest,
    service: ServiceDep,
) -> EmergencyRespondResponse:
    emergency = service.respond_to_emergency(emergency_id, payload.unit_id)
    return EmergencyRespondResponse(emergency=_emergency_out(emergency) if emergency else None)


@router.post(
    "/api/v1/emergencies/{emergency_id}/complete",
    response_model=EmergencyOut,
    tags=["emergencies"],
)
def complete_emergency(emergency_id: str, service: ServiceDep) -> EmergencyOut:
    return _emergency_out(service.complete_emergency(emergency_id))


@router.post(
    "/api/v1/emergencies/{emergency_id}/resolve",
    response_model=EmergencyOut,
    tags=["emergencies"],
)
def resolve_emergency(emergency_id: str, service: ServiceDep) -> EmergencyOut:
    return _emergency_out(service.resolve_emergency(emergency_id))


@router.post(
    "/api/v1/emergencies/{emergency_id}/cancel",
    response_model=EmergencyOut,
    tags=["emergencies"],
)
def cancel_emergency(emergency_id: str, service: ServiceDep) -> EmergencyOut:
    return _emergency_out(service.cancel_emergency(emergency_id))


@router.put("/api/v1/dispatch/{account_id}/status", response_model=DispatchUnitOut, tags=["dispatch"])
def dispatch_unit_status(account_id: str, payload: UnitStatusRequest, service: ServiceDep) -> DispatchUnitOut:
    unit = service.availability.update_unit_status(account_id, AvailabilityStatus(payload.status))
    return _unit_out(unit)


@router.post("/api/v1/dispatch/closest", response_model=ClosestDispatchResponse, tags=["dispatch"])
def closest_dispatch(payload: DispatchLocationRequest, service: ServiceDep) -> ClosestDispatchResponse:
    unit = service.dispatcher.find_closest_dispatch(payload.location.model_dump())
    return ClosestDispatchResponse(unit=_unit_out(unit))


@router.post("/api/v1/dispatch/emergency", response_model=DispatchOutcomeOut, tags=["dispatch"])
def dispatch_emergency(payload: DispatchLocationRequest, service: ServiceDep) -> DispatchOutcomeOut:
    outcome = service.dispatch_nearest(payload.location.model_dump())
    candidate = outcome.candidate
    return DispatchOutcomeOut(
        success=outcome.success,
        message=outcome.message,
        hotline=outcome.hotline,
        unit=_unit_out(candidate.unit) if candidate else None,
        distance_km=round(candidate.distance_km, 1) if candidate else None,
        eta_minutes=candidate.eta_minutes if candidate else None,
    )


@router.get("/api/v1/dashboard/metrics", response_model=DashboardMetricsResponse, tags=["dashboard"])
def dashboard_metrics(service: ServiceDep) -> DashboardMetricsResponse:
    return DashboardMetricsResponse(**service.get_dashboard_metrics())


@router.get("/api/v1/audit", response_model=AuditResponse, tags=["audit"])
def audit_view(
    service: ServiceDep,
    limit: int = Query(default=100, ge=1, le=500),
) -> AuditResponse:
    return AuditResponse(audit_log=service.recent_audit_log(limit=limit))


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(UnauthorizedError)
    async def _unauthorized(_: Request, exc: UnauthorizedError) -> JSONResponse:
        return _error_response(status.HTTP_403_FORBIDDEN, exc)

    @app.exception_handler(InvalidTransitionError)
    async def _invalid_transition(_: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(InvalidInputError)
    async def _invalid_input(_: Request, exc: InvalidInputError) -> JSONResponse:
        return _error_response(422, exc)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Telehealth Core API",
        version="1.0.0",
        description=(
            "FastAPI backend for symptom triage, doctor matching, emergency dispatch "
            "and consultation/emergency lifecycles."
        ),
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(os.getenv("TELEHEALTH_API_CORS_ORIGINS")),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
