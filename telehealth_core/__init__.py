from .availability import AvailabilityService
from .config import TelehealthConfig
from .consultations import ConsultationLifecycle
from .database import SQLiteRepository, seed_demo_data_if_empty
from .dispatch import DispatchSelector
from .emergencies import EmergencyLifecycle
from .geo import distance_km
from .matching import DoctorMatcher
from .memory_store import InMemoryRepository
from .messaging import ConsultationChat
from .notification_factory import build_event_bus, build_notifier
from .notifications import EventBus, HookNotificationDispatcher, NoopNotificationDispatcher
from .prescriptions import PrescriptionBook
from .service import TelehealthService
from .transitions import TransitionRecorder
from .triage import TriageEngine

__all__ = [
    "AvailabilityService",
    "ConsultationChat",
    "ConsultationLifecycle",
    "DispatchSelector",
    "DoctorMatcher",
    "EmergencyLifecycle",
    "EventBus",
    "HookNotificationDispatcher",
    "InMemoryRepository",
    "NoopNotificationDispatcher",
    "PrescriptionBook",
    "SQLiteRepository",
    "TelehealthConfig",
    "TelehealthService",
    "TransitionRecorder",
    "TriageEngine",
    "build_event_bus",
    "build_notifier",
    "distance_km",
    "seed_demo_data_if_empty",
]
