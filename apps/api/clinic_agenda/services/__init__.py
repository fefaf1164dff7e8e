"""Service layer modules."""

from clinic_agenda.services.errors import (
    CollaboratorUnavailable,
    InvalidSchedulingInput,
    SchedulingError,
    SlotAlreadyTakenError,
)
from clinic_agenda.services.conflict_detector import (
    ConflictVerdict,
    DoctorAgenda,
    EffectiveSchedule,
)

# Import service modules (not individual functions) for cleaner access
from clinic_agenda.services import directory_service
from clinic_agenda.services import agenda_service
from clinic_agenda.services import schedule_service
from clinic_agenda.services import availability_service
from clinic_agenda.services import reschedule_service
from clinic_agenda.services import unavailability_service
from clinic_agenda.services import appointment_service
from clinic_agenda.services import unavailability_workflow

__all__ = [
    # Errors
    "CollaboratorUnavailable",
    "InvalidSchedulingInput",
    "SchedulingError",
    "SlotAlreadyTakenError",
    # Conflict detector
    "ConflictVerdict",
    "DoctorAgenda",
    "EffectiveSchedule",
    # Service modules
    "directory_service",
    "agenda_service",
    "schedule_service",
    "availability_service",
    "reschedule_service",
    "unavailability_service",
    "appointment_service",
    "unavailability_workflow",
]
