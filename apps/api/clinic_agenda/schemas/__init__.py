"""Pydantic schemas for API request/response models."""

from clinic_agenda.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    DaySuggestionRead,
    RescheduleSuggestionRead,
)
from clinic_agenda.schemas.availability import (
    AvailableSlotsResponse,
    ConflictVerdictRead,
    SlotCheckRequest,
)
from clinic_agenda.schemas.schedule import (
    BlockedWeekdaysRead,
    BlockedWeekdaysSet,
    BreakExceptionCreate,
    BreakExceptionRead,
    BreakExceptionUpdate,
    EffectiveScheduleRead,
    WorkScheduleInput,
    WorkScheduleRead,
    WorkScheduleSet,
)
from clinic_agenda.schemas.unavailability import (
    ConflictRead,
    ConflictResolve,
    UnavailabilityCreate,
    UnavailabilityOutcomeRead,
    UnavailabilityRead,
    UnavailabilityUpdate,
)

__all__ = [
    # Appointment
    "AppointmentCancel",
    "AppointmentCreate",
    "AppointmentRead",
    "AppointmentReschedule",
    "DaySuggestionRead",
    "RescheduleSuggestionRead",
    # Availability
    "AvailableSlotsResponse",
    "ConflictVerdictRead",
    "SlotCheckRequest",
    # Schedule
    "BlockedWeekdaysRead",
    "BlockedWeekdaysSet",
    "BreakExceptionCreate",
    "BreakExceptionRead",
    "BreakExceptionUpdate",
    "EffectiveScheduleRead",
    "WorkScheduleInput",
    "WorkScheduleRead",
    "WorkScheduleSet",
    # Unavailability
    "ConflictRead",
    "ConflictResolve",
    "UnavailabilityCreate",
    "UnavailabilityOutcomeRead",
    "UnavailabilityRead",
    "UnavailabilityUpdate",
]
