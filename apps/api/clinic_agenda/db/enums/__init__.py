"""Enum definitions for application constants."""

from clinic_agenda.db.enums.appointments import (
    AppointmentStatus,
    ConflictReason,
    DEFAULT_APPOINTMENT_STATUS,
    WorkflowState,
)

__all__ = [
    "AppointmentStatus",
    "ConflictReason",
    "DEFAULT_APPOINTMENT_STATUS",
    "WorkflowState",
]
