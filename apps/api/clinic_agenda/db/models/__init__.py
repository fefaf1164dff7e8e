"""SQLAlchemy ORM models."""

from clinic_agenda.db.models.appointments import Appointment, UnavailabilityWindow
from clinic_agenda.db.models.directory import Clinic, Doctor, Service
from clinic_agenda.db.models.schedules import BreakException, WorkSchedule

__all__ = [
    "Appointment",
    "BreakException",
    "Clinic",
    "Doctor",
    "Service",
    "UnavailabilityWindow",
    "WorkSchedule",
]
