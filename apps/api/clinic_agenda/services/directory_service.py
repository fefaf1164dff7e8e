"""Doctor/service directory - read access plus blocked-weekday configuration."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_agenda.db.models import Clinic, Doctor, Service
from clinic_agenda.services.errors import (
    DoctorNotFoundError,
    InvalidSchedulingInput,
    ServiceNotFoundError,
    collaborator_call,
)

logger = logging.getLogger(__name__)


def get_clinic(db: Session, clinic_id: UUID) -> Clinic | None:
    """Get an active clinic by ID."""
    with collaborator_call("clinic lookup"):
        return db.query(Clinic).filter(
            Clinic.id == clinic_id,
            Clinic.is_active == True,  # noqa: E712
        ).first()


def get_doctor(db: Session, doctor_id: UUID) -> Doctor:
    """Get an active doctor or raise DoctorNotFoundError."""
    with collaborator_call("doctor lookup"):
        doctor = db.query(Doctor).filter(
            Doctor.id == doctor_id,
            Doctor.is_active == True,  # noqa: E712
        ).first()
    if not doctor:
        raise DoctorNotFoundError(f"Doctor {doctor_id} not found")
    return doctor


def get_service(db: Session, service_id: UUID) -> Service:
    """Get an active service or raise ServiceNotFoundError."""
    with collaborator_call("service lookup"):
        service = db.query(Service).filter(
            Service.id == service_id,
            Service.is_active == True,  # noqa: E712
        ).first()
    if not service:
        raise ServiceNotFoundError(f"Service {service_id} not found")
    return service


def get_service_duration(db: Session, service_id: UUID) -> int:
    """Duration in minutes of a service."""
    return get_service(db, service_id).duration_minutes


def get_blocked_weekdays(db: Session, doctor_id: UUID) -> frozenset[int]:
    doctor = get_doctor(db, doctor_id)
    return frozenset(doctor.blocked_weekdays or [])


def set_blocked_weekdays(db: Session, doctor_id: UUID, weekdays: list[int]) -> Doctor:
    """
    Replace the set of fully blocked weekdays for a doctor.

    Weekdays use Monday=0 ... Sunday=6; duplicates are dropped.
    """
    invalid = [d for d in weekdays if not 0 <= d <= 6]
    if invalid:
        raise InvalidSchedulingInput(f"Invalid weekday(s): {invalid}; expected 0 (Monday) to 6 (Sunday)")

    doctor = get_doctor(db, doctor_id)
    with collaborator_call("blocked weekdays update", db):
        doctor.blocked_weekdays = sorted(set(weekdays))
        db.commit()
        db.refresh(doctor)

    logger.info("Blocked weekdays updated for doctor %s: %s", doctor_id, doctor.blocked_weekdays)
    return doctor
