"""Appointment service - the appointment ledger.

Handles:
- Booking (validated by the conflict detector before persisting)
- Rescheduling and cancelling
- Fit-in confirmation by the doctor

The check before a write is advisory. On PostgreSQL an exclusion
constraint guarantees at most one non-fit-in appointment commits per
doctor and interval; losing that race raises SlotAlreadyTakenError.
"""

import logging
from datetime import date, datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_agenda.core.structured_logging import build_log_context
from clinic_agenda.db.enums import AppointmentStatus
from clinic_agenda.db.models import Appointment
from clinic_agenda.db.models.directory import utcnow
from clinic_agenda.services import availability_service, directory_service
from clinic_agenda.services.conflict_detector import ConflictVerdict
from clinic_agenda.services.errors import (
    AppointmentNotFoundError,
    InvalidSchedulingInput,
    SlotAlreadyTakenError,
    collaborator_call,
)
from clinic_agenda.utils.clinic_time import day_bounds, to_clinic_time

logger = logging.getLogger(__name__)


class BookingResult(NamedTuple):
    """Outcome of a booking or reschedule attempt."""
    appointment: Appointment | None
    verdict: ConflictVerdict

    @property
    def ok(self) -> bool:
        return self.verdict.valid


def _commit_slot(db: Session, appointment: Appointment, operation: str) -> None:
    """Commit a new or moved appointment, mapping constraint violations to SlotAlreadyTakenError."""
    with collaborator_call(operation, db):
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.info(
                "Storage rejected overlapping appointment during %s",
                operation,
                extra=build_log_context(doctor_id=appointment.doctor_id),
            )
            raise SlotAlreadyTakenError(
                "This time slot is no longer available - another appointment was booked"
            ) from exc
        db.refresh(appointment)


# =============================================================================
# Queries
# =============================================================================

def get_appointment(db: Session, appointment_id: UUID) -> Appointment:
    """Get appointment by ID or raise AppointmentNotFoundError."""
    with collaborator_call("appointment lookup"):
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
        ).first()
    if not appointment:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def list_appointments(
    db: Session,
    doctor_id: UUID,
    date_start: date | None = None,
    date_end: date | None = None,
    include_cancelled: bool = False,
    status: str | None = None,
) -> list[Appointment]:
    """List a doctor's appointments by clinic calendar day, earliest first."""
    query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)

    if not include_cancelled:
        query = query.filter(Appointment.status != AppointmentStatus.CANCELLED.value)
    if status:
        query = query.filter(Appointment.status == status)
    if date_start:
        query = query.filter(Appointment.scheduled_start >= day_bounds(date_start)[0])
    if date_end:
        query = query.filter(Appointment.scheduled_start < day_bounds(date_end)[1])

    with collaborator_call("appointment listing"):
        return query.order_by(Appointment.scheduled_start).all()


# =============================================================================
# Mutations
# =============================================================================

def update_appointment_start(
    db: Session,
    appointment: Appointment,
    new_start: datetime,
) -> Appointment:
    """Move an appointment without running the conflict guards."""
    new_start = to_clinic_time(new_start)
    appointment.scheduled_start = new_start
    appointment.scheduled_end = new_start + timedelta(minutes=appointment.duration_minutes)
    _commit_slot(db, appointment, "appointment move")
    return appointment


def book_appointment(
    db: Session,
    *,
    doctor_id: UUID,
    patient_id: UUID,
    service_id: UUID,
    start: datetime,
    is_fit_in: bool = False,
    now: datetime | None = None,
) -> BookingResult:
    """
    Book an appointment if the slot passes every guard.

    Returns a BookingResult whose appointment is None when the verdict is
    invalid. Fit-ins skip the overlap guard and wait for the doctor to
    confirm them.
    """
    doctor = directory_service.get_doctor(db, doctor_id)
    service = directory_service.get_service(db, service_id)
    if service.clinic_id != doctor.clinic_id:
        raise InvalidSchedulingInput("Service is not offered by the doctor's clinic")

    start = to_clinic_time(start)
    verdict = availability_service.check_slot(
        db, doctor_id, start, service.duration_minutes, is_fit_in=is_fit_in, now=now,
    )
    if not verdict.valid:
        return BookingResult(appointment=None, verdict=verdict)

    status = AppointmentStatus.FIT_IN_PENDING if is_fit_in else AppointmentStatus.PENDING
    appointment = Appointment(
        doctor_id=doctor_id,
        patient_id=patient_id,
        service_id=service_id,
        scheduled_start=start,
        scheduled_end=start + timedelta(minutes=service.duration_minutes),
        duration_minutes=service.duration_minutes,
        status=status.value,
        is_fit_in=is_fit_in,
    )
    db.add(appointment)
    _commit_slot(db, appointment, "appointment booking")

    logger.info(
        "Appointment booked (fit_in=%s)",
        is_fit_in,
        extra=build_log_context(doctor_id=doctor_id, appointment_id=appointment.id),
    )
    return BookingResult(appointment=appointment, verdict=verdict)


def reschedule_appointment(
    db: Session,
    appointment: Appointment,
    new_start: datetime,
    *,
    now: datetime | None = None,
) -> BookingResult:
    """Move an appointment after re-validating the new slot (the appointment itself excluded)."""
    if appointment.status not in AppointmentStatus.reschedulable():
        raise InvalidSchedulingInput(f"Cannot reschedule appointment with status {appointment.status}")

    verdict = availability_service.check_slot(
        db,
        appointment.doctor_id,
        new_start,
        appointment.duration_minutes,
        exclude_appointment_id=appointment.id,
        is_fit_in=appointment.is_fit_in,
        now=now,
    )
    if not verdict.valid:
        return BookingResult(appointment=None, verdict=verdict)

    update_appointment_start(db, appointment, new_start)
    logger.info(
        "Appointment rescheduled",
        extra=build_log_context(doctor_id=appointment.doctor_id, appointment_id=appointment.id),
    )
    return BookingResult(appointment=appointment, verdict=verdict)


def cancel_appointment(
    db: Session,
    appointment: Appointment,
    reason: str | None = None,
) -> Appointment:
    """Cancel an appointment; it stops blocking the agenda immediately."""
    if appointment.status in (AppointmentStatus.CANCELLED.value, AppointmentStatus.FINALIZED.value):
        raise InvalidSchedulingInput(f"Cannot cancel appointment with status {appointment.status}")

    with collaborator_call("appointment cancel", db):
        appointment.status = AppointmentStatus.CANCELLED.value
        appointment.cancelled_at = utcnow()
        appointment.cancellation_reason = reason
        db.commit()
        db.refresh(appointment)

    logger.info(
        "Appointment cancelled",
        extra=build_log_context(doctor_id=appointment.doctor_id, appointment_id=appointment.id),
    )
    return appointment


def confirm_fit_in(db: Session, appointment: Appointment) -> Appointment:
    """Doctor accepts a pending fit-in appointment."""
    if not appointment.is_fit_in:
        raise InvalidSchedulingInput("Only fit-in appointments need doctor confirmation")
    if appointment.status != AppointmentStatus.FIT_IN_PENDING.value:
        raise InvalidSchedulingInput(f"Cannot confirm fit-in with status {appointment.status}")

    with collaborator_call("fit-in confirmation", db):
        appointment.status = AppointmentStatus.CONFIRMED.value
        appointment.fit_in_confirmed_at = utcnow()
        db.commit()
        db.refresh(appointment)

    logger.info(
        "Fit-in confirmed",
        extra=build_log_context(doctor_id=appointment.doctor_id, appointment_id=appointment.id),
    )
    return appointment
