"""Unavailability service - storage of explicit doctor unavailability windows.

These are raw persistence operations. Creation and edits that may
displace booked appointments go through unavailability_workflow.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_agenda.core.structured_logging import build_log_context
from clinic_agenda.db.enums import AppointmentStatus
from clinic_agenda.db.models import Appointment, Doctor, UnavailabilityWindow
from clinic_agenda.services import directory_service
from clinic_agenda.services.errors import (
    InvalidSchedulingInput,
    UnavailabilityNotFoundError,
    collaborator_call,
)
from clinic_agenda.utils.clinic_time import end_of_clock_hour, to_clinic_time

logger = logging.getLogger(__name__)


def validate_window(starts_at: datetime, ends_at: datetime) -> None:
    if to_clinic_time(starts_at) >= to_clinic_time(ends_at):
        raise InvalidSchedulingInput("Unavailability must start before it ends")


def effective_end(window: UnavailabilityWindow) -> datetime:
    """Blocking end of a window: the end of the clock hour containing ends_at."""
    return end_of_clock_hour(window.ends_at)


# =============================================================================
# Queries
# =============================================================================

def get_window(db: Session, window_id: UUID) -> UnavailabilityWindow:
    """Get an active window or raise UnavailabilityNotFoundError."""
    with collaborator_call("unavailability lookup"):
        window = db.query(UnavailabilityWindow).filter(
            UnavailabilityWindow.id == window_id,
            UnavailabilityWindow.is_active == True,  # noqa: E712
        ).first()
    if not window:
        raise UnavailabilityNotFoundError(f"Unavailability window {window_id} not found")
    return window


def list_for_doctor(
    db: Session,
    doctor_id: UUID,
    date_from: datetime | None = None,
) -> list[UnavailabilityWindow]:
    """List active windows of a doctor, optionally only those still blocking after date_from."""
    query = db.query(UnavailabilityWindow).filter(
        UnavailabilityWindow.doctor_id == doctor_id,
        UnavailabilityWindow.is_active == True,  # noqa: E712
    )
    if date_from:
        query = query.filter(UnavailabilityWindow.ends_at >= date_from)

    with collaborator_call("unavailability listing"):
        return query.order_by(UnavailabilityWindow.starts_at).all()


def list_for_clinic(
    db: Session,
    clinic_id: UUID,
    date_from: datetime | None = None,
) -> list[UnavailabilityWindow]:
    """List active windows of every active doctor in a clinic."""
    query = db.query(UnavailabilityWindow).join(
        Doctor, Doctor.id == UnavailabilityWindow.doctor_id
    ).filter(
        Doctor.clinic_id == clinic_id,
        Doctor.is_active == True,  # noqa: E712
        UnavailabilityWindow.is_active == True,  # noqa: E712
    )
    if date_from:
        query = query.filter(UnavailabilityWindow.ends_at >= date_from)

    with collaborator_call("unavailability listing"):
        return query.order_by(UnavailabilityWindow.starts_at).all()


def find_intersecting_appointments(
    db: Session,
    doctor_id: UUID,
    starts_at: datetime,
    ends_at: datetime,
) -> list[Appointment]:
    """
    Non-cancelled appointments overlapping [starts_at, end_of_clock_hour(ends_at)).

    Uses half-open interval overlap against each appointment's own
    [scheduled_start, scheduled_end).
    """
    validate_window(starts_at, ends_at)
    blocked_until = end_of_clock_hour(ends_at)

    with collaborator_call("intersecting appointments lookup"):
        return db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(AppointmentStatus.blocking()),
            Appointment.scheduled_start < blocked_until,
            Appointment.scheduled_end > starts_at,
        ).order_by(Appointment.scheduled_start).all()


# =============================================================================
# Mutations
# =============================================================================

def create_window(
    db: Session,
    doctor_id: UUID,
    starts_at: datetime,
    ends_at: datetime,
    reason: str | None = None,
) -> UnavailabilityWindow:
    """Persist a window as-is (no conflict check)."""
    validate_window(starts_at, ends_at)
    directory_service.get_doctor(db, doctor_id)

    window = UnavailabilityWindow(
        doctor_id=doctor_id,
        starts_at=starts_at,
        ends_at=ends_at,
        reason=reason or None,
        is_active=True,
    )
    with collaborator_call("unavailability create", db):
        db.add(window)
        db.commit()
        db.refresh(window)

    logger.info(
        "Unavailability window created",
        extra=build_log_context(doctor_id=doctor_id, window_id=window.id),
    )
    return window


def update_window(
    db: Session,
    window: UnavailabilityWindow,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    reason: str | None = None,
) -> UnavailabilityWindow:
    """Change the range and/or reason of a stored window (no conflict check)."""
    new_start = starts_at if starts_at is not None else window.starts_at
    new_end = ends_at if ends_at is not None else window.ends_at
    validate_window(new_start, new_end)

    with collaborator_call("unavailability update", db):
        window.starts_at = new_start
        window.ends_at = new_end
        if reason is not None:
            window.reason = reason or None
        db.commit()
        db.refresh(window)

    logger.info(
        "Unavailability window updated",
        extra=build_log_context(doctor_id=window.doctor_id, window_id=window.id),
    )
    return window


def delete_window(db: Session, window: UnavailabilityWindow) -> UnavailabilityWindow:
    """Deactivate a window (soft delete)."""
    with collaborator_call("unavailability delete", db):
        window.is_active = False
        db.commit()
        db.refresh(window)

    logger.info(
        "Unavailability window deleted",
        extra=build_log_context(doctor_id=window.doctor_id, window_id=window.id),
    )
    return window
