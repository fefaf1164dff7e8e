"""Agenda snapshots - fetch everything the conflict detector needs in one pass.

The detector itself never touches the database. Callers load a
DoctorAgenda for the date range they are about to evaluate and reuse it
for every candidate slot in that range.
"""

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from clinic_agenda.db.enums import AppointmentStatus
from clinic_agenda.db.models import (
    Appointment,
    BreakException,
    Doctor,
    UnavailabilityWindow,
    WorkSchedule,
)
from clinic_agenda.services import directory_service
from clinic_agenda.services.conflict_detector import (
    BlockedPeriod,
    BookedSlot,
    BreakOverride,
    DoctorAgenda,
    WeeklyHours,
)
from clinic_agenda.services.errors import InvalidSchedulingInput, collaborator_call
from clinic_agenda.utils.clinic_time import day_bounds, to_clinic_time


def load_doctor_agenda(
    db: Session,
    doctor_id: UUID,
    date_start: date,
    date_end: date,
    doctor: Doctor | None = None,
) -> DoctorAgenda:
    """
    Build a DoctorAgenda covering clinic days date_start..date_end inclusive.

    Includes:
    - Blocked weekdays and weekly working hours
    - Active break exceptions of the doctor and of the doctor's clinic
    - Active unavailability windows touching the range
    - Non-cancelled appointments starting inside the range
    """
    if date_end < date_start:
        raise InvalidSchedulingInput("date_end must not be before date_start")

    if doctor is None:
        doctor = directory_service.get_doctor(db, doctor_id)

    range_start, _ = day_bounds(date_start)
    _, range_end = day_bounds(date_end)

    with collaborator_call("agenda load"):
        schedules = db.query(WorkSchedule).filter(
            WorkSchedule.doctor_id == doctor_id,
        ).all()

        overrides = db.query(BreakException).filter(
            BreakException.is_active == True,  # noqa: E712
            BreakException.exception_date >= date_start,
            BreakException.exception_date <= date_end,
            or_(
                BreakException.doctor_id == doctor_id,
                BreakException.clinic_id == doctor.clinic_id,
            ),
        ).all()

        # Blocking extends up to one clock hour past ends_at
        windows = db.query(UnavailabilityWindow).filter(
            UnavailabilityWindow.doctor_id == doctor_id,
            UnavailabilityWindow.is_active == True,  # noqa: E712
            UnavailabilityWindow.starts_at < range_end,
            UnavailabilityWindow.ends_at > range_start - timedelta(hours=1),
        ).order_by(UnavailabilityWindow.starts_at).all()

        appointments = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(AppointmentStatus.blocking()),
            Appointment.scheduled_start >= range_start,
            Appointment.scheduled_start < range_end,
        ).order_by(Appointment.scheduled_start).all()

    return DoctorAgenda(
        doctor_id=doctor_id,
        blocked_weekdays=frozenset(doctor.blocked_weekdays or []),
        weekly_hours={
            s.weekday: WeeklyHours(
                weekday=s.weekday,
                is_active=s.is_active,
                start=s.start_time,
                end=s.end_time,
                break_start=s.break_start,
                break_end=s.break_end,
            )
            for s in schedules
        },
        break_overrides=tuple(
            BreakOverride(
                exception_date=o.exception_date,
                break_start=o.break_start,
                break_end=o.break_end,
                created_at=to_clinic_time(o.created_at),
                doctor_level=o.doctor_id is not None,
            )
            for o in overrides
        ),
        blocked_periods=tuple(window_to_period(w) for w in windows),
        booked=tuple(
            BookedSlot(
                appointment_id=a.id,
                start=a.scheduled_start,
                duration_minutes=a.duration_minutes,
                status=a.status,
            )
            for a in appointments
        ),
    )


def window_to_period(window: UnavailabilityWindow) -> BlockedPeriod:
    return BlockedPeriod(
        start=window.starts_at,
        end=window.ends_at,
        reason=window.reason,
        window_id=window.id,
    )
