"""Schedule service - weekly working hours and single-date break exceptions.

Handles:
- Work schedule rows (one per doctor x weekday) with their invariants
- Break exceptions owned by a doctor or by a whole clinic
"""

import logging
from datetime import date, time
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_agenda.db.models import BreakException, WorkSchedule
from clinic_agenda.services import directory_service
from clinic_agenda.services.errors import (
    BreakExceptionNotFoundError,
    InvalidSchedulingInput,
    NotFoundError,
    collaborator_call,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Validation
# =============================================================================

def _parse_time(value: time | str | None) -> time | None:
    """Accept time objects or "HH:MM" strings; empty strings clear the value."""
    if value is None or isinstance(value, time):
        return value
    if value == "":
        return None
    try:
        return time.fromisoformat(value)
    except ValueError:
        raise InvalidSchedulingInput(f"Invalid time '{value}'; expected HH:MM")


def validate_work_hours(
    weekday: int,
    start_time: time,
    end_time: time,
    break_start: time | None,
    break_end: time | None,
    is_active: bool = True,
) -> None:
    """Enforce start < end and start <= break_start < break_end <= end."""
    if not 0 <= weekday <= 6:
        raise InvalidSchedulingInput(f"Invalid weekday {weekday}; expected 0 (Monday) to 6 (Sunday)")
    if is_active and start_time >= end_time:
        raise InvalidSchedulingInput("Working hours must start before they end")
    if (break_start is None) != (break_end is None):
        raise InvalidSchedulingInput("Break start and break end must be given together")
    if break_start is not None:
        if break_start >= break_end:
            raise InvalidSchedulingInput("Break must start before it ends")
        if break_start < start_time or break_end > end_time:
            raise InvalidSchedulingInput("Break must fall within working hours")


# =============================================================================
# Work Schedules
# =============================================================================

def get_work_schedules(db: Session, doctor_id: UUID) -> list[WorkSchedule]:
    """Get all weekly rows for a doctor, ordered by weekday."""
    with collaborator_call("work schedule listing"):
        return db.query(WorkSchedule).filter(
            WorkSchedule.doctor_id == doctor_id,
        ).order_by(WorkSchedule.weekday).all()


def get_work_schedule(db: Session, doctor_id: UUID, weekday: int) -> WorkSchedule | None:
    with collaborator_call("work schedule lookup"):
        return db.query(WorkSchedule).filter(
            WorkSchedule.doctor_id == doctor_id,
            WorkSchedule.weekday == weekday,
        ).first()


def set_work_schedule(
    db: Session,
    doctor_id: UUID,
    weekday: int,
    start_time: time | str,
    end_time: time | str,
    break_start: time | str | None = None,
    break_end: time | str | None = None,
    is_active: bool = True,
) -> WorkSchedule:
    """Create or update the working hours of one weekday."""
    start_time = _parse_time(start_time)
    end_time = _parse_time(end_time)
    break_start = _parse_time(break_start)
    break_end = _parse_time(break_end)
    validate_work_hours(weekday, start_time, end_time, break_start, break_end, is_active)
    directory_service.get_doctor(db, doctor_id)

    existing = get_work_schedule(db, doctor_id, weekday)
    with collaborator_call("work schedule update", db):
        if existing:
            existing.start_time = start_time
            existing.end_time = end_time
            existing.break_start = break_start
            existing.break_end = break_end
            existing.is_active = is_active
            schedule = existing
        else:
            schedule = WorkSchedule(
                doctor_id=doctor_id,
                weekday=weekday,
                start_time=start_time,
                end_time=end_time,
                break_start=break_start,
                break_end=break_end,
                is_active=is_active,
            )
            db.add(schedule)
        db.commit()
        db.refresh(schedule)
    return schedule


def replace_work_schedules(
    db: Session,
    doctor_id: UUID,
    rows: list[dict],
) -> list[WorkSchedule]:
    """
    Replace the whole weekly schedule for a doctor.

    rows format: [{"weekday": 0, "start_time": "08:00", "end_time": "18:00",
                   "break_start": "12:00", "break_end": "13:00"}, ...]
    """
    parsed = []
    seen: set[int] = set()
    for row in rows:
        weekday = row["weekday"]
        if weekday in seen:
            raise InvalidSchedulingInput(f"Weekday {weekday} appears more than once")
        seen.add(weekday)
        values = {
            "weekday": weekday,
            "start_time": _parse_time(row["start_time"]),
            "end_time": _parse_time(row["end_time"]),
            "break_start": _parse_time(row.get("break_start")),
            "break_end": _parse_time(row.get("break_end")),
            "is_active": row.get("is_active", True),
        }
        validate_work_hours(**values)
        parsed.append(values)

    directory_service.get_doctor(db, doctor_id)

    with collaborator_call("work schedule replace", db):
        db.query(WorkSchedule).filter(
            WorkSchedule.doctor_id == doctor_id,
        ).delete()

        new_rows = []
        for values in parsed:
            schedule = WorkSchedule(doctor_id=doctor_id, **values)
            db.add(schedule)
            new_rows.append(schedule)

        db.commit()
        for schedule in new_rows:
            db.refresh(schedule)

    logger.info("Replaced weekly schedule for doctor %s (%d rows)", doctor_id, len(new_rows))
    return sorted(new_rows, key=lambda s: s.weekday)


def delete_work_schedule(db: Session, doctor_id: UUID, weekday: int) -> bool:
    """Delete the row for one weekday (the day becomes fully blocked)."""
    schedule = get_work_schedule(db, doctor_id, weekday)
    if not schedule:
        return False
    with collaborator_call("work schedule delete", db):
        db.delete(schedule)
        db.commit()
    return True


# =============================================================================
# Break Exceptions
# =============================================================================

def create_break_exception(
    db: Session,
    exception_date: date,
    break_start: time | str,
    break_end: time | str,
    doctor_id: UUID | None = None,
    clinic_id: UUID | None = None,
) -> BreakException:
    """
    Record a break replacement for one date.

    Exactly one owner (doctor or clinic) is required. A new row is appended
    on every call; the most recent row for a date wins when resolving.
    """
    if (doctor_id is None) == (clinic_id is None):
        raise InvalidSchedulingInput("A break exception belongs to exactly one doctor or one clinic")

    break_start = _parse_time(break_start)
    break_end = _parse_time(break_end)
    if break_start is None or break_end is None:
        raise InvalidSchedulingInput("Break start and break end are required")
    if break_start >= break_end:
        raise InvalidSchedulingInput("Break must start before it ends")

    if doctor_id is not None:
        directory_service.get_doctor(db, doctor_id)
    elif directory_service.get_clinic(db, clinic_id) is None:
        raise NotFoundError(f"Clinic {clinic_id} not found")

    exception = BreakException(
        doctor_id=doctor_id,
        clinic_id=clinic_id,
        exception_date=exception_date,
        break_start=break_start,
        break_end=break_end,
        is_active=True,
    )
    with collaborator_call("break exception create", db):
        db.add(exception)
        db.commit()
        db.refresh(exception)

    logger.info(
        "Break exception on %s set to %s-%s (doctor=%s clinic=%s)",
        exception_date, break_start, break_end, doctor_id, clinic_id,
    )
    return exception


def get_break_exception(db: Session, exception_id: UUID) -> BreakException:
    with collaborator_call("break exception lookup"):
        exception = db.query(BreakException).filter(
            BreakException.id == exception_id,
            BreakException.is_active == True,  # noqa: E712
        ).first()
    if not exception:
        raise BreakExceptionNotFoundError(f"Break exception {exception_id} not found")
    return exception


def list_break_exceptions(
    db: Session,
    doctor_id: UUID | None = None,
    clinic_id: UUID | None = None,
    date_start: date | None = None,
    date_end: date | None = None,
) -> list[BreakException]:
    """List active break exceptions owned by a doctor or by a clinic."""
    if (doctor_id is None) == (clinic_id is None):
        raise InvalidSchedulingInput("Filter by exactly one of doctor_id or clinic_id")

    query = db.query(BreakException).filter(BreakException.is_active == True)  # noqa: E712
    if doctor_id is not None:
        query = query.filter(BreakException.doctor_id == doctor_id)
    else:
        query = query.filter(BreakException.clinic_id == clinic_id)
    if date_start:
        query = query.filter(BreakException.exception_date >= date_start)
    if date_end:
        query = query.filter(BreakException.exception_date <= date_end)

    with collaborator_call("break exception listing"):
        return query.order_by(
            BreakException.exception_date,
            BreakException.created_at.desc(),
        ).all()


def update_break_exception(
    db: Session,
    exception: BreakException,
    break_start: time | str | None = None,
    break_end: time | str | None = None,
) -> BreakException:
    """Change the window of an existing break exception."""
    new_start = _parse_time(break_start) if break_start is not None else exception.break_start
    new_end = _parse_time(break_end) if break_end is not None else exception.break_end
    if new_start is None or new_end is None or new_start >= new_end:
        raise InvalidSchedulingInput("Break must start before it ends")

    with collaborator_call("break exception update", db):
        exception.break_start = new_start
        exception.break_end = new_end
        db.commit()
        db.refresh(exception)
    return exception


def delete_break_exception(db: Session, exception: BreakException) -> BreakException:
    """Deactivate a break exception (soft delete)."""
    with collaborator_call("break exception delete", db):
        exception.is_active = False
        db.commit()
        db.refresh(exception)
    return exception
