"""Schedules router - weekly hours, blocked weekdays and break exceptions.

Mixed paths:
- /doctors/{doctor_id}/work-schedule, /blocked-weekdays, /effective-schedule
- /doctors/{doctor_id}/break-exceptions, /clinics/{clinic_id}/break-exceptions
- /break-exceptions/{exception_id}
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_agenda.core.deps import get_db
from clinic_agenda.schemas.schedule import (
    BlockedWeekdaysRead,
    BlockedWeekdaysSet,
    BreakExceptionCreate,
    BreakExceptionRead,
    BreakExceptionUpdate,
    EffectiveScheduleRead,
    WorkScheduleRead,
    WorkScheduleSet,
)
from clinic_agenda.services import availability_service, directory_service, schedule_service
from clinic_agenda.services.errors import InvalidSchedulingInput, NotFoundError

router = APIRouter()


# =============================================================================
# Work Schedules
# =============================================================================

@router.get("/doctors/{doctor_id}/work-schedule", response_model=list[WorkScheduleRead])
def get_work_schedule(
    doctor_id: UUID,
    db: Session = Depends(get_db),
):
    """Get the weekly working hours of a doctor."""
    try:
        directory_service.get_doctor(db, doctor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return schedule_service.get_work_schedules(db, doctor_id)


@router.put("/doctors/{doctor_id}/work-schedule", response_model=list[WorkScheduleRead])
def set_work_schedule(
    doctor_id: UUID,
    data: WorkScheduleSet,
    db: Session = Depends(get_db),
):
    """Replace the whole weekly schedule of a doctor."""
    try:
        return schedule_service.replace_work_schedules(
            db=db,
            doctor_id=doctor_id,
            rows=[r.model_dump() for r in data.rows],
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/doctors/{doctor_id}/blocked-weekdays", response_model=BlockedWeekdaysRead)
def get_blocked_weekdays(
    doctor_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        weekdays = directory_service.get_blocked_weekdays(db, doctor_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return BlockedWeekdaysRead(doctor_id=doctor_id, weekdays=sorted(weekdays))


@router.put("/doctors/{doctor_id}/blocked-weekdays", response_model=BlockedWeekdaysRead)
def set_blocked_weekdays(
    doctor_id: UUID,
    data: BlockedWeekdaysSet,
    db: Session = Depends(get_db),
):
    """Replace the weekdays on which the doctor has no expedient at all."""
    try:
        doctor = directory_service.set_blocked_weekdays(db, doctor_id, data.weekdays)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BlockedWeekdaysRead(doctor_id=doctor.id, weekdays=doctor.blocked_weekdays)


@router.get("/doctors/{doctor_id}/effective-schedule", response_model=EffectiveScheduleRead)
def get_effective_schedule(
    doctor_id: UUID,
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    """Working hours and break in force on one date (after break exceptions)."""
    try:
        schedule = availability_service.resolve_effective_schedule(db, doctor_id, day)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if schedule is None:
        return EffectiveScheduleRead(date=day, has_expedient=False)
    return EffectiveScheduleRead(
        date=day,
        has_expedient=True,
        start_time=schedule.start,
        end_time=schedule.end,
        break_start=schedule.break_start,
        break_end=schedule.break_end,
    )


# =============================================================================
# Break Exceptions
# =============================================================================

@router.get("/doctors/{doctor_id}/break-exceptions", response_model=list[BreakExceptionRead])
def list_doctor_break_exceptions(
    doctor_id: UUID,
    db: Session = Depends(get_db),
    date_start: date | None = None,
    date_end: date | None = None,
):
    return schedule_service.list_break_exceptions(
        db, doctor_id=doctor_id, date_start=date_start, date_end=date_end,
    )


@router.post(
    "/doctors/{doctor_id}/break-exceptions",
    response_model=BreakExceptionRead,
    status_code=201,
)
def create_doctor_break_exception(
    doctor_id: UUID,
    data: BreakExceptionCreate,
    db: Session = Depends(get_db),
):
    """Replace a doctor's break window on one date."""
    try:
        return schedule_service.create_break_exception(
            db=db,
            exception_date=data.exception_date,
            break_start=data.break_start,
            break_end=data.break_end,
            doctor_id=doctor_id,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/clinics/{clinic_id}/break-exceptions", response_model=list[BreakExceptionRead])
def list_clinic_break_exceptions(
    clinic_id: UUID,
    db: Session = Depends(get_db),
    date_start: date | None = None,
    date_end: date | None = None,
):
    return schedule_service.list_break_exceptions(
        db, clinic_id=clinic_id, date_start=date_start, date_end=date_end,
    )


@router.post(
    "/clinics/{clinic_id}/break-exceptions",
    response_model=BreakExceptionRead,
    status_code=201,
)
def create_clinic_break_exception(
    clinic_id: UUID,
    data: BreakExceptionCreate,
    db: Session = Depends(get_db),
):
    """Replace the break window of every doctor in a clinic on one date."""
    try:
        return schedule_service.create_break_exception(
            db=db,
            exception_date=data.exception_date,
            break_start=data.break_start,
            break_end=data.break_end,
            clinic_id=clinic_id,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/break-exceptions/{exception_id}", response_model=BreakExceptionRead)
def update_break_exception(
    exception_id: UUID,
    data: BreakExceptionUpdate,
    db: Session = Depends(get_db),
):
    try:
        exception = schedule_service.get_break_exception(db, exception_id)
        return schedule_service.update_break_exception(
            db, exception, **data.model_dump(exclude_unset=True),
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/break-exceptions/{exception_id}", status_code=204)
def delete_break_exception(
    exception_id: UUID,
    db: Session = Depends(get_db),
):
    """Deactivate a break exception (soft delete)."""
    try:
        exception = schedule_service.get_break_exception(db, exception_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    schedule_service.delete_break_exception(db, exception)
    return None
