"""Availability router - slot validation and open-slot listing."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_agenda.core.deps import get_db
from clinic_agenda.schemas.availability import (
    AvailableSlotsResponse,
    ConflictVerdictRead,
    SlotCheckRequest,
)
from clinic_agenda.services import availability_service, directory_service
from clinic_agenda.services.errors import InvalidSchedulingInput, NotFoundError

router = APIRouter()


@router.post("/availability/check", response_model=ConflictVerdictRead)
def check_slot(
    data: SlotCheckRequest,
    db: Session = Depends(get_db),
):
    """
    Validate a candidate slot.

    Always 200: a rejected slot is reported in the verdict, not as an error.
    """
    try:
        duration = data.duration_minutes
        if duration is None:
            duration = directory_service.get_service_duration(db, data.service_id)
        verdict = availability_service.check_slot(
            db,
            data.doctor_id,
            data.start,
            duration,
            exclude_appointment_id=data.exclude_appointment_id,
            is_fit_in=data.is_fit_in,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ConflictVerdictRead.from_verdict(verdict)


@router.get("/doctors/{doctor_id}/slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    doctor_id: UUID,
    service_id: UUID,
    day: date = Query(..., alias="date"),
    step_minutes: int = Query(15, ge=5, le=120),
    db: Session = Depends(get_db),
):
    """List bookable start times for a service on one day."""
    try:
        slots = availability_service.get_available_slots(
            db, doctor_id, service_id, day, step_minutes=step_minutes,
        )
        duration = directory_service.get_service_duration(db, service_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        service_id=service_id,
        date=day,
        duration_minutes=duration,
        slots=slots,
    )
