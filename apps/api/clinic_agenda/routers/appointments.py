"""Appointments router - booking, rescheduling, cancelling and suggestions."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinic_agenda.core.deps import get_db
from clinic_agenda.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    RescheduleSuggestionRead,
)
from clinic_agenda.schemas.availability import ConflictVerdictRead
from clinic_agenda.services import appointment_service, reschedule_service
from clinic_agenda.services.errors import InvalidSchedulingInput, NotFoundError

router = APIRouter()


def _rejected(verdict) -> HTTPException:
    """422 carrying the verdict, so clients can show the specific reason."""
    return HTTPException(
        status_code=422,
        detail=ConflictVerdictRead.from_verdict(verdict).model_dump(mode="json"),
    )


def _get_or_404(db: Session, appointment_id: UUID):
    try:
        return appointment_service.get_appointment(db, appointment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("", response_model=list[AppointmentRead])
def list_appointments(
    doctor_id: UUID,
    db: Session = Depends(get_db),
    date_start: date | None = None,
    date_end: date | None = None,
    include_cancelled: bool = False,
    status: str | None = None,
):
    """List a doctor's appointments, earliest first."""
    return appointment_service.list_appointments(
        db=db,
        doctor_id=doctor_id,
        date_start=date_start,
        date_end=date_end,
        include_cancelled=include_cancelled,
        status=status,
    )


@router.post("", response_model=AppointmentRead, status_code=201)
def book_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
):
    """Book an appointment; 422 with the verdict when the slot is not allowed."""
    try:
        result = appointment_service.book_appointment(
            db,
            doctor_id=data.doctor_id,
            patient_id=data.patient_id,
            service_id=data.service_id,
            start=data.scheduled_start,
            is_fit_in=data.is_fit_in,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.ok:
        raise _rejected(result.verdict)
    return result.appointment


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    db: Session = Depends(get_db),
):
    return _get_or_404(db, appointment_id)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentRead)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    db: Session = Depends(get_db),
):
    """Move an appointment to a new start time."""
    appointment = _get_or_404(db, appointment_id)
    try:
        result = appointment_service.reschedule_appointment(db, appointment, data.scheduled_start)
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.ok:
        raise _rejected(result.verdict)
    return result.appointment


@router.post("/{appointment_id}/cancel", response_model=AppointmentRead)
def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    db: Session = Depends(get_db),
):
    appointment = _get_or_404(db, appointment_id)
    try:
        return appointment_service.cancel_appointment(db, appointment, reason=data.reason)
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{appointment_id}/confirm-fit-in", response_model=AppointmentRead)
def confirm_fit_in(
    appointment_id: UUID,
    db: Session = Depends(get_db),
):
    """Doctor accepts a pending fit-in."""
    appointment = _get_or_404(db, appointment_id)
    try:
        return appointment_service.confirm_fit_in(db, appointment)
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{appointment_id}/suggestions", response_model=RescheduleSuggestionRead)
def get_suggestions(
    appointment_id: UUID,
    db: Session = Depends(get_db),
):
    """Alternative free slots for an appointment over the suggestion horizon."""
    appointment = _get_or_404(db, appointment_id)
    suggestion = reschedule_service.suggest(db, appointment)
    return RescheduleSuggestionRead.from_suggestion(suggestion)
