"""Unavailability router - guarded creation and editing of unavailability windows.

A window that displaces booked appointments is not saved: the response is
409 with the conflicting appointments and their reschedule suggestions.
The caller then moves appointments (POST /unavailability/resolve), retries
with ignore_conflicts=true, or drops the draft.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clinic_agenda.core.deps import get_db
from clinic_agenda.schemas.appointment import AppointmentRead, RescheduleSuggestionRead
from clinic_agenda.schemas.availability import ConflictVerdictRead
from clinic_agenda.schemas.unavailability import (
    ConflictRead,
    ConflictResolve,
    UnavailabilityCreate,
    UnavailabilityOutcomeRead,
    UnavailabilityRead,
    UnavailabilityUpdate,
)
from clinic_agenda.services import unavailability_service, unavailability_workflow
from clinic_agenda.services.errors import InvalidSchedulingInput, NotFoundError
from clinic_agenda.services.unavailability_workflow import UnavailabilityDraft, WorkflowOutcome

router = APIRouter()


# =============================================================================
# Helper Functions
# =============================================================================

def _window_to_read(window) -> UnavailabilityRead:
    """Convert UnavailabilityWindow model to read schema."""
    return UnavailabilityRead(
        id=window.id,
        doctor_id=window.doctor_id,
        starts_at=window.starts_at,
        ends_at=window.ends_at,
        blocked_until=unavailability_service.effective_end(window),
        reason=window.reason,
        is_active=window.is_active,
        created_at=window.created_at,
        updated_at=window.updated_at,
    )


def _outcome_response(outcome: WorkflowOutcome, success_status: int = 200):
    """Clean outcomes return success_status; anything else is a 409 with conflicts."""
    body = UnavailabilityOutcomeRead(
        state=outcome.state,
        window=_window_to_read(outcome.window) if outcome.window else None,
        conflicts=[
            ConflictRead(
                appointment=AppointmentRead.model_validate(c.appointment),
                suggestion=RescheduleSuggestionRead.from_suggestion(c.suggestion),
            )
            for c in outcome.conflicts
        ],
        verdict=ConflictVerdictRead.from_verdict(outcome.verdict) if outcome.verdict else None,
    )
    status_code = success_status if outcome.is_clean else 409
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


# =============================================================================
# Queries
# =============================================================================

@router.get("", response_model=list[UnavailabilityRead])
def list_unavailability(
    db: Session = Depends(get_db),
    doctor_id: UUID | None = None,
    clinic_id: UUID | None = None,
    date_from: datetime | None = None,
):
    """List active windows of a doctor or of every doctor in a clinic."""
    if (doctor_id is None) == (clinic_id is None):
        raise HTTPException(status_code=400, detail="Filter by exactly one of doctor_id or clinic_id")
    if doctor_id is not None:
        windows = unavailability_service.list_for_doctor(db, doctor_id, date_from=date_from)
    else:
        windows = unavailability_service.list_for_clinic(db, clinic_id, date_from=date_from)
    return [_window_to_read(w) for w in windows]


@router.get("/{window_id}", response_model=UnavailabilityRead)
def get_unavailability(
    window_id: UUID,
    db: Session = Depends(get_db),
):
    try:
        return _window_to_read(unavailability_service.get_window(db, window_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# =============================================================================
# Workflow
# =============================================================================

@router.post(
    "",
    response_model=UnavailabilityOutcomeRead,
    status_code=201,
    responses={409: {"model": UnavailabilityOutcomeRead}},
)
def create_unavailability(
    data: UnavailabilityCreate,
    db: Session = Depends(get_db),
):
    """Declare a window; 201 when saved, 409 with conflicts and suggestions otherwise."""
    entry_point = (
        unavailability_workflow.force_create_unavailability
        if data.ignore_conflicts
        else unavailability_workflow.attempt_create_unavailability
    )
    try:
        outcome = entry_point(
            db,
            data.doctor_id,
            data.starts_at,
            data.ends_at,
            reason=data.reason,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _outcome_response(outcome, success_status=201)


@router.patch(
    "/{window_id}",
    response_model=UnavailabilityOutcomeRead,
    responses={409: {"model": UnavailabilityOutcomeRead}},
)
def update_unavailability(
    window_id: UUID,
    data: UnavailabilityUpdate,
    db: Session = Depends(get_db),
):
    """Edit a window through the same conflict checks as creation."""
    try:
        outcome = unavailability_workflow.attempt_update_unavailability(
            db,
            window_id,
            starts_at=data.starts_at,
            ends_at=data.ends_at,
            reason=data.reason,
            ignore_conflicts=data.ignore_conflicts,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _outcome_response(outcome)


@router.post(
    "/resolve",
    response_model=UnavailabilityOutcomeRead,
    responses={409: {"model": UnavailabilityOutcomeRead}},
)
def resolve_conflict(
    data: ConflictResolve,
    db: Session = Depends(get_db),
):
    """
    Move one conflicting appointment and re-validate the draft window.

    200 once no conflict remains (the window is saved); 409 while conflicts
    remain or when the requested slot was rejected (see verdict).
    """
    draft = UnavailabilityDraft(
        doctor_id=data.doctor_id,
        starts_at=data.starts_at,
        ends_at=data.ends_at,
        reason=data.reason,
        window_id=data.window_id,
    )
    try:
        outcome = unavailability_workflow.resolve_one_conflict(
            db, draft, data.appointment_id, data.new_start,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidSchedulingInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _outcome_response(outcome)


@router.delete("/{window_id}", status_code=204)
def delete_unavailability(
    window_id: UUID,
    db: Session = Depends(get_db),
):
    """Deactivate a window (soft delete). Never touches appointments."""
    try:
        window = unavailability_service.get_window(db, window_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    unavailability_service.delete_window(db, window)
    return None
