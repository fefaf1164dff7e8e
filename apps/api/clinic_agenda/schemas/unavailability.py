"""Unavailability schemas - windows and the conflict-resolution workflow."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from clinic_agenda.db.enums import WorkflowState
from clinic_agenda.schemas.appointment import AppointmentRead, RescheduleSuggestionRead
from clinic_agenda.schemas.availability import ConflictVerdictRead


class UnavailabilityCreate(BaseModel):
    """Schema for declaring an unavailability window."""
    doctor_id: UUID
    starts_at: datetime
    ends_at: datetime
    reason: str | None = Field(None, max_length=255)
    ignore_conflicts: bool = False


class UnavailabilityUpdate(BaseModel):
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    reason: str | None = Field(None, max_length=255)
    ignore_conflicts: bool = False


class UnavailabilityRead(BaseModel):
    id: UUID
    doctor_id: UUID
    starts_at: datetime
    ends_at: datetime
    blocked_until: datetime | None = None  # Populated by API (end of the clock hour)
    reason: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ConflictRead(BaseModel):
    """A booked appointment displaced by the window, with alternative slots."""
    appointment: AppointmentRead
    suggestion: RescheduleSuggestionRead


class UnavailabilityOutcomeRead(BaseModel):
    """Result of a workflow step."""
    state: WorkflowState
    window: UnavailabilityRead | None = None
    conflicts: list[ConflictRead] = Field(default_factory=list)
    verdict: ConflictVerdictRead | None = None


class ConflictResolve(BaseModel):
    """
    Schema for moving one conflicting appointment and resuming the workflow.

    window_id is set when the draft is an edit of a stored window.
    """
    doctor_id: UUID
    starts_at: datetime
    ends_at: datetime
    reason: str | None = Field(None, max_length=255)
    window_id: UUID | None = None
    appointment_id: UUID
    new_start: datetime
