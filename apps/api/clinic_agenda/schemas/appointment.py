"""Appointment schemas - Pydantic models for the appointments API."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""
    doctor_id: UUID
    patient_id: UUID
    service_id: UUID
    scheduled_start: datetime
    is_fit_in: bool = False


class AppointmentReschedule(BaseModel):
    """Schema for rescheduling an appointment."""
    scheduled_start: datetime


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""
    reason: str | None = Field(None, max_length=1000)


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    id: UUID
    doctor_id: UUID
    patient_id: UUID
    service_id: UUID
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    status: str
    is_fit_in: bool
    fit_in_confirmed_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Reschedule Suggestions
# =============================================================================

class DaySuggestionRead(BaseModel):
    date: date
    times: list[time]


class RescheduleSuggestionRead(BaseModel):
    """Alternative slots for one appointment; empty candidates means reschedule manually."""
    appointment_id: UUID
    candidates: list[DaySuggestionRead]

    @classmethod
    def from_suggestion(cls, suggestion) -> "RescheduleSuggestionRead":
        return cls(
            appointment_id=suggestion.appointment_id,
            candidates=[
                DaySuggestionRead(date=day.date, times=list(day.times))
                for day in suggestion.candidates
            ],
        )
