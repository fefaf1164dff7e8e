"""Availability schemas - slot checks, verdicts and open slots."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from clinic_agenda.db.enums import ConflictReason


class ConflictVerdictRead(BaseModel):
    """Pass/fail result of validating a candidate slot."""
    valid: bool
    reason_code: ConflictReason | None = None
    message: str
    conflicting_appointment_id: UUID | None = None

    @classmethod
    def from_verdict(cls, verdict) -> "ConflictVerdictRead":
        return cls(**verdict._asdict())


class SlotCheckRequest(BaseModel):
    """
    Schema for checking a candidate slot.

    Give either duration_minutes or service_id (the service's duration is used).
    """
    doctor_id: UUID
    start: datetime
    duration_minutes: int | None = Field(None, ge=1, le=1440)
    service_id: UUID | None = None
    exclude_appointment_id: UUID | None = None
    is_fit_in: bool = False

    @model_validator(mode="after")
    def validate_duration_source(self) -> "SlotCheckRequest":
        if (self.duration_minutes is None) == (self.service_id is None):
            raise ValueError("Provide exactly one of duration_minutes or service_id")
        return self


class AvailableSlotsResponse(BaseModel):
    doctor_id: UUID
    service_id: UUID
    date: date
    duration_minutes: int
    slots: list[datetime]
