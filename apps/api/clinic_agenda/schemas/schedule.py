"""Schedule schemas - weekly hours, blocked weekdays and break exceptions."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

HHMM = r"^\d{2}:\d{2}$"


# =============================================================================
# Work Schedules
# =============================================================================

class WorkScheduleInput(BaseModel):
    """Schema for the working hours of one weekday."""
    weekday: int = Field(..., ge=0, le=6, description="Monday=0, Sunday=6")
    start_time: str = Field(..., pattern=HHMM, description="HH:MM format")
    end_time: str = Field(..., pattern=HHMM, description="HH:MM format")
    break_start: str | None = Field(None, pattern=HHMM)
    break_end: str | None = Field(None, pattern=HHMM)
    is_active: bool = True

    @model_validator(mode="after")
    def validate_break(self) -> "WorkScheduleInput":
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be given together")
        return self


class WorkScheduleSet(BaseModel):
    """Schema for replacing a doctor's whole week."""
    rows: list[WorkScheduleInput]


class WorkScheduleRead(BaseModel):
    id: UUID
    doctor_id: UUID
    weekday: int
    is_active: bool
    start_time: time
    end_time: time
    break_start: time | None
    break_end: time | None

    model_config = {"from_attributes": True}


class BlockedWeekdaysSet(BaseModel):
    weekdays: list[int] = Field(default_factory=list, description="Monday=0, Sunday=6")


class BlockedWeekdaysRead(BaseModel):
    doctor_id: UUID
    weekdays: list[int]


class EffectiveScheduleRead(BaseModel):
    """Working hours in force on one date; has_expedient is False when the doctor does not work."""
    date: date
    has_expedient: bool
    start_time: time | None = None
    end_time: time | None = None
    break_start: time | None = None
    break_end: time | None = None


# =============================================================================
# Break Exceptions
# =============================================================================

class BreakExceptionCreate(BaseModel):
    """Schema for replacing the break window on one date."""
    exception_date: date
    break_start: str = Field(..., pattern=HHMM)
    break_end: str = Field(..., pattern=HHMM)


class BreakExceptionUpdate(BaseModel):
    break_start: str | None = Field(None, pattern=HHMM)
    break_end: str | None = Field(None, pattern=HHMM)


class BreakExceptionRead(BaseModel):
    id: UUID
    doctor_id: UUID | None
    clinic_id: UUID | None
    exception_date: date
    break_start: time
    break_end: time
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
