"""Recurring working hours and single-date break exceptions."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_agenda.db.base import Base
from clinic_agenda.db.models.directory import utcnow

if TYPE_CHECKING:
    from clinic_agenda.db.models.directory import Clinic, Doctor


class WorkSchedule(Base):
    """
    Weekly working hours for one doctor on one weekday (e.g., "Monday 08:00-18:00").

    Uses Python weekday numbering: Monday=0, Sunday=6.
    A weekday without an active row has no expedient.
    """

    __tablename__ = "work_schedules"
    __table_args__ = (
        UniqueConstraint("doctor_id", "weekday", name="uq_work_schedule_weekday"),
        Index("idx_work_schedules_doctor", "doctor_id"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_valid_weekday"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False
    )

    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Wall-clock times in the clinic timezone
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    break_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_end: Mapped[time | None] = mapped_column(Time, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    doctor: Mapped["Doctor"] = relationship()


class BreakException(Base):
    """
    Date-specific replacement of the lunch-break window.

    Owned by either a doctor or a whole clinic. Rows are never merged into
    the weekly schedule; several may exist for the same owner and date and
    the most recently created one wins.
    """

    __tablename__ = "break_exceptions"
    __table_args__ = (
        Index("idx_break_exceptions_doctor_date", "doctor_id", "exception_date"),
        Index("idx_break_exceptions_clinic_date", "clinic_id", "exception_date"),
        CheckConstraint(
            "(doctor_id IS NULL) <> (clinic_id IS NULL)", name="ck_break_exception_single_owner"
        ),
        CheckConstraint("break_start < break_end", name="ck_break_exception_window"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    doctor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=True
    )
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=True
    )

    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    break_start: Mapped[time] = mapped_column(Time, nullable=False)
    break_end: Mapped[time] = mapped_column(Time, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Python-side default keeps microsecond precision for last-write-wins ordering
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    doctor: Mapped["Doctor | None"] = relationship()
    clinic: Mapped["Clinic | None"] = relationship()
