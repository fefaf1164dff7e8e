"""Appointment ledger and unavailability windows."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_agenda.db.base import Base
from clinic_agenda.db.enums import DEFAULT_APPOINTMENT_STATUS
from clinic_agenda.db.models.directory import utcnow

if TYPE_CHECKING:
    from clinic_agenda.db.models.directory import Doctor, Service


class Appointment(Base):
    """
    A booked appointment.

    duration_minutes is copied from the service at booking time and
    scheduled_end is always scheduled_start + duration_minutes. Storage
    (PostgreSQL) carries an exclusion constraint so that at most one
    non-fit-in, non-cancelled appointment commits per doctor and interval.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_doctor_start", "doctor_id", "scheduled_start"),
        Index("idx_appointments_status", "status"),
        CheckConstraint("duration_minutes > 0", name="ck_appointment_duration_positive"),
        CheckConstraint("scheduled_start < scheduled_end", name="ck_appointment_window"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False
    )
    # Patient records live outside the scheduling core
    patient_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False
    )

    scheduled_start: Mapped[datetime] = mapped_column(nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    is_fit_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fit_in_confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    doctor: Mapped["Doctor"] = relationship()
    service: Mapped["Service"] = relationship()


class UnavailabilityWindow(Base):
    """
    Explicit time range during which a doctor cannot be booked.

    Blocking extends to the end of the clock hour containing ends_at.
    Deleting a window only deactivates it.
    """

    __tablename__ = "unavailability_windows"
    __table_args__ = (
        Index("idx_unavailability_doctor", "doctor_id", "is_active", "starts_at"),
        CheckConstraint("starts_at < ends_at", name="ck_unavailability_window"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False
    )

    starts_at: Mapped[datetime] = mapped_column(nullable=False)
    ends_at: Mapped[datetime] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    doctor: Mapped["Doctor"] = relationship()
