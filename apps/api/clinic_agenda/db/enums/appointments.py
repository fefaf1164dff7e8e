"""Appointment and scheduling enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: pending → confirmed → finalized
          pending_ai → confirmed
          fit_in_pending → confirmed (doctor confirms the fit-in)
              ↘ cancelled (from any non-final state)
    """

    PENDING = "pending"  # Booked, awaiting confirmation
    CONFIRMED = "confirmed"  # Confirmed by the clinic
    PENDING_AI = "pending_ai"  # Booked by the assistant, awaiting review
    FIT_IN_PENDING = "fit_in_pending"  # Fit-in awaiting doctor confirmation
    FINALIZED = "finalized"  # Visit took place
    CANCELLED = "cancelled"  # Cancelled by patient or staff

    @classmethod
    def blocking(cls) -> list[str]:
        """Statuses that occupy the doctor's agenda."""
        return [s.value for s in cls if s is not cls.CANCELLED]

    @classmethod
    def reschedulable(cls) -> list[str]:
        return [
            cls.PENDING.value,
            cls.CONFIRMED.value,
            cls.PENDING_AI.value,
            cls.FIT_IN_PENDING.value,
        ]


class ConflictReason(str, Enum):
    """Machine-readable reason attached to a rejected slot, in guard order."""

    PAST_OR_TOO_SOON = "PAST_OR_TOO_SOON"
    NO_EXPEDIENT_THIS_DAY = "NO_EXPEDIENT_THIS_DAY"
    BEFORE_OPENING = "BEFORE_OPENING"
    AFTER_CLOSING = "AFTER_CLOSING"
    EXCEEDS_CLOSING = "EXCEEDS_CLOSING"
    DURING_BREAK = "DURING_BREAK"
    BLOCKED_BY_UNAVAILABILITY = "BLOCKED_BY_UNAVAILABILITY"
    OVERLAPS_APPOINTMENT = "OVERLAPS_APPOINTMENT"


class WorkflowState(str, Enum):
    """
    Unavailability creation workflow.

    Flow: draft → validating → clean
                     ↘ conflict_presented → resolving → clean
                              ↘ draft (cancelled)
    """

    DRAFT = "draft"
    VALIDATING = "validating"
    CLEAN = "clean"
    CONFLICT_PRESENTED = "conflict_presented"
    RESOLVING = "resolving"


# Default appointment status
DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.PENDING
