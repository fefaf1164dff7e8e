"""Reschedule suggestions - alternative free slots for displaced appointments.

Scans forward day by day from today, collecting start times that pass
every conflict guard for the appointment's own duration, with the
appointment itself excluded from the overlap check.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, NamedTuple, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_agenda.core.constants import (
    SLOT_STEP_MINUTES,
    SUGGESTION_HORIZON_DAYS,
    SUGGESTION_MAX_SLOTS_PER_DAY,
)
from clinic_agenda.db.models import Appointment
from clinic_agenda.services import agenda_service
from clinic_agenda.services.conflict_detector import (
    BlockedPeriod,
    DoctorAgenda,
    list_valid_starts,
)
from clinic_agenda.services.errors import InvalidSchedulingInput
from clinic_agenda.utils.clinic_time import clinic_now, daterange, to_clinic_time

logger = logging.getLogger(__name__)


class DaySuggestion(NamedTuple):
    """Valid start times on one calendar day."""
    date: date
    times: tuple[time, ...]


class RescheduleSuggestion(NamedTuple):
    """Per-appointment list of days with free slots, in chronological order."""
    appointment_id: UUID
    candidates: tuple[DaySuggestion, ...] = ()

    @property
    def has_candidates(self) -> bool:
        return bool(self.candidates)


def suggest_for_agenda(
    agenda: DoctorAgenda,
    appointment_id: UUID,
    duration_minutes: int,
    *,
    horizon_days: int = SUGGESTION_HORIZON_DAYS,
    max_slots_per_day: int = SUGGESTION_MAX_SLOTS_PER_DAY,
    slot_step_minutes: int = SLOT_STEP_MINUTES,
    now: datetime | None = None,
    reserved: Sequence[tuple[datetime, datetime]] = (),
) -> RescheduleSuggestion:
    """
    Collect up to max_slots_per_day valid starts per day, today..today+horizon_days.

    Days without any valid start are left out. An empty result means no
    automatic suggestion exists and the caller must reschedule manually.
    No suggested slot overlaps any ``reserved`` interval.
    """
    if horizon_days < 0:
        raise InvalidSchedulingInput("Suggestion horizon must not be negative")
    if max_slots_per_day <= 0:
        raise InvalidSchedulingInput("Max slots per day must be positive")

    now = to_clinic_time(now) if now is not None else clinic_now()
    today = now.date()

    candidates = []
    for day in daterange(today, today + timedelta(days=horizon_days)):
        starts = list_valid_starts(
            agenda,
            day,
            duration_minutes,
            step_minutes=slot_step_minutes,
            exclude_appointment_id=appointment_id,
            now=now,
            limit=max_slots_per_day,
            reserved=reserved,
        )
        if starts:
            candidates.append(DaySuggestion(date=day, times=tuple(s.time() for s in starts)))

    return RescheduleSuggestion(appointment_id=appointment_id, candidates=tuple(candidates))


def load_suggestion_agenda(
    db: Session,
    doctor_id: UUID,
    *,
    horizon_days: int = SUGGESTION_HORIZON_DAYS,
    extra_periods: Iterable[BlockedPeriod] = (),
    ignore_window_id: UUID | None = None,
    now: datetime | None = None,
) -> DoctorAgenda:
    """
    Load the agenda covering the suggestion horizon.

    extra_periods are windows not yet persisted (the one being declared);
    ignore_window_id drops a stored window that is being edited.
    """
    today = to_clinic_time(now).date() if now is not None else clinic_now().date()
    agenda = agenda_service.load_doctor_agenda(
        db, doctor_id, today, today + timedelta(days=horizon_days)
    )
    if ignore_window_id is not None:
        agenda = agenda.without_window(ignore_window_id)
    for period in extra_periods:
        agenda = agenda.with_blocked_period(period)
    return agenda


def suggest(
    db: Session,
    appointment: Appointment,
    *,
    horizon_days: int = SUGGESTION_HORIZON_DAYS,
    max_slots_per_day: int = SUGGESTION_MAX_SLOTS_PER_DAY,
    slot_step_minutes: int = SLOT_STEP_MINUTES,
    extra_periods: Iterable[BlockedPeriod] = (),
    ignore_window_id: UUID | None = None,
    now: datetime | None = None,
    agenda: DoctorAgenda | None = None,
    reserved: Sequence[tuple[datetime, datetime]] = (),
) -> RescheduleSuggestion:
    """Suggest alternative slots for one appointment."""
    if agenda is None:
        agenda = load_suggestion_agenda(
            db,
            appointment.doctor_id,
            horizon_days=horizon_days,
            extra_periods=extra_periods,
            ignore_window_id=ignore_window_id,
            now=now,
        )

    suggestion = suggest_for_agenda(
        agenda,
        appointment.id,
        appointment.duration_minutes,
        horizon_days=horizon_days,
        max_slots_per_day=max_slots_per_day,
        slot_step_minutes=slot_step_minutes,
        now=now,
        reserved=reserved,
    )
    if not suggestion.has_candidates:
        logger.info(
            "No automatic reschedule suggestion within %d days for appointment %s",
            horizon_days,
            appointment.id,
        )
    return suggestion
