"""Unavailability workflow - guarded creation and editing of unavailability windows.

State machine:
    draft -> validating -> clean                      (no intersecting appointments; persisted)
    draft -> validating -> conflict_presented         (conflicts + suggestions; nothing persisted)
    conflict_presented -> resolving -> clean          (last conflict moved away; persisted)
    conflict_presented -> resolving -> conflict_presented
    conflict_presented -> clean                       (forced; appointments left untouched)
    conflict_presented -> draft                       (cancelled; nothing persisted)

Each reschedule done while resolving is committed on its own and is never
rolled back, even if persisting the window later fails. A storage failure
while persisting sends the workflow back to draft and propagates
CollaboratorUnavailable.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_agenda.core.constants import (
    SLOT_STEP_MINUTES,
    SUGGESTION_HORIZON_DAYS,
    SUGGESTION_MAX_SLOTS_PER_DAY,
)
from clinic_agenda.core.structured_logging import build_log_context
from clinic_agenda.db.enums import AppointmentStatus, ConflictReason, WorkflowState
from clinic_agenda.db.models import Appointment, UnavailabilityWindow
from clinic_agenda.services import (
    agenda_service,
    appointment_service,
    conflict_detector,
    directory_service,
    reschedule_service,
    unavailability_service,
)
from clinic_agenda.services.conflict_detector import BlockedPeriod, ConflictVerdict
from clinic_agenda.services.errors import CollaboratorUnavailable, InvalidSchedulingInput
from clinic_agenda.services.reschedule_service import RescheduleSuggestion
from clinic_agenda.utils.clinic_time import (
    end_of_clock_hour,
    format_hhmm,
    intervals_overlap,
    to_clinic_time,
)

logger = logging.getLogger(__name__)


@dataclass
class UnavailabilityDraft:
    """A window the operator wants to declare (window_id is set when editing a stored one)."""
    doctor_id: UUID
    starts_at: datetime
    ends_at: datetime
    reason: str | None = None
    window_id: UUID | None = None

    def as_period(self) -> BlockedPeriod:
        return BlockedPeriod(
            start=self.starts_at,
            end=self.ends_at,
            reason=self.reason,
            window_id=self.window_id,
        )

    def blocked_span(self) -> tuple[datetime, datetime]:
        """Half-open interval the window blocks: start to the end of the clock hour of its end."""
        return to_clinic_time(self.starts_at), end_of_clock_hour(self.ends_at)


class ConflictingAppointment(NamedTuple):
    """An appointment displaced by the draft window, with its alternatives."""
    appointment: Appointment
    suggestion: RescheduleSuggestion


@dataclass
class WorkflowOutcome:
    state: WorkflowState
    draft: UnavailabilityDraft
    window: UnavailabilityWindow | None = None
    conflicts: list[ConflictingAppointment] = field(default_factory=list)
    # Set when a requested reschedule was rejected by the slot guards
    verdict: ConflictVerdict | None = None

    @property
    def is_clean(self) -> bool:
        return self.state == WorkflowState.CLEAN


class UnavailabilityWorkflow:
    """Drives one draft window from submission to persistence or cancellation."""

    def __init__(
        self,
        db: Session,
        draft: UnavailabilityDraft,
        *,
        horizon_days: int = SUGGESTION_HORIZON_DAYS,
        max_slots_per_day: int = SUGGESTION_MAX_SLOTS_PER_DAY,
        slot_step_minutes: int = SLOT_STEP_MINUTES,
        now: datetime | None = None,
    ):
        self.db = db
        self.draft = draft
        self.horizon_days = horizon_days
        self.max_slots_per_day = max_slots_per_day
        self.slot_step_minutes = slot_step_minutes
        self.now = now
        self.state = WorkflowState.DRAFT
        self.conflicts: list[ConflictingAppointment] = []

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def submit(self) -> WorkflowOutcome:
        """Validate the draft; persist it when nothing conflicts."""
        self._require(WorkflowState.DRAFT)
        unavailability_service.validate_window(self.draft.starts_at, self.draft.ends_at)
        directory_service.get_doctor(self.db, self.draft.doctor_id)
        return self._validate()

    def force(self) -> WorkflowOutcome:
        """Persist the draft ignoring conflicts. Conflicting appointments stay as they are."""
        self._require(WorkflowState.DRAFT, WorkflowState.CONFLICT_PRESENTED)
        unavailability_service.validate_window(self.draft.starts_at, self.draft.ends_at)

        if self.state == WorkflowState.DRAFT:
            overlapping = self._intersecting()
        else:
            overlapping = [c.appointment for c in self.conflicts]

        if overlapping:
            logger.warning(
                "Unavailability forced over %d booked appointment(s)",
                len(overlapping),
                extra=build_log_context(doctor_id=self.draft.doctor_id, window_id=self.draft.window_id),
            )
        self.conflicts = []
        return self._persist()

    def resolve_one_conflict(self, appointment_id: UUID, new_start: datetime) -> WorkflowOutcome:
        """
        Move one conflicting appointment, then re-validate the draft.

        The move is checked against the draft window as well as everything
        stored. A rejected move leaves the workflow in conflict_presented
        with the verdict attached.
        """
        self._require(WorkflowState.CONFLICT_PRESENTED)
        conflict = next(
            (c for c in self.conflicts if c.appointment.id == appointment_id), None
        )
        if conflict is None:
            raise InvalidSchedulingInput(
                f"Appointment {appointment_id} does not conflict with this unavailability"
            )
        appointment = conflict.appointment
        if appointment.status not in AppointmentStatus.reschedulable():
            raise InvalidSchedulingInput(f"Cannot reschedule appointment with status {appointment.status}")

        self.state = WorkflowState.RESOLVING
        try:
            verdict = self._check_move(appointment, new_start)
            if not verdict.valid:
                self.state = WorkflowState.CONFLICT_PRESENTED
                return self._outcome(verdict=verdict)

            appointment_service.update_appointment_start(self.db, appointment, new_start)
        except Exception:
            self.state = WorkflowState.CONFLICT_PRESENTED
            raise

        logger.info(
            "Conflicting appointment rescheduled",
            extra=build_log_context(doctor_id=self.draft.doctor_id, appointment_id=appointment.id),
        )
        return self._validate()

    def cancel(self) -> WorkflowOutcome:
        """Abandon the draft; nothing is persisted."""
        self._require(WorkflowState.DRAFT, WorkflowState.CONFLICT_PRESENTED)
        self.state = WorkflowState.DRAFT
        self.conflicts = []
        return self._outcome()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, *states: WorkflowState) -> None:
        if self.state not in states:
            raise InvalidSchedulingInput(
                f"Operation not allowed while the unavailability workflow is {self.state.value}"
            )

    def _outcome(self, **kwargs) -> WorkflowOutcome:
        return WorkflowOutcome(state=self.state, draft=self.draft, conflicts=list(self.conflicts), **kwargs)

    def _intersecting(self) -> list[Appointment]:
        return unavailability_service.find_intersecting_appointments(
            self.db, self.draft.doctor_id, self.draft.starts_at, self.draft.ends_at,
        )

    def _validate(self) -> WorkflowOutcome:
        self.state = WorkflowState.VALIDATING
        try:
            appointments = self._intersecting()
            if not appointments:
                self.conflicts = []
                return self._persist()

            agenda = reschedule_service.load_suggestion_agenda(
                self.db,
                self.draft.doctor_id,
                horizon_days=self.horizon_days,
                extra_periods=(self.draft.as_period(),),
                ignore_window_id=self.draft.window_id,
                now=self.now,
            )
            self.conflicts = [
                ConflictingAppointment(
                    appointment=appointment,
                    suggestion=reschedule_service.suggest(
                        self.db,
                        appointment,
                        horizon_days=self.horizon_days,
                        max_slots_per_day=self.max_slots_per_day,
                        slot_step_minutes=self.slot_step_minutes,
                        now=self.now,
                        agenda=agenda,
                        reserved=(self.draft.blocked_span(),),
                    ),
                )
                for appointment in appointments
            ]
        except Exception:
            self.state = WorkflowState.DRAFT
            raise

        self.state = WorkflowState.CONFLICT_PRESENTED
        logger.info(
            "Unavailability conflicts with %d appointment(s)",
            len(self.conflicts),
            extra=build_log_context(doctor_id=self.draft.doctor_id, window_id=self.draft.window_id),
        )
        return self._outcome()

    def _check_move(self, appointment: Appointment, new_start: datetime) -> ConflictVerdict:
        day = to_clinic_time(new_start).date()
        agenda = agenda_service.load_doctor_agenda(self.db, self.draft.doctor_id, day, day)
        if self.draft.window_id is not None:
            agenda = agenda.without_window(self.draft.window_id)
        agenda = agenda.with_blocked_period(self.draft.as_period())
        verdict = conflict_detector.check_slot(
            agenda,
            new_start,
            appointment.duration_minutes,
            exclude_appointment_id=appointment.id,
            is_fit_in=appointment.is_fit_in,
            now=self.now,
        )
        if not verdict.valid:
            return verdict

        # The moved appointment must clear the draft window entirely, or it still conflicts
        start = to_clinic_time(new_start)
        end = start + timedelta(minutes=appointment.duration_minutes)
        blocked_start, blocked_until = self.draft.blocked_span()
        if intervals_overlap(start, end, blocked_start, blocked_until):
            return ConflictVerdict.reject(
                ConflictReason.BLOCKED_BY_UNAVAILABILITY,
                f"Slot {format_hhmm(start)}-{format_hhmm(end)} runs into the unavailability "
                f"being declared ({blocked_start:%Y-%m-%d %H:%M} until {blocked_until:%Y-%m-%d %H:%M})",
            )
        return verdict

    def _persist(self) -> WorkflowOutcome:
        try:
            if self.draft.window_id is None:
                window = unavailability_service.create_window(
                    self.db,
                    self.draft.doctor_id,
                    self.draft.starts_at,
                    self.draft.ends_at,
                    reason=self.draft.reason,
                )
            else:
                window = unavailability_service.update_window(
                    self.db,
                    unavailability_service.get_window(self.db, self.draft.window_id),
                    starts_at=self.draft.starts_at,
                    ends_at=self.draft.ends_at,
                    reason=self.draft.reason,
                )
        except CollaboratorUnavailable:
            self.state = WorkflowState.DRAFT
            raise

        self.state = WorkflowState.CLEAN
        return self._outcome(window=window)


# =============================================================================
# Entry points
# =============================================================================

def attempt_create_unavailability(
    db: Session,
    doctor_id: UUID,
    starts_at: datetime,
    ends_at: datetime,
    reason: str | None = None,
    **options,
) -> WorkflowOutcome:
    """Create a window unless it displaces booked appointments (then return them with suggestions)."""
    draft = UnavailabilityDraft(doctor_id=doctor_id, starts_at=starts_at, ends_at=ends_at, reason=reason)
    return UnavailabilityWorkflow(db, draft, **options).submit()


def force_create_unavailability(
    db: Session,
    doctor_id: UUID,
    starts_at: datetime,
    ends_at: datetime,
    reason: str | None = None,
    **options,
) -> WorkflowOutcome:
    """Create a window even over booked appointments (explicit operator override)."""
    draft = UnavailabilityDraft(doctor_id=doctor_id, starts_at=starts_at, ends_at=ends_at, reason=reason)
    return UnavailabilityWorkflow(db, draft, **options).force()


def attempt_update_unavailability(
    db: Session,
    window_id: UUID,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    reason: str | None = None,
    ignore_conflicts: bool = False,
    **options,
) -> WorkflowOutcome:
    """
    Apply the same guarded flow to an edit of a stored window.

    An edit that keeps the range (reason only) is saved without a conflict
    check, so a window forced over appointments can still be relabelled.
    """
    window = unavailability_service.get_window(db, window_id)
    range_changed = (
        starts_at is not None and to_clinic_time(starts_at) != to_clinic_time(window.starts_at)
    ) or (
        ends_at is not None and to_clinic_time(ends_at) != to_clinic_time(window.ends_at)
    )
    draft = UnavailabilityDraft(
        doctor_id=window.doctor_id,
        starts_at=starts_at if starts_at is not None else window.starts_at,
        ends_at=ends_at if ends_at is not None else window.ends_at,
        reason=reason if reason is not None else window.reason,
        window_id=window.id,
    )
    if not range_changed:
        window = unavailability_service.update_window(db, window, reason=reason)
        return WorkflowOutcome(state=WorkflowState.CLEAN, draft=draft, window=window)

    workflow = UnavailabilityWorkflow(db, draft, **options)
    return workflow.force() if ignore_conflicts else workflow.submit()


def resolve_one_conflict(
    db: Session,
    draft: UnavailabilityDraft,
    appointment_id: UUID,
    new_start: datetime,
    **options,
) -> WorkflowOutcome:
    """
    Stateless resume: re-validate the draft, move one conflicting appointment, re-validate again.

    If the draft no longer conflicts with anything it is persisted straight away
    and the appointment is left where it is.
    """
    workflow = UnavailabilityWorkflow(db, draft, **options)
    outcome = workflow.submit()
    if outcome.is_clean:
        return outcome
    return workflow.resolve_one_conflict(appointment_id, new_start)
