"""
Tests for the unavailability workflow.

Coverage:
- Clean creation when nothing intersects
- Conflicts presented with per-appointment suggestions, nothing persisted
- Resolving conflicts one by one until the window is saved
- Forced creation leaves appointments untouched
- Cancellation and storage failures return to draft
- Accepted suggestions always clear their conflict
- Guarded edits of stored windows
"""

from datetime import time

import pytest

from clinic_agenda.db.enums import AppointmentStatus, ConflictReason, WorkflowState
from clinic_agenda.db.models import UnavailabilityWindow
from clinic_agenda.services import unavailability_service, unavailability_workflow
from clinic_agenda.services.errors import CollaboratorUnavailable, InvalidSchedulingInput
from clinic_agenda.services.unavailability_workflow import UnavailabilityDraft, UnavailabilityWorkflow
from clinic_agenda.utils.clinic_time import at_clinic_time

from conftest import MONDAY, NOW, TUESDAY, clinic_dt


def active_windows(db) -> int:
    return db.query(UnavailabilityWindow).filter(UnavailabilityWindow.is_active == True).count()  # noqa: E712


@pytest.fixture
def draft(doctor) -> UnavailabilityDraft:
    """Monday 08:00-10:30, blocking until 11:00."""
    return UnavailabilityDraft(
        doctor_id=doctor.id,
        starts_at=clinic_dt(MONDAY, 8),
        ends_at=clinic_dt(MONDAY, 10, 30),
        reason="cirurgia",
    )


class TestSubmit:
    def test_clean_when_nothing_intersects(self, db, doctor, work_week, make_appointment, draft):
        make_appointment(clinic_dt(MONDAY, 11))

        outcome = UnavailabilityWorkflow(db, draft, now=NOW).submit()

        assert outcome.state == WorkflowState.CLEAN
        assert outcome.window.reason == "cirurgia"
        assert outcome.conflicts == []
        assert active_windows(db) == 1

    def test_end_of_clock_hour_counts_as_intersecting(self, db, doctor, work_week, make_appointment, draft):
        appointment = make_appointment(clinic_dt(MONDAY, 10, 45))

        outcome = UnavailabilityWorkflow(db, draft, now=NOW).submit()

        assert outcome.state == WorkflowState.CONFLICT_PRESENTED
        assert [c.appointment.id for c in outcome.conflicts] == [appointment.id]

    def test_appointment_running_into_window_intersects(self, db, doctor, work_week, make_appointment, draft):
        make_appointment(clinic_dt(MONDAY, 7, 30), duration_minutes=60)

        outcome = UnavailabilityWorkflow(db, draft, now=NOW).submit()

        assert outcome.state == WorkflowState.CONFLICT_PRESENTED

    def test_cancelled_appointments_are_ignored(self, db, doctor, work_week, make_appointment, draft):
        make_appointment(clinic_dt(MONDAY, 9), status=AppointmentStatus.CANCELLED.value)

        outcome = UnavailabilityWorkflow(db, draft, now=NOW).submit()

        assert outcome.is_clean

    def test_three_conflicts_one_without_suggestions(self, db, doctor, work_week, make_appointment, draft):
        first = make_appointment(clinic_dt(MONDAY, 8))
        second = make_appointment(clinic_dt(MONDAY, 9))
        # Longer than any free span of the working day
        impossible = make_appointment(clinic_dt(MONDAY, 10), duration_minutes=360)

        outcome = UnavailabilityWorkflow(db, draft, now=NOW).submit()

        assert outcome.state == WorkflowState.CONFLICT_PRESENTED
        assert active_windows(db) == 0
        suggestions = {c.appointment.id: c.suggestion for c in outcome.conflicts}
        assert set(suggestions) == {first.id, second.id, impossible.id}
        assert suggestions[first.id].has_candidates
        assert suggestions[second.id].has_candidates
        assert suggestions[impossible.id].candidates == ()

    def test_suggestions_avoid_the_pending_window(self, db, doctor, work_week, make_appointment, draft):
        make_appointment(clinic_dt(MONDAY, 9))

        outcome = UnavailabilityWorkflow(db, draft, now=NOW).submit()

        suggestion = outcome.conflicts[0].suggestion
        monday = next(day for day in suggestion.candidates if day.date == MONDAY)
        assert all(t >= time(11) for t in monday.times)

    def test_invalid_range(self, db, doctor, draft):
        draft.ends_at = draft.starts_at

        with pytest.raises(InvalidSchedulingInput):
            UnavailabilityWorkflow(db, draft, now=NOW).submit()


class TestResolve:
    def test_resolving_every_conflict_persists_window(self, db, doctor, work_week, make_appointment, draft):
        first = make_appointment(clinic_dt(MONDAY, 8))
        second = make_appointment(clinic_dt(MONDAY, 9))
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)
        workflow.submit()

        outcome = workflow.resolve_one_conflict(first.id, clinic_dt(TUESDAY, 8))
        assert outcome.state == WorkflowState.CONFLICT_PRESENTED
        assert [c.appointment.id for c in outcome.conflicts] == [second.id]
        assert active_windows(db) == 0

        outcome = workflow.resolve_one_conflict(second.id, clinic_dt(MONDAY, 14))
        assert outcome.state == WorkflowState.CLEAN
        assert outcome.window is not None
        assert active_windows(db) == 1
        db.refresh(first)
        assert first.scheduled_start == clinic_dt(TUESDAY, 8)

    def test_move_into_the_pending_window_is_rejected(self, db, doctor, work_week, make_appointment, draft):
        appointment = make_appointment(clinic_dt(MONDAY, 9))
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)
        workflow.submit()

        outcome = workflow.resolve_one_conflict(appointment.id, clinic_dt(MONDAY, 10, 45))

        assert outcome.state == WorkflowState.CONFLICT_PRESENTED
        assert outcome.verdict.reason_code == ConflictReason.BLOCKED_BY_UNAVAILABILITY
        db.refresh(appointment)
        assert appointment.scheduled_start == clinic_dt(MONDAY, 9)

    def test_unrelated_appointment_cannot_be_resolved(self, db, doctor, work_week, make_appointment, draft):
        make_appointment(clinic_dt(MONDAY, 9))
        unrelated = make_appointment(clinic_dt(TUESDAY, 9))
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)
        workflow.submit()

        with pytest.raises(InvalidSchedulingInput):
            workflow.resolve_one_conflict(unrelated.id, clinic_dt(TUESDAY, 14))

    def test_resolve_requires_presented_conflicts(self, db, doctor, work_week, make_appointment, draft):
        appointment = make_appointment(clinic_dt(MONDAY, 9))

        with pytest.raises(InvalidSchedulingInput):
            UnavailabilityWorkflow(db, draft, now=NOW).resolve_one_conflict(appointment.id, clinic_dt(TUESDAY, 9))

    def test_stateless_resolve_entry_point(self, db, doctor, work_week, make_appointment, draft):
        appointment = make_appointment(clinic_dt(MONDAY, 9))

        outcome = unavailability_workflow.resolve_one_conflict(
            db, draft, appointment.id, clinic_dt(TUESDAY, 9), now=NOW,
        )

        assert outcome.is_clean
        assert active_windows(db) == 1


class TestAcceptingSuggestions:
    """Any suggested slot, once accepted, must clear the conflict it was offered for."""

    @pytest.fixture
    def short_draft(self, doctor) -> UnavailabilityDraft:
        """Monday 10:00-10:30, blocking until 11:00."""
        return UnavailabilityDraft(
            doctor_id=doctor.id,
            starts_at=clinic_dt(MONDAY, 10),
            ends_at=clinic_dt(MONDAY, 10, 30),
        )

    def test_suggestions_clear_the_whole_window(self, db, doctor, work_week, make_appointment, short_draft):
        # Starts before the window and runs into it
        make_appointment(clinic_dt(MONDAY, 9, 30), duration_minutes=60)

        outcome = UnavailabilityWorkflow(db, short_draft, now=NOW).submit()

        monday = next(d for d in outcome.conflicts[0].suggestion.candidates if d.date == MONDAY)
        assert monday.times == (time(8), time(8, 15), time(8, 30), time(8, 45), time(9), time(11))

    @pytest.mark.parametrize("accepted", [time(9), time(11)])
    def test_accepting_a_suggested_slot_reaches_clean(
        self, db, doctor, work_week, make_appointment, short_draft, accepted,
    ):
        appointment = make_appointment(clinic_dt(MONDAY, 9, 30), duration_minutes=60)
        workflow = UnavailabilityWorkflow(db, short_draft, now=NOW)
        outcome = workflow.submit()
        monday = next(d for d in outcome.conflicts[0].suggestion.candidates if d.date == MONDAY)
        assert accepted in monday.times

        outcome = workflow.resolve_one_conflict(appointment.id, clinic_dt(MONDAY, accepted.hour))

        assert outcome.state == WorkflowState.CLEAN
        assert active_windows(db) == 1

    def test_accepting_first_suggestion_for_every_conflict(
        self, db, doctor, work_week, make_appointment, short_draft,
    ):
        make_appointment(clinic_dt(MONDAY, 9, 30), duration_minutes=60)
        make_appointment(clinic_dt(MONDAY, 10, 15))
        workflow = UnavailabilityWorkflow(db, short_draft, now=NOW)
        outcome = workflow.submit()
        assert len(outcome.conflicts) == 2

        for _ in range(2):
            conflict = outcome.conflicts[0]
            first_day = conflict.suggestion.candidates[0]
            outcome = workflow.resolve_one_conflict(
                conflict.appointment.id, at_clinic_time(first_day.date, first_day.times[0]),
            )
            assert outcome.verdict is None

        assert outcome.state == WorkflowState.CLEAN
        assert active_windows(db) == 1

    def test_move_running_into_the_window_is_rejected(
        self, db, doctor, work_week, make_appointment, short_draft,
    ):
        appointment = make_appointment(clinic_dt(MONDAY, 9, 30), duration_minutes=60)
        workflow = UnavailabilityWorkflow(db, short_draft, now=NOW)
        workflow.submit()

        # 09:15-10:15 starts before the window but ends inside it
        outcome = workflow.resolve_one_conflict(appointment.id, clinic_dt(MONDAY, 9, 15))

        assert outcome.state == WorkflowState.CONFLICT_PRESENTED
        assert outcome.verdict.reason_code == ConflictReason.BLOCKED_BY_UNAVAILABILITY
        db.refresh(appointment)
        assert appointment.scheduled_start == clinic_dt(MONDAY, 9, 30)


class TestForceAndCancel:
    def test_force_leaves_conflicting_appointments_intact(self, db, doctor, work_week, make_appointment, draft):
        first = make_appointment(clinic_dt(MONDAY, 8))
        second = make_appointment(clinic_dt(MONDAY, 9), status=AppointmentStatus.CONFIRMED.value)
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)
        workflow.submit()

        outcome = workflow.force()

        assert outcome.state == WorkflowState.CLEAN
        assert active_windows(db) == 1
        db.refresh(first)
        db.refresh(second)
        assert first.scheduled_start == clinic_dt(MONDAY, 8)
        assert first.status == AppointmentStatus.PENDING.value
        assert second.scheduled_start == clinic_dt(MONDAY, 9)
        assert second.status == AppointmentStatus.CONFIRMED.value

    def test_force_create_entry_point(self, db, doctor, work_week, make_appointment, caplog):
        make_appointment(clinic_dt(MONDAY, 9))

        with caplog.at_level("WARNING"):
            outcome = unavailability_workflow.force_create_unavailability(
                db, doctor.id, clinic_dt(MONDAY, 8), clinic_dt(MONDAY, 10), now=NOW,
            )

        assert outcome.is_clean
        assert "forced over 1" in caplog.text

    def test_cancel_persists_nothing(self, db, doctor, work_week, make_appointment, draft):
        make_appointment(clinic_dt(MONDAY, 9))
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)
        workflow.submit()

        outcome = workflow.cancel()

        assert outcome.state == WorkflowState.DRAFT
        assert outcome.conflicts == []
        assert active_windows(db) == 0

    def test_storage_failure_returns_to_draft(self, db, doctor, work_week, draft, monkeypatch):
        def failing_create(*args, **kwargs):
            raise CollaboratorUnavailable("Storage unavailable during unavailability create")

        monkeypatch.setattr(unavailability_service, "create_window", failing_create)
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)

        with pytest.raises(CollaboratorUnavailable):
            workflow.submit()

        assert workflow.state == WorkflowState.DRAFT

    def test_earlier_reschedule_survives_storage_failure(self, db, doctor, work_week, make_appointment, draft, monkeypatch):
        appointment = make_appointment(clinic_dt(MONDAY, 9))
        workflow = UnavailabilityWorkflow(db, draft, now=NOW)
        workflow.submit()

        def failing_create(*args, **kwargs):
            raise CollaboratorUnavailable("Storage unavailable during unavailability create")

        monkeypatch.setattr(unavailability_service, "create_window", failing_create)

        with pytest.raises(CollaboratorUnavailable):
            workflow.resolve_one_conflict(appointment.id, clinic_dt(TUESDAY, 9))

        assert workflow.state == WorkflowState.DRAFT
        db.refresh(appointment)
        assert appointment.scheduled_start == clinic_dt(TUESDAY, 9)


class TestUpdate:
    def test_update_into_conflict_keeps_stored_window(self, db, doctor, work_week, make_appointment):
        window = unavailability_service.create_window(db, doctor.id, clinic_dt(MONDAY, 14), clinic_dt(MONDAY, 15))
        appointment = make_appointment(clinic_dt(MONDAY, 9))

        outcome = unavailability_workflow.attempt_update_unavailability(
            db, window.id, starts_at=clinic_dt(MONDAY, 8), ends_at=clinic_dt(MONDAY, 10), now=NOW,
        )

        assert outcome.state == WorkflowState.CONFLICT_PRESENTED
        assert outcome.conflicts[0].appointment.id == appointment.id
        db.refresh(window)
        assert window.starts_at == clinic_dt(MONDAY, 14)

    def test_update_suggestions_ignore_the_old_range(self, db, doctor, work_week, make_appointment):
        window = unavailability_service.create_window(db, doctor.id, clinic_dt(MONDAY, 13), clinic_dt(MONDAY, 17))
        make_appointment(clinic_dt(MONDAY, 9))

        outcome = unavailability_workflow.attempt_update_unavailability(
            db, window.id, starts_at=clinic_dt(MONDAY, 8), ends_at=clinic_dt(MONDAY, 10), now=NOW,
        )

        monday = next(d for d in outcome.conflicts[0].suggestion.candidates if d.date == MONDAY)
        # The stored 13:00-17:00 range no longer blocks
        assert monday.times == (time(11), time(11, 15), time(11, 30), time(13), time(13, 15), time(13, 30))

    def test_update_with_ignore_conflicts(self, db, doctor, work_week, make_appointment):
        window = unavailability_service.create_window(db, doctor.id, clinic_dt(MONDAY, 14), clinic_dt(MONDAY, 15))
        make_appointment(clinic_dt(MONDAY, 9))

        outcome = unavailability_workflow.attempt_update_unavailability(
            db, window.id, starts_at=clinic_dt(MONDAY, 8), ignore_conflicts=True, now=NOW,
        )

        assert outcome.is_clean
        assert outcome.window.id == window.id
        assert outcome.window.starts_at == clinic_dt(MONDAY, 8)
        assert active_windows(db) == 1

    def test_reason_only_edit_of_forced_window(self, db, doctor, work_week, make_appointment):
        appointment = make_appointment(clinic_dt(MONDAY, 9))
        forced = unavailability_workflow.force_create_unavailability(
            db, doctor.id, clinic_dt(MONDAY, 8), clinic_dt(MONDAY, 10), now=NOW,
        )

        outcome = unavailability_workflow.attempt_update_unavailability(
            db, forced.window.id, reason="congresso", now=NOW,
        )

        assert outcome.is_clean
        assert outcome.conflicts == []
        assert outcome.window.reason == "congresso"
        db.refresh(appointment)
        assert appointment.scheduled_start == clinic_dt(MONDAY, 9)
