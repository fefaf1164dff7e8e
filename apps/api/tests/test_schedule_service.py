"""
Tests for schedule configuration - weekly hours, blocked weekdays, break exceptions.
"""

import uuid
from datetime import time

import pytest

from clinic_agenda.db.models import BreakException, Clinic, Doctor, WorkSchedule
from clinic_agenda.services import availability_service, directory_service, schedule_service
from clinic_agenda.services.errors import (
    BreakExceptionNotFoundError,
    DoctorNotFoundError,
    InvalidSchedulingInput,
    NotFoundError,
)

from conftest import MONDAY, TUESDAY


# =============================================================================
# Work Schedules
# =============================================================================

class TestWorkSchedules:
    def test_set_work_schedule_upserts_one_row_per_weekday(self, db, doctor):
        schedule_service.set_work_schedule(db, doctor.id, 0, "08:00", "18:00", "12:00", "13:00")
        updated = schedule_service.set_work_schedule(db, doctor.id, 0, "09:00", "17:00")

        rows = schedule_service.get_work_schedules(db, doctor.id)
        assert len(rows) == 1
        assert updated.start_time == time(9)
        assert updated.break_start is None

    @pytest.mark.parametrize(
        "args",
        [
            (0, "18:00", "08:00", None, None),  # start after end
            (0, "08:00", "18:00", "12:00", None),  # half a break
            (0, "08:00", "18:00", "13:00", "12:00"),  # inverted break
            (0, "08:00", "18:00", "07:30", "09:00"),  # break before opening
            (0, "08:00", "18:00", "17:30", "18:30"),  # break after closing
            (7, "08:00", "18:00", None, None),  # weekday out of range
        ],
    )
    def test_invalid_hours_are_rejected(self, db, doctor, args):
        with pytest.raises(InvalidSchedulingInput):
            schedule_service.set_work_schedule(db, doctor.id, *args)

        assert db.query(WorkSchedule).count() == 0

    def test_break_may_touch_opening_and_closing(self, db, doctor):
        schedule = schedule_service.set_work_schedule(db, doctor.id, 0, "08:00", "18:00", "08:00", "18:00")

        assert schedule.break_start == time(8)

    def test_replace_work_schedules(self, db, doctor, work_week):
        rows = schedule_service.replace_work_schedules(db, doctor.id, [
            {"weekday": 5, "start_time": "08:00", "end_time": "12:00"},
            {"weekday": 1, "start_time": "10:00", "end_time": "16:00", "break_start": "12:00", "break_end": "12:30"},
        ])

        assert [r.weekday for r in rows] == [1, 5]
        assert db.query(WorkSchedule).filter(WorkSchedule.doctor_id == doctor.id).count() == 2
        assert availability_service.resolve_effective_schedule(db, doctor.id, MONDAY) is None

    def test_replace_rejects_duplicate_weekdays(self, db, doctor, work_week):
        with pytest.raises(InvalidSchedulingInput):
            schedule_service.replace_work_schedules(db, doctor.id, [
                {"weekday": 1, "start_time": "08:00", "end_time": "12:00"},
                {"weekday": 1, "start_time": "13:00", "end_time": "18:00"},
            ])

        # Existing week untouched
        assert db.query(WorkSchedule).count() == 5

    def test_delete_work_schedule(self, db, doctor, work_week):
        assert schedule_service.delete_work_schedule(db, doctor.id, 0) is True
        assert schedule_service.delete_work_schedule(db, doctor.id, 0) is False
        assert availability_service.resolve_effective_schedule(db, doctor.id, MONDAY) is None

    def test_unknown_doctor(self, db):
        with pytest.raises(DoctorNotFoundError):
            schedule_service.set_work_schedule(db, uuid.uuid4(), 0, "08:00", "18:00")


# =============================================================================
# Blocked Weekdays
# =============================================================================

class TestBlockedWeekdays:
    def test_set_blocked_weekdays_sorts_and_dedupes(self, db, doctor):
        updated = directory_service.set_blocked_weekdays(db, doctor.id, [4, 0, 4])

        assert updated.blocked_weekdays == [0, 4]
        assert directory_service.get_blocked_weekdays(db, doctor.id) == frozenset({0, 4})

    def test_blocked_weekday_overrides_schedule(self, db, doctor, work_week):
        directory_service.set_blocked_weekdays(db, doctor.id, [0])

        assert availability_service.resolve_effective_schedule(db, doctor.id, MONDAY) is None
        assert availability_service.resolve_effective_schedule(db, doctor.id, TUESDAY) is not None

    def test_invalid_weekday(self, db, doctor):
        with pytest.raises(InvalidSchedulingInput):
            directory_service.set_blocked_weekdays(db, doctor.id, [0, 9])

    def test_inactive_doctor_is_not_found(self, db, clinic):
        inactive = Doctor(id=uuid.uuid4(), clinic_id=clinic.id, name="Dr. Inativo", is_active=False)
        db.add(inactive)
        db.commit()

        with pytest.raises(DoctorNotFoundError):
            directory_service.get_doctor(db, inactive.id)


# =============================================================================
# Break Exceptions
# =============================================================================

class TestBreakExceptions:
    def test_exception_overrides_break_for_one_date(self, db, doctor, work_week):
        schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="13:00", break_end="14:00", doctor_id=doctor.id,
        )

        monday = availability_service.resolve_effective_schedule(db, doctor.id, MONDAY)
        tuesday = availability_service.resolve_effective_schedule(db, doctor.id, TUESDAY)

        assert (monday.break_start, monday.break_end) == (time(13), time(14))
        assert (tuesday.break_start, tuesday.break_end) == (time(12), time(13))

    def test_new_exception_appends_and_latest_wins(self, db, doctor, work_week):
        schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="13:00", break_end="14:00", doctor_id=doctor.id,
        )
        schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="14:00", break_end="15:00", doctor_id=doctor.id,
        )

        assert db.query(BreakException).count() == 2
        monday = availability_service.resolve_effective_schedule(db, doctor.id, MONDAY)
        assert monday.break_start == time(14)

    def test_clinic_exception_applies_to_its_doctors(self, db, clinic, doctor, work_week):
        schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="11:00", break_end="11:30", clinic_id=clinic.id,
        )

        monday = availability_service.resolve_effective_schedule(db, doctor.id, MONDAY)
        assert (monday.break_start, monday.break_end) == (time(11), time(11, 30))

    def test_other_clinic_exception_is_ignored(self, db, doctor, work_week):
        other = Clinic(id=uuid.uuid4(), name="Outra Clinica")
        db.add(other)
        db.commit()
        schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="11:00", break_end="11:30", clinic_id=other.id,
        )

        monday = availability_service.resolve_effective_schedule(db, doctor.id, MONDAY)
        assert monday.break_start == time(12)

    @pytest.mark.parametrize("owner", ["none", "both"])
    def test_exactly_one_owner(self, db, clinic, doctor, owner):
        owners = {} if owner == "none" else {"doctor_id": doctor.id, "clinic_id": clinic.id}

        with pytest.raises(InvalidSchedulingInput):
            schedule_service.create_break_exception(
                db, exception_date=MONDAY, break_start="13:00", break_end="14:00", **owners,
            )

    def test_break_must_start_before_it_ends(self, db, doctor):
        with pytest.raises(InvalidSchedulingInput):
            schedule_service.create_break_exception(
                db, exception_date=MONDAY, break_start="14:00", break_end="14:00", doctor_id=doctor.id,
            )

    def test_unknown_clinic(self, db):
        with pytest.raises(NotFoundError):
            schedule_service.create_break_exception(
                db, exception_date=MONDAY, break_start="13:00", break_end="14:00", clinic_id=uuid.uuid4(),
            )

    def test_update_and_list(self, db, doctor):
        exception = schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="13:00", break_end="14:00", doctor_id=doctor.id,
        )

        schedule_service.update_break_exception(db, exception, break_end="14:30")
        listed = schedule_service.list_break_exceptions(db, doctor_id=doctor.id, date_start=MONDAY)

        assert [e.id for e in listed] == [exception.id]
        assert listed[0].break_end == time(14, 30)

        with pytest.raises(InvalidSchedulingInput):
            schedule_service.update_break_exception(db, exception, break_start="15:00")

    def test_soft_delete_restores_weekly_break(self, db, doctor, work_week):
        exception = schedule_service.create_break_exception(
            db, exception_date=MONDAY, break_start="13:00", break_end="14:00", doctor_id=doctor.id,
        )

        schedule_service.delete_break_exception(db, exception)

        assert db.query(BreakException).count() == 1
        assert schedule_service.list_break_exceptions(db, doctor_id=doctor.id) == []
        with pytest.raises(BreakExceptionNotFoundError):
            schedule_service.get_break_exception(db, exception.id)
        monday = availability_service.resolve_effective_schedule(db, doctor.id, MONDAY)
        assert monday.break_start == time(12)
