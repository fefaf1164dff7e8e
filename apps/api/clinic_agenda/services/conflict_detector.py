"""Conflict detector - decides whether a proposed appointment slot is legal.

Pure functions over a DoctorAgenda snapshot (no database access, no
hidden state): the same agenda, candidate and ``now`` always produce the
same verdict. The database-facing entry points live in
availability_service, which loads the snapshot and delegates here.

Guards run in a fixed order and the first failing guard wins:
1. past / too soon
2. no expedient on that day
3. opening / closing bounds
4. break window
5. unavailability windows
6. overlap with other appointments (skipped for fit-ins)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Mapping, NamedTuple, Sequence
from uuid import UUID

from clinic_agenda.core.constants import BOOKING_LEAD_MINUTES, SLOT_STEP_MINUTES
from clinic_agenda.db.enums import AppointmentStatus, ConflictReason
from clinic_agenda.services.errors import InvalidSchedulingInput
from clinic_agenda.utils.clinic_time import (
    at_clinic_time,
    clinic_now,
    end_of_clock_hour,
    format_hhmm,
    intervals_overlap,
    to_clinic_time,
)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


# =============================================================================
# Types
# =============================================================================

class EffectiveSchedule(NamedTuple):
    """Working hours actually in force for one doctor on one date."""
    start: time
    end: time
    break_start: time | None = None
    break_end: time | None = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None


class WeeklyHours(NamedTuple):
    """Recurring working hours for one weekday."""
    weekday: int
    is_active: bool
    start: time
    end: time
    break_start: time | None = None
    break_end: time | None = None


class BreakOverride(NamedTuple):
    """Single-date break replacement (doctor- or clinic-level)."""
    exception_date: date
    break_start: time
    break_end: time
    created_at: datetime
    doctor_level: bool = True


class BlockedPeriod(NamedTuple):
    """Explicit unavailability window."""
    start: datetime
    end: datetime
    reason: str | None = None
    window_id: UUID | None = None


class BookedSlot(NamedTuple):
    """An appointment as the detector sees it."""
    appointment_id: UUID
    start: datetime
    duration_minutes: int
    status: str = AppointmentStatus.PENDING.value

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class DoctorAgenda:
    """Everything the detector needs about one doctor, fetched up front by the caller."""
    doctor_id: UUID
    blocked_weekdays: frozenset[int] = frozenset()
    weekly_hours: Mapping[int, WeeklyHours] = field(default_factory=dict)
    break_overrides: tuple[BreakOverride, ...] = ()
    blocked_periods: tuple[BlockedPeriod, ...] = ()
    booked: tuple[BookedSlot, ...] = ()

    def with_blocked_period(self, period: BlockedPeriod) -> "DoctorAgenda":
        """Copy of the agenda with one more (not yet persisted) unavailability window."""
        periods = sorted((*self.blocked_periods, period), key=lambda p: p.start)
        return dataclasses.replace(self, blocked_periods=tuple(periods))

    def without_window(self, window_id: UUID) -> "DoctorAgenda":
        """Copy of the agenda ignoring a stored window (used while editing it)."""
        periods = tuple(p for p in self.blocked_periods if p.window_id != window_id)
        return dataclasses.replace(self, blocked_periods=periods)


class ConflictVerdict(NamedTuple):
    """Structured pass/fail result of validating a candidate slot."""
    valid: bool
    reason_code: ConflictReason | None = None
    message: str = "Slot is available"
    conflicting_appointment_id: UUID | None = None

    @classmethod
    def ok(cls) -> "ConflictVerdict":
        return cls(valid=True)

    @classmethod
    def reject(
        cls,
        reason_code: ConflictReason,
        message: str,
        conflicting_appointment_id: UUID | None = None,
    ) -> "ConflictVerdict":
        return cls(
            valid=False,
            reason_code=reason_code,
            message=message,
            conflicting_appointment_id=conflicting_appointment_id,
        )


# =============================================================================
# Effective Schedule
# =============================================================================

def resolve_effective_schedule(agenda: DoctorAgenda, day: date) -> EffectiveSchedule | None:
    """
    Resolve the schedule in force on ``day``.

    1. Blocked weekday -> no expedient.
    2. No active weekly row for the weekday -> no expedient.
    3. The most recently created break exception for the date (doctor or
       clinic) replaces the weekly break window for that date only.
    """
    weekday = day.weekday()
    if weekday in agenda.blocked_weekdays:
        return None

    hours = agenda.weekly_hours.get(weekday)
    if hours is None or not hours.is_active:
        return None

    overrides = [o for o in agenda.break_overrides if o.exception_date == day]
    if overrides:
        # Doctor-level wins only when creation timestamps tie
        latest = max(overrides, key=lambda o: (o.created_at, o.doctor_level))
        return EffectiveSchedule(
            start=hours.start,
            end=hours.end,
            break_start=latest.break_start,
            break_end=latest.break_end,
        )

    return EffectiveSchedule(
        start=hours.start,
        end=hours.end,
        break_start=hours.break_start,
        break_end=hours.break_end,
    )


# =============================================================================
# Slot Check
# =============================================================================

def check_slot(
    agenda: DoctorAgenda,
    candidate_start: datetime,
    duration_minutes: int,
    *,
    exclude_appointment_id: UUID | None = None,
    is_fit_in: bool = False,
    now: datetime | None = None,
    lead_minutes: int = BOOKING_LEAD_MINUTES,
) -> ConflictVerdict:
    """Evaluate a candidate slot against every guard, returning the first failure."""
    if duration_minutes <= 0:
        raise InvalidSchedulingInput("Duration must be a positive number of minutes")

    start = to_clinic_time(candidate_start)
    end = start + timedelta(minutes=duration_minutes)
    now = to_clinic_time(now) if now is not None else clinic_now()

    # 1. Past-time guard
    earliest = now + timedelta(minutes=lead_minutes)
    if start < earliest:
        return ConflictVerdict.reject(
            ConflictReason.PAST_OR_TOO_SOON,
            f"Appointments must start at least {lead_minutes} minutes from now; "
            f"earliest allowed start is {earliest:%Y-%m-%d %H:%M}",
        )

    # 2. Weekday/schedule guard
    day = start.date()
    schedule = resolve_effective_schedule(agenda, day)
    if schedule is None:
        return ConflictVerdict.reject(
            ConflictReason.NO_EXPEDIENT_THIS_DAY,
            f"Doctor has no working hours on {WEEKDAY_NAMES[day.weekday()]}, {day.isoformat()}",
        )

    # 3. Bounds guard
    opening = at_clinic_time(day, schedule.start)
    closing = at_clinic_time(day, schedule.end)
    if start < opening:
        return ConflictVerdict.reject(
            ConflictReason.BEFORE_OPENING,
            f"Start time {format_hhmm(start)} is before opening time {format_hhmm(schedule.start)}",
        )
    if start >= closing:
        return ConflictVerdict.reject(
            ConflictReason.AFTER_CLOSING,
            f"Start time {format_hhmm(start)} is at or after closing time {format_hhmm(schedule.end)}",
        )
    if end > closing:
        latest_start = closing - timedelta(minutes=duration_minutes)
        return ConflictVerdict.reject(
            ConflictReason.EXCEEDS_CLOSING,
            f"A {duration_minutes}-minute appointment starting at {format_hhmm(start)} "
            f"ends after closing time {format_hhmm(schedule.end)}; "
            f"latest valid start is {format_hhmm(latest_start)}",
        )

    # 4. Break guard
    if schedule.has_break:
        break_start = at_clinic_time(day, schedule.break_start)
        break_end = at_clinic_time(day, schedule.break_end)
        if intervals_overlap(start, end, break_start, break_end):
            return ConflictVerdict.reject(
                ConflictReason.DURING_BREAK,
                f"Slot {format_hhmm(start)}-{format_hhmm(end)} overlaps the break "
                f"{format_hhmm(schedule.break_start)}-{format_hhmm(schedule.break_end)}",
            )

    # 5. Unavailability guard (blocking runs to the end of the clock hour)
    for period in agenda.blocked_periods:
        period_start = to_clinic_time(period.start)
        period_end = end_of_clock_hour(period.end)
        if period_start <= start < period_end:
            reason = f" (reason: {period.reason})" if period.reason else ""
            return ConflictVerdict.reject(
                ConflictReason.BLOCKED_BY_UNAVAILABILITY,
                f"Doctor is unavailable from {period_start:%Y-%m-%d %H:%M} "
                f"until {period_end:%Y-%m-%d %H:%M}{reason}",
            )

    # 6. Appointment overlap guard; fit-ins may overlap
    if not is_fit_in:
        for booked in agenda.booked:
            if booked.appointment_id == exclude_appointment_id:
                continue
            if booked.status == AppointmentStatus.CANCELLED.value:
                continue
            booked_start = to_clinic_time(booked.start)
            if booked_start.date() != day:
                continue
            booked_end = booked_start + timedelta(minutes=booked.duration_minutes)
            if intervals_overlap(start, end, booked_start, booked_end):
                return ConflictVerdict.reject(
                    ConflictReason.OVERLAPS_APPOINTMENT,
                    f"Slot {format_hhmm(start)}-{format_hhmm(end)} overlaps an appointment at "
                    f"{format_hhmm(booked_start)}-{format_hhmm(booked_end)}; "
                    "book it as a fit-in to allow overlapping",
                    conflicting_appointment_id=booked.appointment_id,
                )

    return ConflictVerdict.ok()


def list_valid_starts(
    agenda: DoctorAgenda,
    day: date,
    duration_minutes: int,
    *,
    step_minutes: int = SLOT_STEP_MINUTES,
    exclude_appointment_id: UUID | None = None,
    is_fit_in: bool = False,
    now: datetime | None = None,
    limit: int | None = None,
    reserved: Sequence[tuple[datetime, datetime]] = (),
) -> list[datetime]:
    """
    Enumerate start times on ``day`` (opening to closing - duration) that pass check_slot.

    ``reserved`` holds half-open intervals the whole slot must stay clear of,
    not just its start (a window still being declared).
    """
    if step_minutes <= 0:
        raise InvalidSchedulingInput("Slot step must be a positive number of minutes")

    schedule = resolve_effective_schedule(agenda, day)
    if schedule is None:
        return []

    now = to_clinic_time(now) if now is not None else clinic_now()
    cursor = at_clinic_time(day, schedule.start)
    last_start = at_clinic_time(day, schedule.end) - timedelta(minutes=duration_minutes)

    starts: list[datetime] = []
    while cursor <= last_start:
        verdict = check_slot(
            agenda,
            cursor,
            duration_minutes,
            exclude_appointment_id=exclude_appointment_id,
            is_fit_in=is_fit_in,
            now=now,
        )
        slot_end = cursor + timedelta(minutes=duration_minutes)
        if verdict.valid and not any(
            intervals_overlap(cursor, slot_end, start, end) for start, end in reserved
        ):
            starts.append(cursor)
            if limit is not None and len(starts) >= limit:
                break
        cursor += timedelta(minutes=step_minutes)

    return starts
