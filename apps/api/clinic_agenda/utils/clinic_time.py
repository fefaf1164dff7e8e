"""Clinic timezone helpers.

The clinic runs on one fixed timezone. Every wall-clock comparison the
scheduling engine makes (opening hours, breaks, "same calendar day")
happens after converting timestamps to it. DST is not modelled beyond
what zoneinfo does on conversion.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clinic_agenda.core.constants import DEFAULT_CLINIC_TIMEZONE


@lru_cache(maxsize=4)
def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_CLINIC_TIMEZONE)


def get_clinic_timezone() -> ZoneInfo:
    """Get the configured clinic timezone with safe fallback."""
    from clinic_agenda.core.config import settings

    return _zone(settings.CLINIC_TIMEZONE or DEFAULT_CLINIC_TIMEZONE)


def to_clinic_time(value: datetime) -> datetime:
    """Return an aware datetime in clinic time. Naive input is already clinic-local."""
    tz = get_clinic_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def clinic_now() -> datetime:
    return datetime.now(get_clinic_timezone())


def clinic_today() -> date:
    return clinic_now().date()


def at_clinic_time(day: date, moment: time) -> datetime:
    """Combine a calendar date and a wall-clock time in the clinic timezone."""
    return datetime.combine(day, moment, tzinfo=get_clinic_timezone())


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [start, end) bounds of a clinic calendar day."""
    start = at_clinic_time(day, time.min)
    return start, at_clinic_time(day + timedelta(days=1), time.min)


def end_of_clock_hour(value: datetime) -> datetime:
    """Exclusive end of the clock hour containing ``value`` (10:30 -> 11:00, 10:00 -> 11:00)."""
    local = to_clinic_time(value)
    return local.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open interval overlap: start inclusive, end exclusive."""
    return start_a < end_b and start_b < end_a


def format_hhmm(value: datetime | time) -> str:
    if isinstance(value, datetime):
        value = to_clinic_time(value).time()
    return value.strftime("%H:%M")


def daterange(date_start: date, date_end: date):
    """Yield every date from date_start to date_end inclusive."""
    current = date_start
    while current <= date_end:
        yield current
        current += timedelta(days=1)
