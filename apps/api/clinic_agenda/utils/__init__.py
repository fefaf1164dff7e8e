"""Utility modules."""

from clinic_agenda.utils.clinic_time import (
    at_clinic_time,
    clinic_now,
    clinic_today,
    end_of_clock_hour,
    intervals_overlap,
    to_clinic_time,
)

__all__ = [
    "at_clinic_time",
    "clinic_now",
    "clinic_today",
    "end_of_clock_hour",
    "intervals_overlap",
    "to_clinic_time",
]
