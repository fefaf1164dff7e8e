"""Availability service - database-facing entry points of the conflict detector.

Each call loads one DoctorAgenda snapshot and hands it to the pure
functions in conflict_detector.
"""

import logging
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_agenda.core.constants import SLOT_STEP_MINUTES
from clinic_agenda.core.structured_logging import build_log_context
from clinic_agenda.services import agenda_service, conflict_detector, directory_service
from clinic_agenda.services.conflict_detector import ConflictVerdict, EffectiveSchedule
from clinic_agenda.services.errors import InvalidSchedulingInput
from clinic_agenda.utils.clinic_time import to_clinic_time

logger = logging.getLogger(__name__)


def resolve_effective_schedule(db: Session, doctor_id: UUID, day: date) -> EffectiveSchedule | None:
    """Working hours and break in force for a doctor on one date (None = no expedient)."""
    agenda = agenda_service.load_doctor_agenda(db, doctor_id, day, day)
    return conflict_detector.resolve_effective_schedule(agenda, day)


def check_slot(
    db: Session,
    doctor_id: UUID,
    start: datetime,
    duration_minutes: int,
    *,
    exclude_appointment_id: UUID | None = None,
    is_fit_in: bool = False,
    now: datetime | None = None,
) -> ConflictVerdict:
    """Validate a candidate slot for a doctor. Rejections come back as verdicts."""
    if duration_minutes <= 0:
        raise InvalidSchedulingInput("Duration must be a positive number of minutes")

    day = to_clinic_time(start).date()
    agenda = agenda_service.load_doctor_agenda(db, doctor_id, day, day)
    verdict = conflict_detector.check_slot(
        agenda,
        start,
        duration_minutes,
        exclude_appointment_id=exclude_appointment_id,
        is_fit_in=is_fit_in,
        now=now,
    )
    if not verdict.valid:
        logger.info(
            "Slot rejected: %s",
            verdict.reason_code.value,
            extra=build_log_context(doctor_id=doctor_id, appointment_id=exclude_appointment_id),
        )
    return verdict


def get_available_slots(
    db: Session,
    doctor_id: UUID,
    service_id: UUID,
    day: date,
    *,
    step_minutes: int = SLOT_STEP_MINUTES,
    is_fit_in: bool = False,
    now: datetime | None = None,
) -> list[datetime]:
    """
    List every bookable start time for a service on one day.

    Start times run from opening to closing minus the service duration
    in step_minutes increments; each one passes check_slot.
    """
    duration = directory_service.get_service_duration(db, service_id)
    agenda = agenda_service.load_doctor_agenda(db, doctor_id, day, day)
    return conflict_detector.list_valid_starts(
        agenda,
        day,
        duration,
        step_minutes=step_minutes,
        is_fit_in=is_fit_in,
        now=now,
    )
