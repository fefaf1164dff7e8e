"""Scheduling service exceptions.

Business-rule rejections of a slot are never raised: they come back as
ConflictVerdict values. These exceptions cover malformed input, missing
records and failing collaborators only.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base exception for scheduling service errors."""

    pass


class InvalidSchedulingInput(SchedulingError, ValueError):
    """Malformed input rejected before any slot guard runs."""

    pass


class NotFoundError(InvalidSchedulingInput):
    """Referenced record does not exist or is inactive."""

    pass


class DoctorNotFoundError(NotFoundError):
    """Doctor not found or inactive."""

    pass


class ServiceNotFoundError(NotFoundError):
    """Service not found or inactive."""

    pass


class AppointmentNotFoundError(NotFoundError):
    """Appointment not found."""

    pass


class UnavailabilityNotFoundError(NotFoundError):
    """Unavailability window not found or already deleted."""

    pass


class BreakExceptionNotFoundError(NotFoundError):
    """Break exception not found or already deleted."""

    pass


class CollaboratorUnavailable(SchedulingError):
    """Storage or directory lookup failed; no scheduling decision was made."""

    pass


class SlotAlreadyTakenError(SchedulingError):
    """The storage layer rejected a commit that overlaps another appointment."""

    pass


@contextmanager
def collaborator_call(operation: str, db: Session | None = None) -> Iterator[None]:
    """
    Translate storage failures into CollaboratorUnavailable (no retry).

    When a session is given, its pending transaction is rolled back so the
    caller can keep using it.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.warning("Storage failure during %s", operation, exc_info=True)
        if db is not None:
            db.rollback()
        raise CollaboratorUnavailable(f"Storage unavailable during {operation}") from exc
