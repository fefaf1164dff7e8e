"""
Test configuration and fixtures.

Provides:
- Database session on an in-memory SQLite engine (tables rebuilt per test)
- Clinic, doctor, services and a Monday-Friday work week
- HTTPX AsyncClient with the database dependency overridden
"""
import os
import uuid
from datetime import date, datetime, time, timedelta
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CLINIC_TIMEZONE"] = "America/Sao_Paulo"
os.environ["ENV"] = "test"
os.environ["SENTRY_DSN"] = ""

from clinic_agenda.main import app
from clinic_agenda.core.deps import get_db
from clinic_agenda.db.base import Base
from clinic_agenda.db.enums import AppointmentStatus
from clinic_agenda.db.models import Appointment, Clinic, Doctor, Service, WorkSchedule
from clinic_agenda.db.session import SessionLocal, engine
from clinic_agenda.utils.clinic_time import at_clinic_time, clinic_today


# =============================================================================
# Fixed calendar for service-level tests (2030-01-07 is a Monday)
# =============================================================================

MONDAY = date(2030, 1, 7)
TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)


def clinic_dt(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware datetime at a wall-clock time in the clinic timezone."""
    return at_clinic_time(day, time(hour, minute))


# Friday before MONDAY, well ahead of every slot used in tests
NOW = clinic_dt(MONDAY - timedelta(days=3), 8)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session on a fresh schema.

    App code commits freely; the schema is dropped after each test.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def clinic(db: Session) -> Clinic:
    clinic = Clinic(id=uuid.uuid4(), name="Clinica Central")
    db.add(clinic)
    db.commit()
    return clinic


@pytest.fixture(scope="function")
def doctor(db: Session, clinic: Clinic) -> Doctor:
    doctor = Doctor(id=uuid.uuid4(), clinic_id=clinic.id, name="Dra. Souza", blocked_weekdays=[])
    db.add(doctor)
    db.commit()
    return doctor


@pytest.fixture(scope="function")
def consultation(db: Session, clinic: Clinic) -> Service:
    """30-minute service."""
    service = Service(id=uuid.uuid4(), clinic_id=clinic.id, name="Consulta", duration_minutes=30)
    db.add(service)
    db.commit()
    return service


@pytest.fixture(scope="function")
def quick_service(db: Session, clinic: Clinic) -> Service:
    """15-minute service."""
    service = Service(id=uuid.uuid4(), clinic_id=clinic.id, name="Retorno", duration_minutes=15)
    db.add(service)
    db.commit()
    return service


@pytest.fixture(scope="function")
def work_week(db: Session, doctor: Doctor) -> list[WorkSchedule]:
    """Monday to Friday 08:00-18:00 with a 12:00-13:00 break."""
    rows = []
    for weekday in range(5):
        row = WorkSchedule(
            id=uuid.uuid4(),
            doctor_id=doctor.id,
            weekday=weekday,
            start_time=time(8, 0),
            end_time=time(18, 0),
            break_start=time(12, 0),
            break_end=time(13, 0),
        )
        db.add(row)
        rows.append(row)
    db.commit()
    return rows


@pytest.fixture(scope="function")
def make_appointment(db: Session, doctor: Doctor, consultation: Service) -> Callable[..., Appointment]:
    """Insert appointments directly into the ledger (no guards)."""

    def _make(
        start: datetime,
        duration_minutes: int = 30,
        status: str = AppointmentStatus.PENDING.value,
        is_fit_in: bool = False,
    ) -> Appointment:
        appointment = Appointment(
            id=uuid.uuid4(),
            doctor_id=doctor.id,
            patient_id=uuid.uuid4(),
            service_id=consultation.id,
            scheduled_start=start,
            scheduled_end=start + timedelta(minutes=duration_minutes),
            duration_minutes=duration_minutes,
            status=status,
            is_fit_in=is_fit_in,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make


@pytest.fixture(scope="function")
def future_monday() -> date:
    """A Monday at least one week after today, for tests that run against the real clock."""
    day = clinic_today() + timedelta(days=7)
    return day + timedelta(days=(7 - day.weekday()) % 7)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient bound to the test session.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
