"""Baseline migration - clinic directory, schedules, unavailability and appointments

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates every scheduling table plus the appointment exclusion constraint:
at most one non-cancelled, non-fit-in appointment per doctor may cover any
instant, so the second of two racing bookings fails on commit.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create scheduling tables."""

    # ==========================================================================
    # Enable required extensions
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')    # For gen_random_uuid()
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')  # For uuid equality in EXCLUDE

    # ==========================================================================
    # Directory
    # ==========================================================================
    op.execute('''
        CREATE TABLE clinics (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE doctors (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            clinic_id UUID NOT NULL REFERENCES clinics(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            blocked_weekdays JSON NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_doctors_clinic ON doctors(clinic_id, is_active)')

    op.execute('''
        CREATE TABLE services (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            clinic_id UUID NOT NULL REFERENCES clinics(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            duration_minutes INTEGER NOT NULL DEFAULT 30,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_service_duration_positive CHECK (duration_minutes > 0)
        )
    ''')
    op.execute('CREATE INDEX idx_services_clinic ON services(clinic_id, is_active)')

    # ==========================================================================
    # Work schedules (Monday=0 ... Sunday=6)
    # ==========================================================================
    op.execute('''
        CREATE TABLE work_schedules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            doctor_id UUID NOT NULL REFERENCES doctors(id) ON DELETE CASCADE,
            weekday INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            start_time TIME NOT NULL,
            end_time TIME NOT NULL,
            break_start TIME,
            break_end TIME,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_work_schedule_weekday UNIQUE (doctor_id, weekday),
            CONSTRAINT ck_valid_weekday CHECK (weekday >= 0 AND weekday <= 6)
        )
    ''')
    op.execute('CREATE INDEX idx_work_schedules_doctor ON work_schedules(doctor_id)')

    # ==========================================================================
    # Break exceptions
    # ==========================================================================
    op.execute('''
        CREATE TABLE break_exceptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            doctor_id UUID REFERENCES doctors(id) ON DELETE CASCADE,
            clinic_id UUID REFERENCES clinics(id) ON DELETE CASCADE,
            exception_date DATE NOT NULL,
            break_start TIME NOT NULL,
            break_end TIME NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
            CONSTRAINT ck_break_exception_single_owner CHECK ((doctor_id IS NULL) <> (clinic_id IS NULL)),
            CONSTRAINT ck_break_exception_window CHECK (break_start < break_end)
        )
    ''')
    op.execute('CREATE INDEX idx_break_exceptions_doctor_date ON break_exceptions(doctor_id, exception_date)')
    op.execute('CREATE INDEX idx_break_exceptions_clinic_date ON break_exceptions(clinic_id, exception_date)')

    # ==========================================================================
    # Unavailability windows
    # ==========================================================================
    op.execute('''
        CREATE TABLE unavailability_windows (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            doctor_id UUID NOT NULL REFERENCES doctors(id) ON DELETE CASCADE,
            starts_at TIMESTAMPTZ NOT NULL,
            ends_at TIMESTAMPTZ NOT NULL,
            reason VARCHAR(255),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_unavailability_window CHECK (starts_at < ends_at)
        )
    ''')
    op.execute('''
        CREATE INDEX idx_unavailability_doctor
        ON unavailability_windows(doctor_id, is_active, starts_at)
    ''')

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.execute('''
        CREATE TABLE appointments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            doctor_id UUID NOT NULL REFERENCES doctors(id) ON DELETE CASCADE,
            patient_id UUID NOT NULL,
            service_id UUID NOT NULL REFERENCES services(id) ON DELETE RESTRICT,
            scheduled_start TIMESTAMPTZ NOT NULL,
            scheduled_end TIMESTAMPTZ NOT NULL,
            duration_minutes INTEGER NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            is_fit_in BOOLEAN NOT NULL DEFAULT false,
            fit_in_confirmed_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            cancellation_reason TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_appointment_duration_positive CHECK (duration_minutes > 0),
            CONSTRAINT ck_appointment_window CHECK (scheduled_start < scheduled_end)
        )
    ''')
    op.execute('CREATE INDEX idx_appointments_doctor_start ON appointments(doctor_id, scheduled_start)')
    op.execute('CREATE INDEX idx_appointments_status ON appointments(status)')

    # Fit-ins are allowed to overlap; cancelled rows no longer occupy the agenda
    op.execute('''
        ALTER TABLE appointments
        ADD CONSTRAINT ex_appointments_doctor_overlap
        EXCLUDE USING gist (
            doctor_id WITH =,
            tstzrange(scheduled_start, scheduled_end, '[)') WITH &&
        )
        WHERE (status <> 'cancelled' AND NOT is_fit_in)
    ''')


def downgrade() -> None:
    """Drop all scheduling tables."""

    # Drop tables in reverse order (respecting foreign keys)
    op.execute('DROP TABLE IF EXISTS appointments')
    op.execute('DROP TABLE IF EXISTS unavailability_windows')
    op.execute('DROP TABLE IF EXISTS break_exceptions')
    op.execute('DROP TABLE IF EXISTS work_schedules')
    op.execute('DROP TABLE IF EXISTS services')
    op.execute('DROP TABLE IF EXISTS doctors')
    op.execute('DROP TABLE IF EXISTS clinics')
