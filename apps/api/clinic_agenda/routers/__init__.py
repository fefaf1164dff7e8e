"""API routers."""

from clinic_agenda.routers.appointments import router as appointments_router
from clinic_agenda.routers.availability import router as availability_router
from clinic_agenda.routers.schedules import router as schedules_router
from clinic_agenda.routers.unavailability import router as unavailability_router

__all__ = [
    "appointments_router",
    "availability_router",
    "schedules_router",
    "unavailability_router",
]
