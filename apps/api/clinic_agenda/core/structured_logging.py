"""Structured logging helpers (PHI-safe)."""

from typing import Any


def build_log_context(
    *,
    doctor_id: str | None = None,
    clinic_id: str | None = None,
    appointment_id: str | None = None,
    window_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (never carries patient identifiers)."""
    context: dict[str, Any] = {}
    if doctor_id:
        context["doctor_id"] = str(doctor_id)
    if clinic_id:
        context["clinic_id"] = str(clinic_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if window_id:
        context["window_id"] = str(window_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
