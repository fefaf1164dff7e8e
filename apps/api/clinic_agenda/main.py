"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from clinic_agenda.core.config import settings
from clinic_agenda.core.structured_logging import build_log_context
from clinic_agenda.db.session import engine
from clinic_agenda.services.errors import CollaboratorUnavailable, SlotAlreadyTakenError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Patient data never leaves the service
    )
    logging.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Clinic Agenda API",
    description="Availability and scheduling conflict engine for clinic appointments",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(CollaboratorUnavailable)
async def collaborator_unavailable_handler(request: Request, exc: CollaboratorUnavailable):
    """Storage failed mid-request: no scheduling decision was made, the client may retry."""
    logger.warning(
        "Request failed on unavailable collaborator: %s",
        exc,
        extra=build_log_context(
            request_id=request.headers.get("X-Request-ID"),
            route=request.url.path,
            method=request.method,
        ),
    )
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(SlotAlreadyTakenError)
async def slot_already_taken_handler(request: Request, exc: SlotAlreadyTakenError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ============================================================================
# Routers
# ============================================================================

from clinic_agenda.routers import appointments, availability, schedules, unavailability

app.include_router(schedules.router, tags=["schedules"])  # Mixed paths: /doctors, /clinics, /break-exceptions
app.include_router(availability.router, tags=["availability"])
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
app.include_router(unavailability.router, prefix="/unavailability", tags=["unavailability"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
