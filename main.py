# main.py
# Role: Application entry point for PocketPlan.
#       Configures logging, creates database tables, registers error
#       handlers, and includes all route modules.

"""
Main FastAPI app for the PocketPlan personal finance tracker.

Here we only:
- configure logging
- create DB tables (skipped in demo mode, which keeps data in memory)
- map service errors to HTTP responses
- include route modules
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from db import Base, engine
from pocketplan.config import get_settings
from pocketplan.logging_setup import configure_logging, get_logger
from pocketplan.routes_auth import router as auth_router
from pocketplan.routes_dashboard import router as dashboard_router
from pocketplan.routes_goals import router as goals_router
from pocketplan.routes_root import router as root_router
from pocketplan.routes_transactions import router as transactions_router
from pocketplan.services.errors import (
    AuthError,
    EmailInUseError,
    NotFoundError,
    PersistenceError,
    PocketPlanError,
    ValidationError,
)

# Importing models registers the tables on Base.metadata
import models  # noqa: F401


# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

settings = get_settings()
configure_logging(settings.log_level)
logger = get_logger(__name__)

# Create database tables (only if they don't exist yet).
if not settings.demo_mode:
    Base.metadata.create_all(bind=engine)

# FastAPI application instance
app = FastAPI(title="PocketPlan")

logger.info("PocketPlan starting (demo_mode=%s)", settings.demo_mode)

# -------------------------------------------------------------------
# Error handling
# -------------------------------------------------------------------

# Most specific first: EmailInUseError is also an AuthError.
ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (EmailInUseError, 409),
    (AuthError, 401),
    (PersistenceError, 502),
)


def status_for(exc: PocketPlanError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@app.exception_handler(PocketPlanError)
async def pocketplan_error_handler(request: Request, exc: PocketPlanError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Root / health routes
app.include_router(root_router)

# Register, login, verification, profile
app.include_router(auth_router)

# Transactions list and create/update/delete
app.include_router(transactions_router)

# Saving goals
app.include_router(goals_router)

# Summary, chart series, base balance, HTML dashboard
app.include_router(dashboard_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
