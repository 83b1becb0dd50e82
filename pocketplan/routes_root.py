# routes_root.py
"""
Root / basic endpoints (landing redirect, health).
"""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pocketplan.config import Settings, get_settings
from pocketplan.deps import get_db
from pocketplan.logging_setup import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/")
def read_root():
    """
    Landing endpoint: the dashboard is the home page.
    """
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/health")
def health(
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """
    Liveness probe. Reports whether the app runs in demo mode and, when a
    database is configured, whether it answers.
    """
    if settings.demo_mode:
        return {"ok": True, "demo_mode": True}

    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as e:
        logger.error("Health check could not reach the database: %r", e)
        database_ok = False

    return {"ok": database_ok, "demo_mode": False}
