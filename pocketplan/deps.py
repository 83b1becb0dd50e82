# pocketplan/deps.py
# Role: Shared application-level dependencies.
#       Provides the Jinja2 templates loader, the standard SQLAlchemy session
#       dependency, the record store (SQL or in-memory demo), the auth session
#       registry, and the per-request user/data context.

"""
Shared dependencies for the PocketPlan API.
"""

import os
from typing import Generator, Optional

from fastapi import Depends, Header
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from db import SessionLocal
from pocketplan.config import Settings, get_settings
from pocketplan.services.auth import AuthSession, SessionRegistry
from pocketplan.services.data_context import DataContext
from pocketplan.services.errors import NotAuthenticatedError
from pocketplan.services.formatting import format_grouped, format_rupiah
from pocketplan.services.store import MemoryRecordStore, RecordStore, SqlRecordStore

# -------------------------------------------------------------------
# Templates
# -------------------------------------------------------------------

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

# Jinja2 templates loader (used by the HTML dashboard)
templates = Jinja2Templates(directory=TEMPLATES_DIR)
templates.env.filters["rupiah"] = format_rupiah
templates.env.filters["grouped"] = format_grouped

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Process-wide singletons
# -------------------------------------------------------------------

# Created on first use so the settings in effect at that point decide
# between the SQL store and the demo store.
_STORE: Optional[RecordStore] = None
_REGISTRY: Optional[SessionRegistry] = None


def get_store(settings: Settings = Depends(get_settings)) -> RecordStore:
    global _STORE
    if _STORE is None:
        _STORE = MemoryRecordStore() if settings.demo_mode else SqlRecordStore(SessionLocal)
    return _STORE


def get_registry(settings: Settings = Depends(get_settings)) -> SessionRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = SessionRegistry(ttl_seconds=settings.session_ttl_seconds)
    return _REGISTRY


# -------------------------------------------------------------------
# Auth
# -------------------------------------------------------------------

def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    token = authorization.replace("Bearer ", "", 1).strip()
    return token or None


def get_auth_session(
    token: Optional[str] = Depends(bearer_token),
    registry: SessionRegistry = Depends(get_registry),
) -> Optional[AuthSession]:
    return registry.get(token)


def require_auth_session(session: Optional[AuthSession] = Depends(get_auth_session)) -> AuthSession:
    if session is None:
        raise NotAuthenticatedError("Missing or invalid token")
    return session


def get_user_id(
    session: Optional[AuthSession] = Depends(get_auth_session),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Id of the user the request acts for.

    Signed-in requests use their session's user; in demo mode requests
    without a token act for the fixed demo user.
    """
    if session is not None and session.user is not None:
        return session.user.id
    if settings.demo_mode:
        return settings.demo_user_id
    raise NotAuthenticatedError("Missing or invalid token")


def get_data_context(
    user_id: str = Depends(get_user_id),
    store: RecordStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Generator[DataContext, None, None]:
    """Per-request DataContext, loaded before the route runs and torn down after."""
    ctx = DataContext(store=store, user_id=user_id, demo=settings.demo_mode).init()
    try:
        yield ctx
    finally:
        ctx.teardown()
