# pocketplan/config.py
# Role: Environment configuration for PocketPlan.
#       Reads .env (python-dotenv) once and exposes a cached Settings object.

"""
Configuration for the PocketPlan service.

Every knob is an environment variable (optionally set through a .env file):

- DATABASE_URL                    SQLAlchemy URL (default: SQLite under ./database)
- POCKETPLAN_DEMO_MODE            1/true → in-memory store, demo user without token
- POCKETPLAN_LOG_LEVEL            logging level name (default INFO)
- POCKETPLAN_LOCALE               label locale, "id" or "en" (default id)
- POCKETPLAN_DEFAULT_GRANULARITY  daily / weekly / monthly (default daily)
- POCKETPLAN_DEMO_USER_ID         user id used in demo mode (default demo-user)
- POCKETPLAN_SESSION_TTL_SECONDS  lifetime of a login token (default 43200, 12 hours)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

# Project root (one level above this package)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_DB_PATH = os.path.join(BASE_DIR, "database", "pocketplan.db")


def _env_truthy(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default)
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    try:
        return float(v) if v else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str
    demo_mode: bool
    log_level: str
    locale: str
    default_granularity: str
    demo_user_id: str
    session_ttl_seconds: float

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def load_settings() -> Settings:
    """Build a Settings object from the current environment (no caching)."""
    return Settings(
        database_url=os.getenv("DATABASE_URL") or f"sqlite:///{DEFAULT_DB_PATH}",
        demo_mode=_env_truthy("POCKETPLAN_DEMO_MODE", "0"),
        log_level=os.getenv("POCKETPLAN_LOG_LEVEL", "INFO"),
        locale=(os.getenv("POCKETPLAN_LOCALE") or "id").strip().lower(),
        default_granularity=(os.getenv("POCKETPLAN_DEFAULT_GRANULARITY") or "daily").strip().lower(),
        demo_user_id=os.getenv("POCKETPLAN_DEMO_USER_ID") or "demo-user",
        session_ttl_seconds=_env_float("POCKETPLAN_SESSION_TTL_SECONDS", 12 * 60 * 60),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings. Call get_settings.cache_clear() after changing the
    environment (tests do this through a fixture).
    """
    return load_settings()
