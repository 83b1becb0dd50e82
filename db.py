# db.py
# Role: Database bootstrap for the PocketPlan API.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk SQLite directory exists before the app starts.

"""
Database setup for PocketPlan.

- URL comes from DATABASE_URL (see pocketplan/config.py); the default is
  a SQLite file at <project_root>/database/pocketplan.db
- The engine is created lazily by SQLAlchemy: nothing connects until the
  first session is used, so demo mode never touches the database.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from pocketplan.config import get_settings


def make_engine(database_url: str):
    """
    Create an engine for `database_url`.

    For file-backed SQLite we make sure the parent folder exists and allow
    cross-thread use (FastAPI runs sync routes in a threadpool).
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        _, sep, db_path = database_url.partition(":///")
        if sep and db_path and db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)

    return create_engine(database_url, connect_args=connect_args)


# Engine for the configured database
engine = make_engine(get_settings().database_url)

# Standard session factory used via dependency injection (see pocketplan/deps.py:get_db)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
