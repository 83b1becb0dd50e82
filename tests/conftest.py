"""Pytest configuration.

The app reads its settings from the environment at import time, so the test
environment is pinned here before any project module is imported: demo mode
(in-memory store), an in-memory SQLite URL so nothing is written under
./database, and English chart labels.

Each test gets fresh stores and a fresh session registry; the API client
fixture swaps them into the FastAPI app through dependency overrides.
"""

from __future__ import annotations

import os

os.environ["POCKETPLAN_DEMO_MODE"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["POCKETPLAN_LOCALE"] = "en"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import models  # noqa: E402,F401
from db import Base  # noqa: E402
from pocketplan.config import get_settings  # noqa: E402
from pocketplan.services.auth import AccountDirectory, SessionRegistry  # noqa: E402
from pocketplan.services.store import MemoryRecordStore, SqlRecordStore  # noqa: E402


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine) -> SqlRecordStore:
    return SqlRecordStore(sessionmaker(autocommit=False, autoflush=False, bind=sql_engine))


@pytest.fixture(params=["memory", "sql"])
def any_store(request, memory_store, sql_store):
    return memory_store if request.param == "memory" else sql_store


@pytest.fixture
def directory() -> AccountDirectory:
    return AccountDirectory()


@pytest.fixture
def registry(directory) -> SessionRegistry:
    return SessionRegistry(directory)


@pytest.fixture
def client(memory_store, registry):
    from main import app
    from pocketplan.deps import get_registry, get_store

    get_settings.cache_clear()
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
