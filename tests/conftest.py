"""
Shared fixtures: in-memory SQLite database, repository, index, engine
and an API client wired to the same database.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_JSON", "false")

from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from unit_availability.database import Base
from unit_availability import models  # noqa: F401
from unit_availability.services.availability_repository import AvailabilityRepository
from unit_availability.services.range_index import RangeQueryIndex
from unit_availability.services.availability_engine import AvailabilityEngine


DAY = date(2026, 3, 1)


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
def session_factory(sql_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=sql_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repository(db):
    # Small chunks so multi-chunk paths run in every bulk test
    return AvailabilityRepository(db, chunk_size=3)


@pytest.fixture
def index():
    return RangeQueryIndex()


@pytest.fixture
def availability_engine(db, index, repository):
    return AvailabilityEngine(db, index=index, repository=repository)


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from unit_availability.main import app
    from unit_availability.database import get_db
    from unit_availability.utils.dependencies import get_index
    from unit_availability.utils.rate_limiter import limiter

    api_index = RangeQueryIndex()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_index] = lambda: api_index
    limiter.enabled = False

    # No context manager: the lifespan would create tables on the configured DATABASE_URL
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
