import os

# Settings are read at import time, so these must be set before any app import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_SECRET"] = "test-admin-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.models import Base
from database.session import get_db

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-secret"}

AGENT_KEY = "TpuMgv7zP0S6CiGuUjqUx0xVW/mi1WX/bASrXGp9dgU="
AGENT_KEY_2 = "8r9acCRpO88m69aYS2+r3lXl4U7eSqPKD4bZDo/vvvU="
GATEWAY_KEY = "/ry2U1KKvVSvhfr2yGbMT57Auqes47MOhJAy0vKignA="
GATEWAY_KEY_2 = "Yem26UXso+RgSANkryr/PYCwAcprmYGu3+rGK/S9Ln0="


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    from main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
