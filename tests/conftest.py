# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets a fresh in-memory SQLite database (StaticPool, so the
#   service session and API sessions share one connection)
# - The API is exercised through FastAPI's TestClient with get_db overridden
# - API tokens are disabled unless a test patches them in
# ---------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")
os.environ["API_TOKENS"] = ""

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bizledger.database import Base, get_db  # noqa: E402
from bizledger.main import app  # noqa: E402
from bizledger.models import Client  # noqa: E402
from bizledger.shared.validators import utcnow  # noqa: E402


# ---------- Database ----------
@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- API ----------
@pytest.fixture()
def api(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ---------- Handy data ----------
@pytest.fixture()
def now():
    return utcnow()


@pytest.fixture()
def days(now):
    """days(n) -> timestamp n days from now (negative for the past)"""
    return lambda n: now + timedelta(days=n)


@pytest.fixture()
def make_client(db):
    def factory(full_name: str | None = "Ayla Demir", **fields) -> str:
        client = Client(full_name=full_name, **fields)
        db.add(client)
        db.commit()
        return client.id

    return factory


@pytest.fixture()
def client_id(make_client) -> str:
    return make_client()
