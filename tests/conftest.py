"""Pytest configuration: in-memory SQLite database, FastAPI TestClient and users of every role."""

from __future__ import annotations

import os
import tempfile
from typing import Generator

import pytest

# Override env BEFORE importing app modules so Settings picks up test values.
os.environ.update(
    {
        "SECRET_KEY": "test-secret-key-for-pytest",
        # base64 of a 32-byte AES key
        "APP_AES_KEY_BASE64": "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=",
        "DATABASE_URL": "sqlite:///:memory:",
        "STORAGE_DIR": tempfile.mkdtemp(prefix="crimesleuth-test-"),
        "ML_SERVER_URL": "http://ml.test",
        "LOG_LEVEL": "WARNING",
    }
)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from crimesleuth.app import app  # noqa: E402
from crimesleuth.core.security import create_access_token, get_password_hash  # noqa: E402
from crimesleuth.db import Base, get_db  # noqa: E402
import crimesleuth.models  # noqa: E402, F401
from crimesleuth.models.user import User, UserRole  # noqa: E402

PASSWORD = "TestPass123!"

# One shared connection so the app thread and the test see the same database
_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


_TestSession = sessionmaker(bind=_engine, autocommit=False, autoflush=False)

# Hashing is slow on purpose; hash the shared test password once
_PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(autouse=True)
def _create_tables():
    """Create all tables before each test and drop after."""
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    session = _TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """TestClient wired to the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as tc:
        yield tc
    app.dependency_overrides.clear()


@pytest.fixture()
def create_user(db: Session):
    """
    Factory fixture creating a user with sensible defaults::

        user = create_user(UserRole.ANALYST, name="Ana")
    """
    counter = 0

    def _factory(role: UserRole = UserRole.INVESTIGATOR, *, name: str | None = None, email: str | None = None) -> User:
        nonlocal counter
        counter += 1
        user = User(
            name=name or f"{role.value.title()} {counter}",
            email=email or f"{role.value}{counter}@example.com",
            role=role,
            password_hash=_PASSWORD_HASH,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _factory


@pytest.fixture()
def investigator(create_user) -> User:
    return create_user(UserRole.INVESTIGATOR, name="Ivy Investigator")


@pytest.fixture()
def analyst(create_user) -> User:
    return create_user(UserRole.ANALYST, name="Andy Analyst")


@pytest.fixture()
def supervisor(create_user) -> User:
    return create_user(UserRole.SUPERVISOR, name="Sam Supervisor")


@pytest.fixture()
def admin(create_user) -> User:
    return create_user(UserRole.ADMIN, name="Ada Admin")


def auth_header(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture()
def headers():
    """``headers(user)`` returns a bearer header for that user."""
    return auth_header


@pytest.fixture()
def password() -> str:
    """Plain-text password shared by every fixture user."""
    return PASSWORD
