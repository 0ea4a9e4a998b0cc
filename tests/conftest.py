"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other.

API tests build a full app against a file-backed SQLite database under
``tmp_path``: context lookups run in worker threads, each with its own
connection, which an in-memory database cannot share.
"""
from __future__ import annotations

import time
from pathlib import Path

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

TEST_DB_URL = "sqlite:///:memory:"
TEST_SESSION_SECRET = "test-session-secret-with-enough-bytes"
REPO_RBAC_CONFIG = Path(__file__).resolve().parents[1] / "config" / "rbac.yaml"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from permguard.db.base import Base
    from permguard.models import business, security  # noqa: F401  (register tables)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def rbac_config():
    from permguard.rbac import load_rbac_config

    return load_rbac_config(REPO_RBAC_CONFIG)


@pytest.fixture
def settings(tmp_path):
    from permguard.settings import Settings

    return Settings(
        db_url=f"sqlite:///{tmp_path / 'permguard-test.db'}",
        rbac_config_path=str(REPO_RBAC_CONFIG),
        session_secret=TEST_SESSION_SECRET,
        seed_demo_data=True,
        audit_sink="db",
    )


@pytest.fixture
def client(settings):
    from fastapi.testclient import TestClient

    from permguard.main import create_app

    with TestClient(create_app(settings)) as test_client:
        yield test_client


def make_session_token(uid: str, *, org_id: str | None = None, role_id: str | None = None, email: str | None = None,
                       secret: str = TEST_SESSION_SECRET, expires_in: int = 300) -> str:
    now = int(time.time())
    payload: dict[str, object] = {"uid": uid, "iat": now, "nbf": now - 10, "exp": now + expires_in}
    if org_id is not None:
        payload["org_id"] = org_id
    if role_id is not None:
        payload["role_id"] = role_id
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(uid: str, **claims) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_session_token(uid, **claims)}"}
