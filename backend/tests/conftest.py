"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="parley-media-"))
os.environ["CACHE_URL"] = ""

from parley.core import security
from parley.core.security import get_password_hash
from parley.database import get_db
from parley.main import app
from parley.models import Base, User, UserRole
from parley.services import get_cache

security.pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@pytest.fixture(autouse=True)
def fresh_cache() -> Iterator[None]:
    """Give every test its own in-process cache (tokens, rate limit counters)."""

    get_cache.cache_clear()
    yield
    get_cache.cache_clear()


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    """Create users directly in the database."""

    def factory(
        name: str,
        *,
        email: str | None = None,
        password: str | None = "password123",
        role: UserRole = UserRole.USER,
    ) -> User:
        user = User(
            email=email or f"{name.lower()}@example.com",
            name=name,
            real_name=f"{name} Example",
            hashed_password=get_password_hash(password) if password else None,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return factory


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
