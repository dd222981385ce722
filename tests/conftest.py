"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of quizmize.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from quizmize.database.models import Account, Base  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


# Helper to run async code without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Quizmize tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_account(
    engine: Engine,
    email: str = "alice@quizmize.io",
    full_name: str = "Alice",
    *,
    is_admin: bool = False,
    xp: int = 0,
    level: int = 1,
) -> int:
    """Insert an account directly (no password hashing) and return its id."""
    with Session(engine) as session:
        account = Account(
            email=email,
            password_hash="x",
            full_name=full_name,
            is_admin=is_admin,
            xp=xp,
            level=level,
            total_xp=0,
        )
        session.add(account)
        session.commit()
        return account.id


def make_token(account_id: int) -> str:
    from quizmize.api.deps import create_token

    return create_token(account_id)


def auth(account_id: int) -> dict:
    return {"Authorization": f"Bearer {make_token(account_id)}"}


@pytest.fixture
def hub():
    from quizmize.realtime.hub import RealtimeHub

    return RealtimeHub()


@pytest.fixture
def client(db_engine, hub):
    """A TestClient wired to the in-memory engine and a private hub."""
    from fastapi.testclient import TestClient

    from quizmize.api.deps import get_config, get_engine, get_realtime_hub
    from quizmize.api.main import app
    from quizmize.config import default_config

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_realtime_hub] = lambda: hub
    app.dependency_overrides[get_config] = default_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
