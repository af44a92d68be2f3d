"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# hoodkeeper.api.deps validates JWT_SECRET at import time, so set a strong
# one before anything imports it.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from hoodkeeper.database.models import AppConfig, Base, District  # noqa: E402
from hoodkeeper.services.roster_client import RosterEntry  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Render PG JSONB as TEXT on SQLite (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


def run_async(coro):
    """Run an async coroutine in a fresh event loop (no pytest-asyncio)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every Hoodkeeper table.

    StaticPool keeps one shared connection so worker threads used by
    ``run_db`` see the same database.
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


def add_district(
    engine: Engine,
    district_id: str = "hood-1",
    *,
    name: str = "Sunny Acres",
    hood_id: str | None = "R100",
    leader_discord_id: str | None = None,
    coleader_discord_ids=None,
    leader: str | None = None,
) -> None:
    with Session(engine) as s:
        s.add(District(
            id=district_id,
            name=name,
            hood_id=hood_id,
            leader_discord_id=leader_discord_id,
            coleader_discord_ids=coleader_discord_ids if coleader_discord_ids is not None else [],
            leader=leader,
        ))
        s.commit()


def set_role_mapping(engine: Engine, coleader: str | None = None, elder: str | None = None) -> None:
    with Session(engine) as s:
        if coleader is not None:
            s.merge(AppConfig(key="coleader_role_id", value=coleader))
        if elder is not None:
            s.merge(AppConfig(key="elder_role_id", value=elder))
        s.commit()


class FakeRosterSource:
    """In-memory roster source keyed by role id.

    Set ``error`` to make every fetch raise it.  ``calls`` records role ids.
    """

    def __init__(self, rosters: dict[str, list[RosterEntry]] | None = None) -> None:
        self.rosters = rosters or {}
        self.error: Exception | None = None
        self.calls: list[str] = []

    async def fetch_roster(self, role_id: str) -> list[RosterEntry]:
        self.calls.append(role_id)
        if self.error is not None:
            raise self.error
        return list(self.rosters.get(role_id, []))


@pytest.fixture
def fake_source() -> FakeRosterSource:
    return FakeRosterSource()


@pytest.fixture
def client():
    """FastAPI TestClient with raise_server_exceptions=False."""
    from fastapi.testclient import TestClient

    from hoodkeeper.api.main import app

    return TestClient(app, raise_server_exceptions=False)


def make_token(sub: str = "99999", roles: list[str] | None = None, username: str = "Fixture") -> str:
    """Sign a principal JWT with the test secret."""
    import jwt

    from hoodkeeper.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "roles": roles or []},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
