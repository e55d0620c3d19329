"""
tests/conftest.py -- Shared test fixtures for the login service.

This module provides:
  - make_store(): isolated named shared-memory SQLite AccountStore
  - FakeClock: controllable clock for SessionManager expiry tests
  - store / sessions / hasher / service: unit-level collaborators
  - api_client: TestClient on the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

BCRYPT_ROUNDS must be set before any app import so get_settings() picks up
the cheap cost factor and the suite does not spend seconds in bcrypt.
"""

from __future__ import annotations

import asyncio
import itertools
import os
import time
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before importing core/auth/api so the Settings singleton sees them.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECURE_COOKIES", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.service import AccountService
from auth.sessions import SessionManager
from auth.store import AccountStore

_db_counter = itertools.count()

# One hasher for the whole session: construction runs bcrypt once for the
# timing-equalization dummy hash.
_HASHER = PasswordHasher(rounds=4)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_store(name: str) -> AccountStore:
    """Create an isolated named shared-memory store.

    A counter suffix keeps every call unique, so two tests never see each
    other's rows even when they pass the same name.
    """
    url = f"sqlite:///file:test_{name}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"
    return AccountStore(url)


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _patch_lifespan(service: AccountService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test collaborators into app.state so TestClient
    routes hit isolated stores. The sweep task is a long-sleeping coroutine
    so shutdown has a real asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = service.store
        app.state.sessions = service.sessions
        app.state.account_service = service
        app.state.started_at = time.monotonic()
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    return _HASHER


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = make_store("unit")
    yield s
    s.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(clock: FakeClock) -> SessionManager:
    return SessionManager(ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def service(store: AccountStore, sessions: SessionManager, hasher: PasswordHasher) -> AccountService:
    return AccountService(store, sessions, hasher)


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test function for isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def api_client(service: AccountService) -> Generator[TestClient, None, None]:
    """Yield a TestClient bound to the real app with isolated collaborators.

    Function-scoped: cookie jars and account rows never leak between tests.
    The service's SessionManager runs on the FakeClock from the `clock`
    fixture, so tests can request it alongside api_client to move time.
    """
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
