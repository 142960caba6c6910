"""
tests/conftest.py -- Shared test fixtures for PostGate.

This module provides:
  - accounts / posts: in-memory SQLAlchemy stores for unit tests
  - redis_server + with_sessions: a fakeredis server and a runner that hands
    an async test body a SessionStore bound to the current event loop
  - make_account: creates an account through the real store (hashing included)
  - api: TestClient harness with a patched lifespan for integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are used
everywhere. TestClient runs sync route handlers in a thread pool, and the
async auth flows push account lookups through run_in_threadpool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Redis: every SessionStore is built inside the event loop that uses it. The
TestClient loop and the asyncio.run() loops used by assertions each get
their own fakeredis client, all pointing at one FakeServer so they see the
same keys.

Environment must be set before any core/auth import: DEBUG=true lets
Settings generate ephemeral RSA keys, COST_FACTOR=4 keeps bcrypt fast.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("COST_FACTOR", "4")
os.environ.setdefault("ENVIRONMENT", "development")

import fakeredis
import pytest
from fakeredis import aioredis as fake_aioredis
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Account
from auth.service import SessionIssuer
from auth.sessions import SessionStore
from auth.store import AccountStore
from posts.store import PostStore

PASSWORD = "longenough1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def shared_memory_url() -> str:
    return f"sqlite:///file:test_postgate_{uuid.uuid4().hex[:8]}?mode=memory&cache=shared&uri=true"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@x.com"


def new_session_store(server: fakeredis.FakeServer) -> SessionStore:
    """Build a SessionStore on the running loop, backed by the shared fake server."""
    return SessionStore(fake_aioredis.FakeRedis(server=server, decode_responses=True))


def run_with_sessions(server: fakeredis.FakeServer, body: Callable[[SessionStore], Awaitable[Any]]) -> Any:
    """Run body(sessions) to completion in a fresh event loop and return its result."""

    async def _main():
        sessions = new_session_store(server)
        try:
            return await body(sessions)
        finally:
            await sessions.close()

    return asyncio.run(_main())


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def accounts() -> Generator[AccountStore, None, None]:
    store = AccountStore(shared_memory_url())
    yield store
    store.close()


@pytest.fixture
def posts() -> Generator[PostStore, None, None]:
    store = PostStore(shared_memory_url())
    yield store
    store.close()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def with_sessions(redis_server: fakeredis.FakeServer):
    """Return a runner: with_sessions(async_fn) calls async_fn(sessions) and returns its result."""

    def _run(body: Callable[[SessionStore], Awaitable[Any]]) -> Any:
        return run_with_sessions(redis_server, body)

    return _run


@pytest.fixture
def make_account(accounts: AccountStore):
    """Factory creating accounts with the shared test password."""

    def _make(email: str | None = None, verified: bool = True, name: str = "Test User") -> Account:
        return accounts.create(
            {"name": name, "email": email or unique_email(), "password": PASSWORD, "verified": verified}
        )

    return _make


@pytest.fixture
def issuer_for(accounts: AccountStore):
    """Return a factory building a SessionIssuer around a given SessionStore."""

    def _build(sessions: SessionStore) -> SessionIssuer:
        return SessionIssuer(accounts, sessions)

    return _build


# ---------------------------------------------------------------------------
# API harness
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    accounts: AccountStore
    redis_server: fakeredis.FakeServer

    def register(self, email: str | None = None, password: str = PASSWORD) -> dict:
        email = email or unique_email()
        resp = self.client.post(
            "/api/v1/auth/register",
            json={"name": "Api User", "email": email, "password": password, "password_confirm": password},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["user"]

    def login(self, email: str, password: str = PASSWORD) -> str:
        resp = self.client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["access_token"]

    def sessions(self, body: Callable[[SessionStore], Awaitable[Any]]) -> Any:
        return run_with_sessions(self.redis_server, body)


def _patch_lifespan(accounts: AccountStore, posts: PostStore, server: fakeredis.FakeServer):
    """Return an async context manager that replaces the real lifespan.

    Wires test stores into app.state so TestClient routes see isolated
    in-memory databases and a fake Redis rather than real services.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        sessions = new_session_store(server)
        app.state.accounts = accounts
        app.state.posts = posts
        app.state.sessions = sessions
        app.state.issuer = SessionIssuer(accounts, sessions)
        yield
        await sessions.close()

    return test_lifespan


@pytest.fixture(scope="module")
def api_harness() -> Generator[ApiHarness, None, None]:
    """One TestClient per test module for speed."""
    db_url = shared_memory_url()
    accounts = AccountStore(db_url)
    posts = PostStore(db_url)
    server = fakeredis.FakeServer()

    app.router.lifespan_context = _patch_lifespan(accounts, posts, server)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, accounts=accounts, redis_server=server)

    posts.close()
    accounts.close()


@pytest.fixture
def api(api_harness: ApiHarness) -> ApiHarness:
    """Per-test view of the module harness with an empty cookie jar."""
    api_harness.client.cookies.clear()
    return api_harness
