"""
tests/conftest.py -- Shared test fixtures for postgate integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for users/posts + a memory session store
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - stores: the (user_store, post_store, session_store) triple used by the app
  - make_client: factory for TestClients with independent cookie jars, so a
    test can act as several users at once
  - client: a single anonymous TestClient

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The DEBUG env var must be set before any core/auth import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Callable, Generator
from contextlib import ExitStack, asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import MemorySessionStore
from auth.store import UserStore
from core.config import get_settings
from posts.store import PostStore

TEST_PASSWORD = "correct horse battery staple"


def memory_db_url(prefix: str = "test") -> str:
    """A fresh named shared-memory SQLite URL."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[UserStore, PostStore, MemorySessionStore]:
    db_url = memory_db_url("app")
    return UserStore(db_url), PostStore(db_url), MemorySessionStore(ttl=get_settings().session_ttl_seconds)


def _patch_lifespan(user_store: UserStore, post_store: PostStore, session_store: MemorySessionStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine standing in for the real
    purge loop (a real asyncio.Task is required; MagicMock would fail on
    .cancel()). Each TestClient runs its own lifespan, so each cancels its
    own task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.post_store = post_store
        app.state.session_store = session_store
        task = asyncio.create_task(asyncio.sleep(99999))
        app.state.purge_task = task
        yield
        task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[UserStore, PostStore, MemorySessionStore], None, None]:
    user_store, post_store, session_store = _make_test_stores()
    app.router.lifespan_context = _patch_lifespan(user_store, post_store, session_store)
    yield user_store, post_store, session_store
    post_store.close()
    user_store.close()


@pytest.fixture
def make_client(stores) -> Generator[Callable[[], TestClient], None, None]:
    """Yield a factory of started TestClients sharing one set of stores.

    Each client keeps its own cookie jar, i.e. its own session.
    """
    with ExitStack() as stack:

        def factory() -> TestClient:
            return stack.enter_context(TestClient(app, raise_server_exceptions=True))

        yield factory


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


# ---------------------------------------------------------------------------
# Helpers shared by route tests
# ---------------------------------------------------------------------------


def signup(client: TestClient, email: str, password: str = TEST_PASSWORD) -> dict:
    """POST /users and return the created user body; the client is now signed in."""
    resp = client.post("/users", json={"email": email, "password": password})
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()


def session_cookie(client: TestClient) -> str | None:
    return client.cookies.get(get_settings().session_cookie_name)
