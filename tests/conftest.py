"""
tests/conftest.py -- Shared test fixtures for AuthLedger tests.

This module provides:
  - make_stores(): isolated in-memory SQLite stores for users + ledger
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus an admin JWT for API integration tests
  - stores / auth_config: plain in-memory stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the API fixtures because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread. Store-level unit tests stay on one thread and use
plain :memory:.

Environment variables must be set before any api/auth/core import so
get_settings() sees them: DEBUG auto-generates SECRET_KEY, BCRYPT_ROUNDS=4
keeps hashing fast, LOGIN_RATE_LIMIT is raised so scenario tests are not
throttled, and ALLOWED_HOSTS admits TestClient's "testserver" host.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.flow import AuthFlowController
from auth.store import UserStore
from auth.tokens import AuthConfig, create_access_token
from ledger.store import LedgerStore
from tests.helpers import ADMIN_EMAIL, ADMIN_PASSWORD, TEST_SECRET, register_payload


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(db_suffix: str | None = None) -> tuple[UserStore, LedgerStore]:
    """Create isolated stores.

    With db_suffix: named shared-memory databases visible to every thread in
    the process (needed behind TestClient). Without: plain :memory:.
    """
    if db_suffix is None:
        return UserStore("sqlite:///:memory:", bcrypt_rounds=4), LedgerStore("sqlite:///:memory:")
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    ledger_url = f"sqlite:///file:test_ledger_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(auth_url, bcrypt_rounds=4), LedgerStore(ledger_url)


def _patch_lifespan(user_store: UserStore, ledger: LedgerStore, config: AuthConfig):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.ledger = ledger
        app.state.auth_config = config
        app.state.controller = AuthFlowController(user_store, ledger, config)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(secret=TEST_SECRET, expires_in=3600)


@pytest.fixture
def stores() -> Generator[tuple[UserStore, LedgerStore], None, None]:
    user_store, ledger = make_stores()
    yield user_store, ledger
    user_store.close()
    ledger.close()


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """Per-route limits (60/minute on listings) share one in-memory counter store."""
    limiter.reset()


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, LedgerStore], None, None]:
    """Yield (client, admin_token, ledger) for API integration tests.

    One TestClient per test module, each with its own databases named after
    the module. An admin account exists before the client starts; its JWT is
    meant for Authorization headers.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, ledger = make_stores(suffix)
    config = AuthConfig(secret=TEST_SECRET, expires_in=3600)

    admin = user_store.create(
        register_payload(email=ADMIN_EMAIL, password=ADMIN_PASSWORD, first_name="Root", last_name="Admin"),
        role="admin",
    )
    token = create_access_token(config, admin.id, admin.email, admin.role)

    app.router.lifespan_context = _patch_lifespan(user_store, ledger, config)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, ledger

    user_store.close()
    ledger.close()
