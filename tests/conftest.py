"""
tests/conftest.py -- Shared test fixtures for AdminDesk tests.

This module provides:
  - memory_url(): named shared-memory SQLite URI for one store
  - store / catalog / hasher: fresh per-test stores and a cheap bcrypt hasher
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin token for API integration tests
  - web_client: TestClient with follow_redirects=False for browser route tests

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: databases
are per-connection and would present a blank schema to each worker thread.

DEBUG and ALLOWED_HOSTS must be set before any core/auth import so
get_settings() auto-generates SECRET_KEY and accepts the TestClient host.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import CREDENTIALS_PROVIDER, Identity
from auth.store import IdentityStore
from auth.tokens import PasswordHasher, claims_from_identity, default_hasher, issue_session_token
from catalog.store import CatalogStore
from core.limiter import limiter

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"

# Route tests sign in far more often than LOGIN_RATE_LIMIT allows.
limiter.enabled = False


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    """bcrypt at the minimum cost so unit tests stay fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> Generator[IdentityStore, None, None]:
    s = IdentityStore(memory_url(f"identities_{uuid.uuid4().hex}"))
    yield s
    s.close()


@pytest.fixture
def catalog() -> Generator[CatalogStore, None, None]:
    c = CatalogStore(memory_url(f"catalog_{uuid.uuid4().hex}"))
    yield c
    c.close()


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[IdentityStore, CatalogStore]:
    """Create isolated stores so test modules never share state."""
    identity_store = IdentityStore(memory_url(f"test_identities_{db_suffix}"))
    catalog = CatalogStore(memory_url(f"test_catalog_{db_suffix}"))
    return identity_store, catalog


def _patch_lifespan(identity_store: IdentityStore, catalog: CatalogStore):
    """Return a lifespan that wires the test stores into app.state.

    The OAuth registry is a MagicMock so no test reaches a real provider.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.identity_store = identity_store
        app.state.catalog = catalog
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


def _create_admin(identity_store: IdentityStore) -> Identity:
    return identity_store.create_identity(
        Identity(
            email=ADMIN_EMAIL,
            first_name="Test",
            last_name="Admin",
            display_name="Test Admin",
            password_hash=default_hasher.hash(ADMIN_PASSWORD),
            provider=CREDENTIALS_PROVIDER,
            is_admin=True,
        )
    )


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    One admin identity exists before the client starts. Its token is meant
    for Authorization headers; tests that sign in through the client clear
    client.cookies afterwards so later tests start anonymous.
    """
    identity_store, catalog = _make_test_stores(f"api_{uuid.uuid4().hex}")
    admin = _create_admin(identity_store)
    token = issue_session_token(claims_from_identity(admin), expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(identity_store, catalog)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    identity_store.close()
    catalog.close()


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, str, IdentityStore], None, None]:
    """Yield (client, admin_token, identity_store) for browser route tests.

    follow_redirects=False: the tests assert on redirect locations, which are
    invisible once the client follows them.
    """
    identity_store, catalog = _make_test_stores(f"web_{uuid.uuid4().hex}")
    admin = _create_admin(identity_store)
    token = issue_session_token(claims_from_identity(admin), expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(identity_store, catalog)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, token, identity_store

    identity_store.close()
    catalog.close()
