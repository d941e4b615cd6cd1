"""
tests/conftest.py -- Shared test fixtures for InvoiceDesk integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory DB shared by the user and invoice stores
  - _patch_lifespan(): wires test stores and services into app.state
  - api_client: TestClient with a JWT for API integration tests
  - web_client: TestClient with follow_redirects=False for web route tests

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.

DEBUG and ALLOWED_HOSTS must be set before any app import: get_settings()
is read at import time by auth.tokens and api.main.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set before any auth/core import so get_settings() auto-generates SECRET_KEY
# and TrustedHostMiddleware accepts TestClient's "testserver" host.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from cache.store import ViewCache
from invoices.actions import InvoiceActions
from invoices.models import Customer
from invoices.store import InvoiceStore

# Mount the web router once; guard against the already-included case if
# conftest is imported more than once in the same session.
try:
    from web.routes import router as web_router

    if not any(getattr(r, "path", None) == "/login" for r in app.router.routes):
        app.include_router(web_router, tags=["Web UI"])
except ImportError:
    pass

TEST_EMAIL = "user@nextmail.com"
TEST_PASSWORD = "123456"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, InvoiceStore, ViewCache]:
    """Create stores over one named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web').
    """
    url = f"sqlite:///file:test_invoicedesk_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), InvoiceStore(db_url=url), ViewCache(":memory:")


def _seed(user_store: UserStore, invoice_store: InvoiceStore) -> dict:
    """Create the login user and two customers. Returns their ids."""
    user_id = user_store.create_user(
        User(name="User", email=TEST_EMAIL, hashed_password=hash_password(TEST_PASSWORD))
    )
    acme = invoice_store.create_customer(Customer(name="Acme Corp", email="billing@acme.test"))
    globex = invoice_store.create_customer(Customer(name="Globex", email="ap@globex.test"))
    return {"user_id": user_id, "customer_id": acme, "other_customer_id": globex}


def _patch_lifespan(user_store: UserStore, invoice_store: InvoiceStore, view_cache: ViewCache):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine; a real asyncio.Task is
    required because shutdown calls .cancel() on it.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.auth_service = AuthService(user_store, min_password_length=6)
        app.state.invoice_store = invoice_store
        app.state.view_cache = view_cache
        app.state.invoice_actions = InvoiceActions(invoice_store, view_cache)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, dict], None, None]:
    """Yield (client, token, seed) for API integration tests.

    seed holds user_id, customer_id, other_customer_id, invoice_store and
    view_cache so tests can arrange data directly.
    """
    user_store, invoice_store, view_cache = _make_test_stores("api")
    seed = _seed(user_store, invoice_store)
    seed["invoice_store"] = invoice_store
    seed["view_cache"] = view_cache
    token = create_access_token(user_id=seed["user_id"], email=TEST_EMAIL, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, invoice_store, view_cache)
    # Rate-limit counters are process-wide; start each module from zero.
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, seed

    view_cache.close()
    invoice_store.close()
    user_store.close()


@pytest.fixture(scope="module")
def web_client() -> Generator[tuple[TestClient, str, dict], None, None]:
    """Yield (client, token, seed) for web route integration tests.

    follow_redirects=False is essential: tests assert on redirect locations,
    which are invisible once the client follows the redirect.
    """
    user_store, invoice_store, view_cache = _make_test_stores("web")
    seed = _seed(user_store, invoice_store)
    seed["invoice_store"] = invoice_store
    seed["view_cache"] = view_cache
    token = create_access_token(user_id=seed["user_id"], email=TEST_EMAIL, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, invoice_store, view_cache)
    # Rate-limit counters are process-wide; start each module from zero.
    limiter.reset()

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, token, seed

    view_cache.close()
    invoice_store.close()
    user_store.close()
