"""
tests/conftest.py -- Shared test fixtures for the authentication gateway.

This module provides:
  - StubVerifier: a ProviderVerifier that accepts a fixed set of tokens
    without any network call
  - google_token / facebook_token: the tokens those stubs accept
  - config / store / providers / authenticator: unit-test building blocks
    backed by a private in-memory SQLite DB per test
  - _patch_lifespan(): wires test objects into app.state, bypassing real startup
  - api_client: TestClient against the real FastAPI app

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs `def` route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

The DEBUG env var must be set before any app import so get_settings()
auto-generates JWT_SECRET in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any core/api import so get_settings() can
# auto-generate JWT_SECRET in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import AuthConfig, Provider
from auth.providers import ProviderTokenError, ProviderTokenValidator
from auth.service import Authenticator
from auth.store import AccountStore

GOOD_GOOGLE_TOKEN = "google-valid-token"
GOOD_FACEBOOK_TOKEN = "facebook-valid-token"

TEST_SECRET = "test-signing-secret-0123456789abcdef"


class StubVerifier:
    """Accepts only the tokens it was given. Records every token it sees."""

    def __init__(self, provider: Provider, *valid_tokens: str) -> None:
        self.provider = provider
        self.valid_tokens = set(valid_tokens)
        self.seen: list[str] = []

    def verify(self, access_token: str) -> None:
        self.seen.append(access_token)
        if access_token not in self.valid_tokens:
            raise ProviderTokenError("rejected by stub")


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(
        jwt_secret=TEST_SECRET,
        jwt_issuer="test-issuer",
        jwt_audience="test-audience",
        google_token_audience="google-client-id",
        facebook_client_id="fb-client-id",
        facebook_client_secret="fb-client-secret",
    )


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def google_token() -> str:
    """A Google access token the stub verifiers accept."""
    return GOOD_GOOGLE_TOKEN


@pytest.fixture
def facebook_token() -> str:
    """A Facebook access token the stub verifiers accept."""
    return GOOD_FACEBOOK_TOKEN


@pytest.fixture
def providers() -> ProviderTokenValidator:
    return ProviderTokenValidator(
        [
            StubVerifier(Provider.GOOGLE, GOOD_GOOGLE_TOKEN),
            StubVerifier(Provider.FACEBOOK, GOOD_FACEBOOK_TOKEN),
        ]
    )


@pytest.fixture
def authenticator(store: AccountStore, config: AuthConfig, providers: ProviderTokenValidator) -> Authenticator:
    return Authenticator(store, config, provider_validator=providers)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, authenticator: Authenticator):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and an Authenticator with stub provider verifiers
    into app.state so no real DB file is opened and no provider is called.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.authenticator = authenticator
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, Authenticator], None, None]:
    """Yield (client, authenticator) for API integration tests.

    One client and one shared-memory DB per test module. The authenticator
    is returned so tests can decode the tokens the API hands out.
    """
    module_config = AuthConfig(
        jwt_secret=TEST_SECRET,
        jwt_issuer="test-issuer",
        jwt_audience="test-audience",
    )
    store = AccountStore(f"sqlite:///file:test_auth_api_{id(module_config)}?mode=memory&cache=shared&uri=true")
    validator = ProviderTokenValidator(
        [
            StubVerifier(Provider.GOOGLE, GOOD_GOOGLE_TOKEN),
            StubVerifier(Provider.FACEBOOK, GOOD_FACEBOOK_TOKEN),
        ]
    )
    authenticator = Authenticator(store, module_config, provider_validator=validator)

    app.router.lifespan_context = _patch_lifespan(store, authenticator)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, authenticator

    store.close()
