"""
Pytest configuration and shared fixtures for the login flow tests.

Provides a test configuration pointing at a fake provider, a fresh
application per test, and a respx router standing in for the provider's
token and profile endpoints.
"""

import pytest
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any
from urllib.parse import parse_qs, urlparse

import httpx
import respx
from fastapi.testclient import TestClient

from oauth_login.client.config import load_config
from oauth_login.client.main import create_app
from oauth_login.client.session_store import SessionStore
from oauth_login.shared.crypto_utils import PKCEGenerator


AUTHORIZE_URL = "https://access.provider.test/oauth2/v2.1/authorize"
TOKEN_URL = "https://api.provider.test/oauth2/v2.1/token"
PROFILE_URL = "https://api.provider.test/v2/profile"
REDIRECT_URL = "http://testserver/oauth2/line/callback"

LOGIN_PATH = "/oauth2/line/login"
CALLBACK_PATH = "/oauth2/line/callback"
LOGOUT_PATH = "/oauth2/line/logout"

ALICE = {
    "userId": "U1",
    "displayName": "Alice",
    "pictureUrl": "http://x/p.png",
    "statusMessage": "hi"
}


def make_config(**overrides):
    """Build a client configuration that ignores the process environment's .env."""
    values = {
        "LINE_CHANNEL_ID": "1234567890",
        "LINE_CHANNEL_SECRET": "test-channel-secret",
        "LINE_API_AUTHORIZE": AUTHORIZE_URL,
        "LINE_API_TOKEN": TOKEN_URL,
        "LINE_API_PROFILE": PROFILE_URL,
        "REDIRECT_URL": REDIRECT_URL,
    }
    values.update(overrides)
    return load_config(_env_file=None, **values)


def start_login(client: TestClient) -> Dict[str, Any]:
    """Run the login route and return the pieces a test needs."""
    response = client.get(LOGIN_PATH)
    assert response.status_code == 307

    location = response.headers["location"]
    params = {key: values[0] for key, values in parse_qs(urlparse(location).query).items()}
    return {
        "response": response,
        "location": location,
        "params": params,
        "session_id": response.cookies.get("session_id"),
        "state": params["state"],
    }


def stored_session(store: SessionStore, session_id: str):
    """Read a session without going through the lock."""
    return store._sessions.get(session_id)


@pytest.fixture
def oauth_config():
    return make_config()


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore(ttl_seconds=3600)


@pytest.fixture
def app(oauth_config, session_store):
    return create_app(config=oauth_config, session_store=session_store)


@pytest.fixture
def client(app):
    """Test client that keeps one event loop and does not follow redirects."""
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def provider_mock():
    """respx router standing in for the identity provider."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def mock_access_token() -> str:
    return secrets.token_urlsafe(48)


@pytest.fixture
def provider_success(provider_mock, mock_access_token):
    """Provider that accepts any code and returns Alice's profile."""
    token_route = provider_mock.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={
        "access_token": mock_access_token,
        "token_type": "Bearer",
        "expires_in": 2592000,
        "scope": "profile openid",
        "refresh_token": "refresh-token-value",
        "id_token": "header.payload.signature"
    }))
    profile_route = provider_mock.get(PROFILE_URL).mock(return_value=httpx.Response(200, json=ALICE))
    return {"token": token_route, "profile": profile_route}


@pytest.fixture
def pkce_pair() -> tuple:
    """Generate a PKCE verifier and challenge pair for testing."""
    return PKCEGenerator.generate_challenge()


class MutableClock:
    """UTC clock starting at the real current time, advanced by hand."""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int):
        self.now += timedelta(seconds=seconds)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "security: marks tests as security-focused tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        elif "security" in item.nodeid or "error_handling" in item.nodeid:
            item.add_marker(pytest.mark.security)
        else:
            item.add_marker(pytest.mark.unit)
