"""
Integration tests for the complete login flow.

Drives the application the way a browser does (login, provider consent,
callback, protected resource, logout) against a respx stand-in for the
identity provider.
"""

import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from oauth_login.client.main import create_app
from oauth_login.client.session_store import AuthSession, SessionStore
from oauth_login.shared.crypto_utils import PKCEGenerator
from oauth_login.shared.oauth_models import Profile

from conftest import (
    ALICE,
    CALLBACK_PATH,
    LOGIN_PATH,
    LOGOUT_PATH,
    PROFILE_URL,
    TOKEN_URL,
    MutableClock,
    start_login,
    stored_session
)


class TestOAuthFlowIntegration:
    """Integration tests for the complete login flow."""

    def test_complete_flow(self, client, session_store, provider_success):
        """login -> callback -> /profile -> logout -> /profile redirects."""
        login = start_login(client)
        session_id = login["session_id"]
        verifier = stored_session(session_store, session_id).pkce_code_verifier
        assert PKCEGenerator.verify_challenge(verifier, login["params"]["code_challenge"])

        callback = client.get(CALLBACK_PATH, params={"code": "auth-code", "state": login["state"]})
        assert callback.status_code == 307
        assert callback.headers["location"] == "/profile"

        profile = client.get("/profile")
        assert profile.status_code == 200
        assert profile.json() == ALICE
        assert Profile.model_validate(profile.json()).to_wire() == ALICE

        logout = client.post(LOGOUT_PATH)
        assert logout.status_code == 200
        assert stored_session(session_store, session_id) is None

        # The browser may still present the old cookie; the server must not honor it
        client.cookies.set("session_id", session_id)
        after_logout = client.get("/profile")
        assert after_logout.status_code == 307
        assert after_logout.headers["location"] == LOGIN_PATH

    def test_failed_csrf_leaves_session_pending(self, client, session_store, provider_success):
        login = start_login(client)

        response = client.get(CALLBACK_PATH, params={"code": "auth-code", "state": "wrong"})
        assert response.status_code == 403
        assert response.json() == {"error": "csrf token mismatch"}
        assert stored_session(session_store, login["session_id"]).profile is None
        assert client.get("/profile").status_code == 307

        # The pending session can still complete with the right state
        retry = client.get(CALLBACK_PATH, params={"code": "auth-code", "state": login["state"]})
        assert retry.status_code == 307
        assert client.get("/profile").json() == ALICE

    def test_two_logins_from_one_browser(self, client, session_store, provider_success):
        first = start_login(client)
        second = start_login(client)

        assert first["session_id"] != second["session_id"]
        assert stored_session(session_store, first["session_id"]) is not None
        assert stored_session(session_store, second["session_id"]) is not None
        assert client.cookies.get("session_id") == second["session_id"]

        # Only the most recent attempt is reachable through the cookie
        stale = client.get(CALLBACK_PATH, params={"code": "auth-code", "state": first["state"]})
        assert stale.status_code == 403

        fresh = client.get(CALLBACK_PATH, params={"code": "auth-code", "state": second["state"]})
        assert fresh.status_code == 307
        assert stored_session(session_store, second["session_id"]).profile.to_wire() == ALICE

        # The earlier session stays in the store until removed
        assert stored_session(session_store, first["session_id"]).profile is None
        assert len(session_store) == 2

    def test_relogin_replaces_cookie_and_requires_new_callback(self, client, provider_success):
        login = start_login(client)
        client.get(CALLBACK_PATH, params={"code": "auth-code", "state": login["state"]})
        assert client.get("/profile").status_code == 200

        start_login(client)

        response = client.get("/profile")
        assert response.status_code == 307
        assert response.headers["location"] == LOGIN_PATH

    def test_session_ttl_expires_authenticated_session(self, oauth_config, provider_success):
        clock = MutableClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        with TestClient(create_app(config=oauth_config, session_store=store),
                        follow_redirects=False) as test_client:
            login = start_login(test_client)
            test_client.get(CALLBACK_PATH, params={"code": "auth-code", "state": login["state"]})
            assert test_client.get("/profile").status_code == 200

            clock.advance(61)

            assert test_client.get("/profile").status_code == 307


@pytest.mark.asyncio
async def test_logout_completes_while_token_exchange_is_pending(oauth_config, session_store):
    """The store is not locked while the callback waits on the provider."""
    app = create_app(config=oauth_config, session_store=session_store)
    exchange_started = asyncio.Event()
    finish_exchange = asyncio.Event()

    async def slow_token_endpoint(request):
        exchange_started.set()
        await finish_exchange.wait()
        return httpx.Response(200, json={"access_token": "token-value"})

    with respx.mock(assert_all_called=False) as provider:
        provider.post(TOKEN_URL).mock(side_effect=slow_token_endpoint)
        provider.get(PROFILE_URL).mock(return_value=httpx.Response(200, json=ALICE))

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app),
                                     base_url="http://testserver",
                                     follow_redirects=False) as browser:
            login = await browser.get(LOGIN_PATH)
            session_id = login.cookies["session_id"]
            state = parse_qs(urlparse(login.headers["location"]).query)["state"][0]

            callback = asyncio.create_task(
                browser.get(CALLBACK_PATH, params={"code": "auth-code", "state": state})
            )
            await asyncio.wait_for(exchange_started.wait(), 1)

            gate = await asyncio.wait_for(browser.get("/profile"), 1)
            logout = await asyncio.wait_for(browser.post(LOGOUT_PATH), 1)

            assert gate.status_code == 307
            assert logout.status_code == 200
            assert not callback.done()
            assert stored_session(session_store, session_id) is None

            finish_exchange.set()
            response = await asyncio.wait_for(callback, 1)

    # Logged out mid-flight: the profile is not attached and the session stays gone
    assert response.status_code == 401
    assert response.json() == {"error": "no session found in store"}
    assert stored_session(session_store, session_id) is None


@pytest.mark.asyncio
async def test_concurrent_callbacks_attach_profile_once():
    """Two racing callbacks for one session keep the first profile."""
    store = SessionStore()
    await store.create("S1", AuthSession(csrf_token="c", pkce_code_verifier="v"))
    first = Profile.model_validate(ALICE)
    second = Profile(user_id="U2", display_name="Bob")

    results = await asyncio.gather(
        store.attach_profile("S1", first),
        store.attach_profile("S1", second),
    )

    stored = (await store.get("S1")).profile
    assert stored == first
    assert all(result.profile == first for result in results)

