"""
OAuth Client Routes

Route handlers for the login flow: login initiation, provider callback,
logout, and the profile resource behind the session gate.
"""

from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from ..shared.crypto_utils import PKCEGenerator, constant_time_compare, generate_session_id
from ..shared.logging_utils import ComponentType, OAuthLogger
from ..shared.oauth_models import Profile
from .errors import AuthError, AuthErrorKind
from .middleware import get_provider_client, get_session_store, resolve_profile
from .provider import OAuthProviderClient
from .session_store import AuthSession, SessionStore

PROFILE_PATH = "/profile"

router = APIRouter()
logger = OAuthLogger(ComponentType.CLIENT)


@router.get(PROFILE_PATH, response_model=Profile)
async def get_profile(request: Request):
    """Return the authenticated user's profile, or redirect to login."""
    return await resolve_profile(request)


@router.get("/oauth2/{provider}/login")
async def login(
    oauth_client: OAuthProviderClient = Depends(get_provider_client),
    store: SessionStore = Depends(get_session_store),
):
    """
    Start a login attempt.

    Creates a fresh pending session holding the CSRF state and PKCE
    verifier, sets its id as the ``session_id`` cookie, and redirects the
    browser to the provider's consent page.
    """
    session_id = generate_session_id()
    verifier, challenge = PKCEGenerator.generate_challenge()
    csrf_token = PKCEGenerator.generate_state_parameter()

    logger.log_pkce_operation("generation", {
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "verifier_length": len(verifier)
    })

    authorization_url = oauth_client.authorization_url(csrf_token, challenge)

    await store.create(session_id, AuthSession(
        csrf_token=csrf_token,
        pkce_code_verifier=verifier,
    ))

    logger.log_oauth_message(
        ComponentType.CLIENT, ComponentType.USER_BROWSER,
        "OAuth Flow Initiation",
        {
            "provider": oauth_client.provider,
            "client_id": oauth_client.config.client_id,
            "redirect_uri": oauth_client.config.redirect_url,
            "scope": oauth_client.config.scopes,
            "state": csrf_token,
            "session_id": session_id,
            "authorization_endpoint": urlunsplit(urlsplit(authorization_url)[:3] + ("", ""))
        }
    )

    response = RedirectResponse(authorization_url, status_code=307)
    oauth_client.config.cookie_policy.set_on(response, session_id)
    return response


@router.get("/oauth2/{provider}/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    oauth_client: OAuthProviderClient = Depends(get_provider_client),
    store: SessionStore = Depends(get_session_store),
):
    """
    Complete a login attempt.

    The CSRF state is checked before anything is sent to the provider.
    The store lock is not held across the token exchange or profile fetch.
    """
    logger.log_oauth_message(
        ComponentType.PROVIDER, ComponentType.CLIENT,
        "Authorization Callback Received",
        {
            "code": code,
            "state": state,
            "error": error,
            "error_description": error_description
        }
    )

    session_id = request.cookies.get(oauth_client.config.cookie_policy.name)
    if not session_id:
        raise AuthError(AuthErrorKind.NO_SESSION_FROM_COOKIE)

    session = await store.get(session_id)
    if session is None:
        raise AuthError(AuthErrorKind.NO_SESSION_IN_STORE, f"session {session_id[:8]}...")

    if not state or not constant_time_compare(session.csrf_token, state):
        logger.log_oauth_message(
            ComponentType.CLIENT, ComponentType.CLIENT,
            "State Validation Failed",
            {
                "received_state": state,
                "session_id": session_id,
                "security_risk": "Possible CSRF attack"
            },
            success=False
        )
        raise AuthError(AuthErrorKind.CSRF_TOKEN_MISMATCH)

    if error:
        raise AuthError(AuthErrorKind.AUTHORIZATION_DENIED, f"{error}: {error_description}")

    if not code:
        raise AuthError(AuthErrorKind.MISSING_AUTHORIZATION_CODE)

    token = await oauth_client.exchange_code(code, session.pkce_code_verifier)
    profile = await oauth_client.fetch_profile(token.access_token)

    if await store.attach_profile(session_id, profile) is None:
        # Logged out or expired while the provider calls were in flight
        raise AuthError(AuthErrorKind.NO_SESSION_IN_STORE, "session removed during callback")

    logger.log_oauth_message(
        ComponentType.CLIENT, ComponentType.USER_BROWSER,
        "Login Complete",
        {
            "user_id": profile.user_id,
            "session_id": session_id,
            "redirect": PROFILE_PATH
        }
    )
    return RedirectResponse(PROFILE_PATH, status_code=307)


@router.post("/oauth2/{provider}/logout")
async def logout(
    request: Request,
    oauth_client: OAuthProviderClient = Depends(get_provider_client),
    store: SessionStore = Depends(get_session_store),
):
    """Remove the caller's session and expire its cookie."""
    cookie_policy = oauth_client.config.cookie_policy
    session_id = request.cookies.get(cookie_policy.name)

    removed = False
    if session_id:
        removed = await store.remove(session_id)

    logger.log_oauth_message(
        ComponentType.USER_BROWSER, ComponentType.CLIENT,
        "Logout",
        {
            "session_cookie_present": session_id is not None,
            "session_removed": removed
        }
    )

    response = Response(status_code=200)
    cookie_policy.clear_on(response)
    return response
