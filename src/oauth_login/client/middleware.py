"""
Session gate and request-scoped dependencies.

The gate resolves the ``session_id`` cookie of an incoming request into an
authenticated profile. It is called explicitly at the top of each protected
handler and never raises: every failure becomes the same redirect back into
the login flow.
"""

from typing import Union

from fastapi import HTTPException, Request
from fastapi.responses import RedirectResponse

from ..shared.logging_utils import ComponentType, OAuthLogger
from ..shared.oauth_models import Profile
from .errors import ConfigurationError
from .provider import OAuthProviderClient
from .session_store import SessionStore

logger = OAuthLogger(ComponentType.CLIENT)


def get_session_store(request: Request) -> SessionStore:
    """FastAPI dependency returning the application's session store."""
    return request.app.state.session_store


def get_oauth_client(request: Request) -> OAuthProviderClient:
    """
    FastAPI dependency returning the configured provider client.

    Raises:
        ConfigurationError: the client could not be built at startup
    """
    oauth_client = request.app.state.oauth_client
    if oauth_client is None:
        raise ConfigurationError(request.app.state.config_problems)
    return oauth_client


def get_provider_client(provider: str, request: Request) -> OAuthProviderClient:
    """
    FastAPI dependency for ``/oauth2/{provider}/...`` routes.

    Raises:
        HTTPException: 404 when ``provider`` is not the configured one
    """
    oauth_client = get_oauth_client(request)
    if provider != oauth_client.provider:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
    return oauth_client


async def resolve_profile(request: Request) -> Union[Profile, RedirectResponse]:
    """
    Authenticate a request by its session cookie.

    Returns:
        The session's profile, or a temporary redirect to the login route
        when the cookie is missing, the session is unknown, or the login
        has not completed. The three cases are indistinguishable to the
        caller.
    """
    oauth_client = get_oauth_client(request)
    store = get_session_store(request)
    redirect = RedirectResponse(oauth_client.config.login_path, status_code=307)

    session_id = request.cookies.get(oauth_client.config.cookie_policy.name)
    if not session_id:
        reason = "no_session_cookie"
    else:
        session = await store.get(session_id)
        if session is None:
            reason = "unknown_session"
        elif session.profile is None:
            reason = "pending_session"
        else:
            return session.profile.model_copy()

    logger.log_oauth_message(
        ComponentType.CLIENT, ComponentType.USER_BROWSER,
        "Session Gate Redirect",
        {
            "path": str(request.url.path),
            "reason": reason,
            "location": oauth_client.config.login_path
        }
    )
    return redirect
