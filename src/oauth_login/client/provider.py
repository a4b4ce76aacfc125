"""
Identity provider client.

Builds the authorization URL and performs the two server-to-server calls of
the callback: the authorization code exchange and the profile fetch.
"""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from ..shared.logging_utils import ComponentType, OAuthLogger
from ..shared.oauth_models import AuthorizationRequest, Profile, TokenRequest, TokenResponse
from .config import OAuthClientConfig
from .errors import AuthError, AuthErrorKind

logger = OAuthLogger(ComponentType.CLIENT)


class OAuthProviderClient:
    """
    Reusable client descriptor for one identity provider.

    Every outbound request uses a fresh ``httpx.AsyncClient`` that does not
    follow redirects (a redirect on the token endpoint would let the
    provider's response steer this server to arbitrary URLs) and that
    enforces the configured timeout.

    Args:
        config: provider endpoints and credentials
        transport: optional httpx transport, used by tests to stand in for
            the provider
    """

    def __init__(self,
                 config: OAuthClientConfig,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def provider(self) -> str:
        return self.config.provider

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=False,
            timeout=httpx.Timeout(self.config.provider_timeout_seconds),
            transport=self._transport,
        )

    def authorization_url(self, state: str, code_challenge: str) -> str:
        """
        Build the provider consent URL for a new login attempt.

        Query parameters already present on the configured authorize URL
        are kept.
        """
        auth_request = AuthorizationRequest(
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_url,
            scope=self.config.scopes,
            state=state,
            code_challenge=code_challenge,
        )

        parts = urlsplit(self.config.authorize_url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        query.extend(auth_request.to_query_params().items())
        return urlunsplit(parts._replace(query=urlencode(query)))

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResponse:
        """
        Exchange an authorization code for an access token.

        Raises:
            AuthError: FETCH_TOKEN_FAILED on transport, HTTP or decode errors
        """
        token_request = TokenRequest(
            code=code,
            redirect_uri=self.config.redirect_url,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            code_verifier=code_verifier,
        )

        logger.log_oauth_message(
            ComponentType.CLIENT, ComponentType.PROVIDER,
            "Token Exchange Request",
            {
                "grant_type": token_request.grant_type,
                "code": code,
                "redirect_uri": token_request.redirect_uri,
                "client_id": token_request.client_id,
                "code_verifier": code_verifier,
                "endpoint": self.config.token_url
            }
        )

        try:
            async with self._http_client() as client:
                response = await client.post(
                    self.config.token_url,
                    data=token_request.to_form(),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.log_error("token_exchange_transport", str(e), {
                "endpoint": self.config.token_url
            })
            raise AuthError(AuthErrorKind.FETCH_TOKEN_FAILED, str(e)) from e

        if not response.is_success:
            logger.log_oauth_message(
                ComponentType.PROVIDER, ComponentType.CLIENT,
                "Token Exchange Failed",
                {
                    "status_code": response.status_code,
                    "body": response.text[:200]
                },
                success=False
            )
            raise AuthError(
                AuthErrorKind.FETCH_TOKEN_FAILED,
                f"token endpoint returned {response.status_code}"
            )

        try:
            token = TokenResponse.model_validate(response.json())
        except ValueError as e:
            logger.log_error("token_response_invalid", str(e))
            raise AuthError(AuthErrorKind.FETCH_TOKEN_FAILED, "malformed token response") from e

        logger.log_oauth_message(
            ComponentType.PROVIDER, ComponentType.CLIENT,
            "Token Exchange Success",
            {
                "access_token": token.access_token,
                "token_type": token.token_type,
                "expires_in": token.expires_in,
                "scope": token.scope
            }
        )
        return token

    async def fetch_profile(self, access_token: str) -> Profile:
        """
        Fetch the user profile with the access token as bearer credential.

        Raises:
            AuthError: FETCH_PROFILE_FAILED on transport, HTTP or decode errors
        """
        logger.log_oauth_message(
            ComponentType.CLIENT, ComponentType.PROVIDER,
            "Profile Request",
            {
                "endpoint": self.config.profile_url,
                "method": "GET",
                "authorization": f"Bearer {access_token[:10]}..."
            }
        )

        try:
            async with self._http_client() as client:
                response = await client.get(
                    self.config.profile_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            logger.log_error("profile_fetch_transport", str(e), {
                "endpoint": self.config.profile_url
            })
            raise AuthError(AuthErrorKind.FETCH_PROFILE_FAILED, str(e)) from e

        if not response.is_success:
            logger.log_oauth_message(
                ComponentType.PROVIDER, ComponentType.CLIENT,
                "Profile Request Failed",
                {"status_code": response.status_code},
                success=False
            )
            raise AuthError(
                AuthErrorKind.FETCH_PROFILE_FAILED,
                f"profile endpoint returned {response.status_code}"
            )

        try:
            profile = Profile.model_validate(response.json())
        except ValueError as e:
            logger.log_error("profile_response_invalid", str(e))
            raise AuthError(AuthErrorKind.FETCH_PROFILE_FAILED, "malformed profile response") from e

        logger.log_oauth_message(
            ComponentType.PROVIDER, ComponentType.CLIENT,
            "Profile Response",
            {"user_id": profile.user_id, "display_name": profile.display_name}
        )
        return profile
