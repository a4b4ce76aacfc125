"""
OAuth 2.0 Pydantic models for request/response validation.

This module defines the data models exchanged with the identity provider
(authorization request, token request and response) and the user profile
that the login flow stores in the session and serves as JSON.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Dict, Optional
from enum import Enum


class PKCEMethod(str, Enum):
    """PKCE code challenge methods as defined in RFC 7636."""
    S256 = "S256"


class GrantType(str, Enum):
    """OAuth 2.0 grant types."""
    AUTHORIZATION_CODE = "authorization_code"


class ResponseType(str, Enum):
    """OAuth 2.0 response types."""
    CODE = "code"


def _require_base64url(value: str, name: str) -> str:
    if not value.replace('-', '').replace('_', '').isalnum():
        raise ValueError(f"{name} must be base64url encoded")
    return value


class AuthorizationRequest(BaseModel):
    """
    OAuth 2.0 authorization request sent to the provider's consent page.

    Carries the CSRF state and the PKCE challenge; the matching verifier
    never leaves the server.
    """
    model_config = ConfigDict(use_enum_values=True, frozen=True)

    client_id: str = Field(..., min_length=1, description="OAuth client identifier")
    redirect_uri: str = Field(..., min_length=1, description="Client redirect URI")
    scope: str = Field(..., min_length=1, description="Space separated scopes")
    state: str = Field(..., min_length=1, description="CSRF protection state parameter")
    code_challenge: str = Field(
        ...,
        min_length=43,
        max_length=128,
        description="PKCE code challenge"
    )
    code_challenge_method: PKCEMethod = Field(
        default=PKCEMethod.S256,
        description="PKCE challenge method (must be S256)"
    )
    response_type: ResponseType = Field(
        default=ResponseType.CODE,
        description="OAuth response type (must be 'code')"
    )

    @field_validator('code_challenge')
    @classmethod
    def validate_code_challenge(cls, v):
        """Validate PKCE code challenge format."""
        return _require_base64url(v, "Code challenge")

    def to_query_params(self) -> Dict[str, str]:
        """Query parameters in the order providers document them."""
        return {
            "response_type": ResponseType(self.response_type).value,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": PKCEMethod(self.code_challenge_method).value,
        }


class TokenRequest(BaseModel):
    """
    OAuth 2.0 token request model.

    Form body for the authorization code exchange, including the PKCE
    verifier and the confidential client credentials.
    """
    model_config = ConfigDict(use_enum_values=True)

    grant_type: GrantType = Field(
        default=GrantType.AUTHORIZATION_CODE,
        description="OAuth grant type"
    )
    code: str = Field(..., min_length=1, description="Authorization code")
    redirect_uri: str = Field(..., min_length=1, description="Client redirect URI")
    client_id: str = Field(..., min_length=1, description="OAuth client identifier")
    client_secret: str = Field(..., min_length=1, description="OAuth client secret")
    code_verifier: str = Field(
        ...,
        min_length=43,
        max_length=128,
        description="PKCE code verifier"
    )

    @field_validator('code_verifier')
    @classmethod
    def validate_code_verifier(cls, v):
        """Validate PKCE code verifier format."""
        return _require_base64url(v, "Code verifier")

    def to_form(self) -> Dict[str, str]:
        return self.model_dump(mode="json")


class TokenResponse(BaseModel):
    """
    OAuth 2.0 token response model.

    Only ``access_token`` is required; providers differ on the rest.
    """
    access_token: str = Field(..., min_length=1, description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: Optional[int] = Field(default=None, ge=0, description="Token lifetime in seconds")
    scope: Optional[str] = Field(default=None, description="Granted scope")
    refresh_token: Optional[str] = Field(default=None, description="Refresh token")
    id_token: Optional[str] = Field(default=None, description="OpenID Connect ID token")


class Profile(BaseModel):
    """
    Authenticated user profile, as returned by the provider's profile API.

    Serialized with camelCase field names:
    ``{userId, displayName, pictureUrl, statusMessage}``.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str
    display_name: str
    # Omitted by the provider when the user has not set them
    picture_url: Optional[str] = None
    status_message: Optional[str] = None

    def to_wire(self) -> Dict[str, Optional[str]]:
        return self.model_dump(by_alias=True)


class ErrorResponse(BaseModel):
    """Error body returned by the callback endpoint."""
    error: str = Field(..., description="Error message")
