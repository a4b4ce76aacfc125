"""
OAuth client configuration.

Builds the provider endpoint descriptor (client credentials, authorize,
token and profile URLs, redirect URL) from the environment. Variable names
follow the LINE Login deployment; a ``.env`` file in the working directory
is read as well.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..shared.security import SessionCookiePolicy
from .errors import ConfigurationError

PROVIDER_NAME_PATTERN = re.compile(r'^[a-z0-9_-]+$')


def _validate_http_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError("must be an absolute http(s) URL")
    if any(char in value for char in ['<', '>', '"', "'", ' ']):
        raise ValueError("contains characters not allowed in a URL")
    return value


class OAuthClientConfig(BaseSettings):
    """
    Provider endpoints and client credentials.

    The six provider values are required; everything else has a default.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    client_id: str = Field(..., min_length=1, validation_alias="LINE_CHANNEL_ID")
    client_secret: str = Field(..., min_length=1, validation_alias="LINE_CHANNEL_SECRET")
    authorize_url: str = Field(..., validation_alias="LINE_API_AUTHORIZE")
    token_url: str = Field(..., validation_alias="LINE_API_TOKEN")
    profile_url: str = Field(..., validation_alias="LINE_API_PROFILE")
    redirect_url: str = Field(..., validation_alias="REDIRECT_URL")

    provider: str = Field(default="line", validation_alias="OAUTH_PROVIDER")
    scopes: str = Field(default="profile openid", validation_alias="OAUTH_SCOPES")
    cookie_secure: bool = Field(default=False, validation_alias="SESSION_COOKIE_SECURE")
    session_ttl_seconds: int = Field(default=86400, ge=0, validation_alias="SESSION_TTL_SECONDS")
    provider_timeout_seconds: float = Field(default=10.0, gt=0, validation_alias="PROVIDER_TIMEOUT_SECONDS")

    @field_validator('authorize_url', 'token_url', 'profile_url', 'redirect_url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_http_url(v)

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if not PROVIDER_NAME_PATTERN.match(v):
            raise ValueError("provider name must be lowercase letters, digits, '-' or '_'")
        return v

    @field_validator('scopes')
    @classmethod
    def normalize_scopes(cls, v: str) -> str:
        scopes = [scope for scope in re.split(r'[\s,]+', v) if scope]
        if not scopes:
            raise ValueError("at least one scope is required")
        return " ".join(scopes)

    @property
    def login_path(self) -> str:
        return f"/oauth2/{self.provider}/login"

    @property
    def session_ttl(self) -> Optional[int]:
        """TTL in seconds, or None when expiry is disabled."""
        return self.session_ttl_seconds or None

    @property
    def cookie_policy(self) -> SessionCookiePolicy:
        return SessionCookiePolicy(secure=self.cookie_secure)


def load_config(**overrides) -> OAuthClientConfig:
    """
    Build the client configuration from the environment.

    Raises:
        ConfigurationError: listing every missing or malformed value
    """
    try:
        return OAuthClientConfig(**overrides)
    except ValidationError as exc:
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "config"
            problems.append(f"{location}: {error['msg']}")
        raise ConfigurationError(problems) from exc
