"""
Error taxonomy for the login flow.

Internal error identity (``AuthErrorKind``) is kept separate from the wire
representation; ``STATUS_CODES`` is the only place the two meet.
"""

from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    """Every way the callback path can fail. The value is the client message."""
    FETCH_TOKEN_FAILED = "failed to fetch token"
    FETCH_PROFILE_FAILED = "failed to fetch profile"
    NO_SESSION_FROM_COOKIE = "no session retrieved from cookie"
    NO_SESSION_IN_STORE = "no session found in store"
    CSRF_TOKEN_MISMATCH = "csrf token mismatch"
    AUTHORIZATION_DENIED = "authorization denied by provider"
    MISSING_AUTHORIZATION_CODE = "missing authorization code"


STATUS_CODES = {
    AuthErrorKind.FETCH_TOKEN_FAILED: 500,
    AuthErrorKind.FETCH_PROFILE_FAILED: 500,
    AuthErrorKind.NO_SESSION_FROM_COOKIE: 401,
    AuthErrorKind.NO_SESSION_IN_STORE: 401,
    AuthErrorKind.CSRF_TOKEN_MISMATCH: 403,
    AuthErrorKind.AUTHORIZATION_DENIED: 400,
    AuthErrorKind.MISSING_AUTHORIZATION_CODE: 400,
}


class AuthError(Exception):
    """
    Terminal failure of a login callback.

    ``detail`` is for the logs only; clients see just the kind's message.
    """

    def __init__(self, kind: AuthErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    @property
    def message(self) -> str:
        return self.kind.value


class ConfigurationError(Exception):
    """The OAuth client could not be built from the environment."""

    PUBLIC_MESSAGE = "oauth client is not configured"

    def __init__(self, problems: list):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or self.PUBLIC_MESSAGE)
