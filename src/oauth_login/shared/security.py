"""
Security utilities for the login flow.

Security headers applied to every response and the attribute policy for
the session cookie handed to the browser.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict
from starlette.responses import Response


SESSION_COOKIE_NAME = "session_id"


class SecurityHeaders:
    """
    Security headers for HTTP responses.

    Provides standard security headers to protect against
    common web vulnerabilities.
    """

    @staticmethod
    def get_oauth_security_headers() -> dict:
        """
        Get security headers for OAuth endpoints.

        Returns:
            dict: Dictionary of security headers
        """
        return {
            'X-Content-Type-Options': 'nosniff',
            'X-Frame-Options': 'DENY',
            'Referrer-Policy': 'no-referrer',
            'Cache-Control': 'no-cache, no-store, must-revalidate',
            'Pragma': 'no-cache',
            'Expires': '0'
        }

    @staticmethod
    def apply(response: Response, secure_transport: bool = False) -> Response:
        """Copy the OAuth security headers onto a response."""
        for header_name, header_value in SecurityHeaders.get_oauth_security_headers().items():
            response.headers[header_name] = header_value
        if secure_transport:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response


class SessionCookiePolicy(BaseModel):
    """
    Attributes of the ``session_id`` cookie.

    ``samesite`` is ``lax``: the provider redirects the browser back with a
    top-level GET, and ``strict`` would drop the cookie on that hop.
    """
    model_config = ConfigDict(frozen=True)

    name: str = SESSION_COOKIE_NAME
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: Literal["lax", "strict", "none"] = "lax"
    max_age: Optional[int] = None

    def cookie_kwargs(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "secure": self.secure,
            "httponly": self.httponly,
            "samesite": self.samesite,
            "max_age": self.max_age,
        }

    def set_on(self, response: Response, session_id: str) -> None:
        response.set_cookie(self.name, session_id, **self.cookie_kwargs())

    def clear_on(self, response: Response) -> None:
        response.delete_cookie(
            self.name,
            path=self.path,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )
