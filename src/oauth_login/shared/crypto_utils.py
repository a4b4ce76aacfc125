"""
PKCE (Proof Key for Code Exchange) and session secret utilities.

This module implements RFC 7636 PKCE functionality for the login flow:
code verifier generation, S256 challenge derivation, CSRF state tokens
and session identifiers.
"""

import secrets
import hashlib
import base64
import uuid
from typing import Tuple


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode('utf-8').rstrip('=')


class PKCEGenerator:
    """
    PKCE code verifier and challenge generator.

    Implements the RFC 7636 S256 method. The verifier stays on the server
    inside the session; only the challenge travels to the provider.
    """

    @staticmethod
    def generate_challenge() -> Tuple[str, str]:
        """
        Generate PKCE code verifier and challenge pair.

        Returns:
            Tuple[str, str]: (code_verifier, code_challenge)

        Example:
            verifier, challenge = PKCEGenerator.generate_challenge()
            # verifier: 43-character base64url string
            # challenge: SHA256 hash of verifier, base64url encoded
        """
        # 32 random bytes encode to 43 base64url characters
        verifier = _b64url(secrets.token_bytes(32))
        return verifier, PKCEGenerator.derive_challenge(verifier)

    @staticmethod
    def derive_challenge(verifier: str) -> str:
        """
        Derive the S256 code challenge for a verifier.

        Args:
            verifier: The PKCE code verifier

        Returns:
            str: base64url(SHA256(verifier)) without padding
        """
        return _b64url(hashlib.sha256(verifier.encode('ascii')).digest())

    @staticmethod
    def verify_challenge(verifier: str, challenge: str) -> bool:
        """
        Verify PKCE code verifier against challenge.

        Args:
            verifier: The PKCE code verifier
            challenge: The expected PKCE challenge

        Returns:
            bool: True if verifier matches challenge, False otherwise

        Example:
            is_valid = PKCEGenerator.verify_challenge(
                "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk",
                "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
            )
        """
        if not isinstance(verifier, str) or not isinstance(challenge, str):
            return False
        if not verifier or not challenge:
            return False

        try:
            expected_challenge = PKCEGenerator.derive_challenge(verifier)
        except UnicodeEncodeError:
            return False

        return constant_time_compare(expected_challenge, challenge)

    @staticmethod
    def generate_secure_token(length: int = 32) -> str:
        """
        Generate a cryptographically secure random token.

        Args:
            length: Number of random bytes to generate (default: 32)

        Returns:
            str: Base64url encoded token
        """
        return _b64url(secrets.token_bytes(length))

    @staticmethod
    def generate_state_parameter() -> str:
        """
        Generate a secure state parameter for CSRF protection.

        Returns:
            str: Secure random state parameter (128 bits)
        """
        return PKCEGenerator.generate_secure_token(16)


def generate_session_id() -> str:
    """Generate a random 128-bit session identifier."""
    return str(uuid.uuid4())


def constant_time_compare(a: str, b: str) -> bool:
    """
    Perform constant-time string comparison.

    Args:
        a: First string
        b: Second string

    Returns:
        bool: True if strings are equal, False otherwise
    """
    return secrets.compare_digest(a.encode('utf-8'), b.encode('utf-8'))
