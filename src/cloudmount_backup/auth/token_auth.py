"""Bearer token authentication for the local trigger service."""

import hmac
import logging
import secrets
from typing import Optional

from ..errors import AuthFailure

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def generate_token(nbytes: int = 32) -> str:
    """Generate a new random URL-safe token."""
    return secrets.token_urlsafe(nbytes)


class BearerTokenAuth:
    """Validate ``Authorization: Bearer <token>`` headers against a pre-shared token."""

    def __init__(self, token: str):
        """Initialize bearer auth.

        Args:
            token: Pre-shared token expected from clients
        """
        if not token:
            raise ValueError("A non-empty token is required")
        self._token = token.encode('utf-8')

    @staticmethod
    def extract_token(authorization: Optional[str]) -> Optional[str]:
        """Return the credential of a Bearer header, or None if malformed."""
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return None
        token = authorization[len(BEARER_PREFIX):]
        return token or None

    def is_valid(self, authorization: Optional[str]) -> bool:
        token = self.extract_token(authorization)
        if token is None:
            return False
        return hmac.compare_digest(token.encode('utf-8'), self._token)

    def verify(self, authorization: Optional[str]) -> None:
        """Raise AuthFailure unless the header carries the expected token."""
        if not self.is_valid(authorization):
            logger.warning("Rejected trigger request with missing or invalid bearer token")
            raise AuthFailure()

    @staticmethod
    def header_for(token: str) -> dict:
        """Build the request header a client sends."""
        return {'Authorization': f"{BEARER_PREFIX}{token}"}
