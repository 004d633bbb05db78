#!/usr/bin/env python3
"""
Session token issuance.

Session tokens are HS256 JSON Web Tokens asserting the account identifier.
"""

import time
from typing import Dict, Optional

from jose import JWTError, jwt

SESSION_TOKEN_LIFETIME_SECONDS = 3600
SESSION_TOKEN_ALGORITHM = "HS256"


class SessionTokenIssuer:
    """Signs and decodes session tokens with a server-held key."""

    def __init__(self,
                 secret: str,
                 lifetime_seconds: int = SESSION_TOKEN_LIFETIME_SECONDS,
                 algorithm: str = SESSION_TOKEN_ALGORITHM):
        if not secret:
            raise ValueError("A signing secret is required for session tokens")
        self._secret = secret
        self.lifetime_seconds = lifetime_seconds
        self.algorithm = algorithm

    def issue(self, identifier: str, now: Optional[float] = None) -> str:
        """
        Sign a session token for an identifier.

        Args:
            identifier: Authenticated account identifier
            now: Issue time as Unix timestamp (defaults to now)

        Returns:
            Encoded JWT
        """
        issued_at = int(now if now is not None else time.time())
        claims = {
            "sub": identifier,
            "username": identifier,
            "iat": issued_at,
            "exp": issued_at + self.lifetime_seconds,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[Dict]:
        """
        Verify a session token's signature and expiry.

        Returns:
            The claims if the token is valid, None otherwise
        """
        try:
            return jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError:
            return None
