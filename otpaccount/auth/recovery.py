#!/usr/bin/env python3
"""
Recovery Token Module for the OTP Account Service

Issues and validates short-lived, single-use tokens that allow an
account's OTP secret to be rotated without knowing a current code.
"""

import hashlib
import hmac
import secrets

from .models import Account, RecoveryToken

# Constants
RECOVERY_TOKEN_BYTES = 32  # 256 bits
RECOVERY_TOKEN_VALIDITY_SECONDS = 3600


class RecoveryTokenManager:
    """Manages one-time recovery tokens attached to an account."""

    def __init__(self, validity_seconds: int = RECOVERY_TOKEN_VALIDITY_SECONDS):
        self.validity_seconds = validity_seconds

    @staticmethod
    def generate_token() -> str:
        """
        Generate a cryptographically secure recovery token.

        Returns:
            URL-safe token string (256 bits of entropy)
        """
        return secrets.token_urlsafe(RECOVERY_TOKEN_BYTES)

    @staticmethod
    def hash_token(token: str) -> str:
        """
        Hash a recovery token for secure storage.

        Args:
            token: Plaintext token

        Returns:
            SHA-256 hex digest of the token
        """
        return hashlib.sha256(token.strip().encode()).hexdigest()

    def is_valid_at(self, token: RecoveryToken, now: float) -> bool:
        """A token is valid strictly less than the validity window after issue."""
        return 0 <= now - token.issued_at < self.validity_seconds

    def issue(self, account: Account, now: float) -> str:
        """
        Attach a new recovery token to the account.

        The account is modified in place; the caller persists it. Tokens that
        have already expired are dropped at the same time.

        Args:
            account: Account to issue the token for
            now: Current Unix timestamp

        Returns:
            The plaintext token, to be delivered out of band
        """
        token = self.generate_token()
        live = [t for t in account.recovery_tokens if self.is_valid_at(t, now)]
        account.recovery_tokens = [RecoveryToken(self.hash_token(token), now)] + live
        return token

    def consume(self, account: Account, submitted: str, now: float) -> bool:
        """
        Consume a matching, unexpired token.

        On success the matching entry and every older entry are removed from
        the account (modified in place). Unknown and expired tokens are not
        distinguished.

        Args:
            account: Account the token was issued for
            submitted: Token presented by the user
            now: Current Unix timestamp

        Returns:
            True if a token was consumed, False otherwise
        """
        if not isinstance(submitted, str) or not submitted.strip():
            return False

        submitted_hash = self.hash_token(submitted)
        for index, stored in enumerate(account.recovery_tokens):
            if hmac.compare_digest(stored.token_hash, submitted_hash) and self.is_valid_at(stored, now):
                account.recovery_tokens = account.recovery_tokens[:index]
                return True

        return False
