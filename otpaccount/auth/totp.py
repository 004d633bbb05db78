#!/usr/bin/env python3
"""
TOTP Engine Module for the OTP Account Service

Handles Time-based One-Time Password generation and verification
using pyotp, compatible with Google Authenticator and other TOTP apps.
"""

import time
from typing import Optional

import pyotp
from pyotp.utils import strings_equal

# Constants
TOTP_CODE_LENGTH = 6
TOTP_TIME_WINDOW_SECONDS = 30
TOTP_DEFAULT_VALIDATION_WINDOW = 1
TOTP_MAX_VALIDATION_WINDOW = 5
TOTP_SECRET_LENGTH = 32  # base32 characters, 160 bits


class OTPEngine:
    """Generates and verifies time-based one-time codes for any secret."""

    def __init__(self,
                 digits: int = TOTP_CODE_LENGTH,
                 interval: int = TOTP_TIME_WINDOW_SECONDS,
                 valid_window: int = TOTP_DEFAULT_VALIDATION_WINDOW):
        """
        Initialize the engine.

        Args:
            digits: Number of digits in a code
            interval: Length of one time step in seconds
            valid_window: Number of steps accepted on each side of the current one
        """
        self.digits = digits
        self.interval = interval
        # Window is capped at TOTP_MAX_VALIDATION_WINDOW steps
        self.valid_window = max(0, min(TOTP_MAX_VALIDATION_WINDOW, valid_window))

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval)

    @staticmethod
    def generate_enrollment_secret() -> str:
        """
        Generate a fresh Base32-encoded secret.

        Returns:
            A 32 character Base32 string (160 bits of entropy)
        """
        return pyotp.random_base32(length=TOTP_SECRET_LENGTH)

    def step_at(self, at: float) -> int:
        """Return the time step number containing the timestamp ``at``."""
        return int(at // self.interval)

    def current_code(self, secret: str, at: Optional[float] = None) -> str:
        """
        Generate the code for the time step containing ``at``.

        Args:
            secret: Base32-encoded secret
            at: Unix timestamp (defaults to now)

        Returns:
            The zero-padded numeric code
        """
        if at is None:
            at = time.time()
        return self._totp(secret).generate_otp(self.step_at(at))

    def matching_step(self, secret: str, code: str, at: Optional[float] = None) -> Optional[int]:
        """
        Find the time step a submitted code belongs to.

        Args:
            secret: Base32-encoded secret
            code: Code submitted by the user
            at: Unix timestamp to verify against (defaults to now)

        Returns:
            The matching step number, or None if the code is not valid
            within the window. Malformed input never raises.
        """
        if not isinstance(code, str) or not isinstance(secret, str):
            return None

        # Remove any spaces or dashes from input
        code = code.replace(' ', '').replace('-', '')

        if not code.isdigit() or len(code) != self.digits:
            return None

        if at is None:
            at = time.time()

        current = self.step_at(at)
        try:
            totp = self._totp(secret)
            for step in range(current - self.valid_window, current + self.valid_window + 1):
                if step >= 0 and strings_equal(code, totp.generate_otp(step)):
                    return step
        except (ValueError, TypeError):
            # Malformed Base32 secret
            return None

        return None

    def verify_code(self, secret: str, code: str, at: Optional[float] = None) -> bool:
        """
        Verify a code against a secret.

        Returns:
            True if code is valid for a step within the window, False otherwise
        """
        return self.matching_step(secret, code, at) is not None

    def provisioning_uri(self, secret: str, identifier: str, issuer: str) -> str:
        """
        Build the otpauth:// URI an authenticator app scans.

        Args:
            secret: Base32-encoded secret
            identifier: Account name to display in authenticator app
            issuer: Issuer (service) name

        Returns:
            Provisioning URI string for QR code
        """
        return self._totp(secret).provisioning_uri(name=identifier, issuer_name=issuer)

    def time_remaining(self, at: Optional[float] = None) -> int:
        """
        Get seconds remaining until the current code expires.

        Returns:
            Seconds until next code generation (1 to interval)
        """
        if at is None:
            at = time.time()
        return self.interval - (int(at) % self.interval)
