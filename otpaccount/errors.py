#!/usr/bin/env python3
"""
Error kinds raised by the OTP Account Service.

Every error carries a stable ``code`` string and a ``retryable`` flag so the
caller can decide between retrying and fixing its input. Messages never
contain secrets, tokens, or (apart from NotFound) whether an identifier exists.
"""


class OTPAccountError(Exception):
    """Base class for all service errors."""

    code = "error"
    retryable = False
    default_message = "The request could not be completed"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class InvalidInput(OTPAccountError):
    """The caller supplied a malformed value, such as an identifier that is not an e-mail address."""

    code = "invalid_input"
    default_message = "The request contained an invalid value"


class AlreadyRegistered(OTPAccountError):
    code = "already_registered"
    default_message = "This identifier has already been registered"


class AuthenticationFailed(OTPAccountError):
    """Covers both unknown identifiers and wrong codes."""

    code = "authentication_failed"
    default_message = "Authentication failed"


class Unauthorized(OTPAccountError):
    code = "unauthorized"
    default_message = "An administrative credential is required"


class NotFound(OTPAccountError):
    """Only raised from administrative flows."""

    code = "not_found"
    default_message = "No account is registered for this identifier"


class InvalidOrExpiredToken(OTPAccountError):
    code = "invalid_or_expired_token"
    default_message = "The recovery token is invalid or has expired"


class StoreUnavailable(OTPAccountError):
    code = "store_unavailable"
    retryable = True
    default_message = "The secret store is unavailable"


class StoreConflict(StoreUnavailable):
    """The stored record changed between read and conditional write."""

    code = "store_conflict"
    default_message = "The account record was modified concurrently"


class DeliveryFailed(OTPAccountError):
    code = "delivery_failed"
    retryable = True
    default_message = "The message could not be delivered"


class DeliveryError(Exception):
    """Raised by delivery channels; mapped to DeliveryFailed by the service."""
