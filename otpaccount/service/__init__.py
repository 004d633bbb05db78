"""Account orchestration for the OTP Account Service."""

from .account_service import AccountService, normalize_identifier

__all__ = [
    'AccountService',
    'normalize_identifier'
]
