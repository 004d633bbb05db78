"""OTP Account Service: TOTP registration, authentication and recovery."""

__version__ = "1.0.0"

from .errors import (
    OTPAccountError,
    InvalidInput,
    AlreadyRegistered,
    AuthenticationFailed,
    Unauthorized,
    NotFound,
    InvalidOrExpiredToken,
    StoreUnavailable,
    DeliveryFailed,
)
from .service import AccountService

__all__ = [
    '__version__',
    'AccountService',
    'OTPAccountError',
    'InvalidInput',
    'AlreadyRegistered',
    'AuthenticationFailed',
    'Unauthorized',
    'NotFound',
    'InvalidOrExpiredToken',
    'StoreUnavailable',
    'DeliveryFailed'
]
