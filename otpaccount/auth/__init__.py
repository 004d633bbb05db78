"""Authentication building blocks for the OTP Account Service."""

from .models import Account, RecoveryToken
from .totp import OTPEngine
from .recovery import RecoveryTokenManager
from .storage import SecretStore, InMemorySecretStore, EncryptedFileStore
from .tokens import SessionTokenIssuer
from .enrollment import EnrollmentArtifact

__all__ = [
    'Account',
    'RecoveryToken',
    'OTPEngine',
    'RecoveryTokenManager',
    'SecretStore',
    'InMemorySecretStore',
    'EncryptedFileStore',
    'SessionTokenIssuer',
    'EnrollmentArtifact'
]
