"""Utility modules for the OTP Account Service."""

from .logger import AuditLogger, EventAction
from .config import Config, ServiceSettings, SMTPSettings

__all__ = [
    'AuditLogger',
    'EventAction',
    'Config',
    'ServiceSettings',
    'SMTPSettings'
]
