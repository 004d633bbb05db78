#!/usr/bin/env python3
"""
Account records kept in the secret store.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class RecoveryToken:
    """A stored recovery token. Only the SHA-256 digest of the token is kept."""

    token_hash: str
    issued_at: float

    def to_dict(self) -> Dict:
        return {'token_hash': self.token_hash, 'issued_at': self.issued_at}

    @classmethod
    def from_dict(cls, data: Dict) -> "RecoveryToken":
        return cls(token_hash=str(data['token_hash']), issued_at=float(data['issued_at']))


@dataclass
class Account:
    """An OTP account, keyed by its identifier (e-mail address)."""

    identifier: str
    otp_secret: str
    recovery_tokens: List[RecoveryToken] = field(default_factory=list)  # newest first
    last_used_step: Optional[int] = None
    created_at: float = field(default_factory=time.time)
    version: int = 0

    def __repr__(self) -> str:
        # Keep the secret out of tracebacks and debug output
        return (f"Account(identifier={self.identifier!r}, "
                f"recovery_tokens={len(self.recovery_tokens)}, version={self.version})")

    def to_dict(self) -> Dict:
        return {
            'identifier': self.identifier,
            'otp_secret': self.otp_secret,
            'recovery_tokens': [token.to_dict() for token in self.recovery_tokens],
            'last_used_step': self.last_used_step,
            'created_at': self.created_at,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Account":
        """Build an account from its stored form, filling in missing bookkeeping fields."""

        def _coerce_int(value, default=None):
            try:
                return int(value)
            except (TypeError, ValueError):
                return default

        return cls(
            identifier=str(data['identifier']),
            otp_secret=str(data['otp_secret']),
            recovery_tokens=[RecoveryToken.from_dict(t) for t in data.get('recovery_tokens') or []],
            last_used_step=_coerce_int(data.get('last_used_step')),
            created_at=float(data.get('created_at') or time.time()),
            version=_coerce_int(data.get('version'), 0),
        )
