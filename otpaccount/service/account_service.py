#!/usr/bin/env python3
"""
Account Service for the OTP Account Service

Coordinates registration, authentication and secret recovery on top of
the OTP engine, the recovery token manager, the secret store and a
delivery channel. Every mutation of an account is a single
read-modify-write against the store, retried when the record changed
underneath it.
"""

import hmac
import re
import time
from typing import Callable, Optional

from otpaccount.auth.enrollment import EnrollmentArtifact
from otpaccount.auth.models import Account
from otpaccount.auth.recovery import RecoveryTokenManager
from otpaccount.auth.storage import SecretStore
from otpaccount.auth.tokens import SessionTokenIssuer
from otpaccount.auth.totp import OTPEngine
from otpaccount.delivery.base import DeliveryChannel
from otpaccount.errors import (
    AlreadyRegistered,
    AuthenticationFailed,
    DeliveryError,
    DeliveryFailed,
    InvalidInput,
    InvalidOrExpiredToken,
    NotFound,
    StoreConflict,
    StoreUnavailable,
    Unauthorized,
)
from otpaccount.utils.config import ServiceSettings
from otpaccount.utils.logger import AuditLogger, EventAction

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_identifier(identifier: str) -> str:
    """
    Normalize an e-mail identifier.

    Raises:
        InvalidInput: The identifier is not an e-mail address
    """
    if not isinstance(identifier, str):
        raise InvalidInput("identifier must be a string")
    identifier = identifier.strip().lower()
    if not IDENTIFIER_PATTERN.match(identifier):
        raise InvalidInput("identifier must be an e-mail address")
    return identifier


class AccountService:
    """Registration, OTP authentication and recovery for e-mail identified accounts."""

    def __init__(self,
                 store: SecretStore,
                 delivery: DeliveryChannel,
                 settings: ServiceSettings,
                 audit: Optional[AuditLogger] = None,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the service.

        Args:
            store: Secret store holding the accounts
            delivery: Channel used for codes and recovery tokens
            settings: Service settings, including the signing and admin secrets
            audit: Optional audit logger
            clock: Returns the current Unix timestamp
        """
        self.store = store
        self.delivery = delivery
        self.settings = settings
        self.audit = audit
        self.clock = clock

        self.engine = OTPEngine(digits=settings.otp_digits,
                                interval=settings.otp_interval_seconds,
                                valid_window=settings.otp_valid_window)
        self.recovery = RecoveryTokenManager(validity_seconds=settings.recovery_validity_seconds)
        self.tokens = SessionTokenIssuer(settings.token_secret,
                                         lifetime_seconds=settings.session_lifetime_seconds,
                                         algorithm=settings.session_algorithm)

    def _log(self, action: EventAction, identifier: Optional[str], success: bool, details: str = None):
        if self.audit is not None:
            self.audit.log_event(action, identifier=identifier, success=success, details=details)

    def _apply(self, identifier: str, mutation: Callable[[Optional[Account]], Account]) -> Account:
        """
        Read an account, mutate it and write it back conditionally.

        ``mutation`` receives the current record (or None) and returns the
        record to save; it may raise to abort. It is re-run on a fresh read
        whenever the conditional write loses a race.
        """
        for _ in range(self.settings.max_write_attempts):
            account = mutation(self.store.find(identifier))
            try:
                return self.store.save(account)
            except StoreConflict:
                continue

        print(f"[AccountService] Gave up writing {identifier} after "
              f"{self.settings.max_write_attempts} conflicting attempts")
        raise StoreUnavailable("The account record kept changing; try again")

    def _artifact(self, account: Account) -> EnrollmentArtifact:
        uri = self.engine.provisioning_uri(account.otp_secret, account.identifier, self.settings.service_name)
        return EnrollmentArtifact(identifier=account.identifier, issuer=self.settings.service_name, uri=uri)

    def _deliver(self, identifier: str, subject: str, body: str):
        try:
            self.delivery.send(identifier, subject, body)
        except DeliveryError as e:
            print(f"[AccountService] Delivery to {identifier} failed: {e}")
            self._log(EventAction.DELIVERY_FAILED, identifier, False, subject)
            raise DeliveryFailed() from e

    def _is_admin(self, credential: Optional[str]) -> bool:
        expected = self.settings.admin_secret
        if not expected or not isinstance(credential, str):
            return False
        return hmac.compare_digest(credential.encode(), expected.encode())

    def register(self, identifier: str) -> EnrollmentArtifact:
        """
        Create an account with a fresh OTP secret.

        Returns:
            Enrollment artifact embedding the new secret

        Raises:
            InvalidInput: The identifier is not an e-mail address
            AlreadyRegistered: An account already exists for the identifier
        """
        identifier = normalize_identifier(identifier)
        now = self.clock()

        def create(existing: Optional[Account]) -> Account:
            if existing is not None:
                raise AlreadyRegistered()
            return Account(identifier=identifier,
                           otp_secret=self.engine.generate_enrollment_secret(),
                           created_at=now)

        try:
            account = self._apply(identifier, create)
        except AlreadyRegistered:
            self._log(EventAction.REGISTRATION_REJECTED, identifier, False, AlreadyRegistered.code)
            raise

        self._log(EventAction.ACCOUNT_REGISTERED, identifier, True)
        return self._artifact(account)

    def authenticate(self, identifier: str, code: str) -> str:
        """
        Verify an OTP code and issue a session token.

        Returns:
            Signed session token

        Raises:
            AuthenticationFailed: Unknown identifier or invalid code
        """
        try:
            identifier = normalize_identifier(identifier)
        except InvalidInput:
            raise AuthenticationFailed() from None

        now = self.clock()
        account = self.store.find(identifier)
        step = self.engine.matching_step(account.otp_secret, code, now) if account else None

        if step is not None and self.settings.reject_code_reuse:
            def record_step(current: Optional[Account]) -> Account:
                if (current is None or current.otp_secret != account.otp_secret
                        or (current.last_used_step is not None and step <= current.last_used_step)):
                    raise AuthenticationFailed()
                current.last_used_step = step
                return current

            try:
                self._apply(identifier, record_step)
            except AuthenticationFailed:
                step = None

        if step is None:
            self._log(EventAction.AUTH_FAILED, identifier, False)
            raise AuthenticationFailed()

        self._log(EventAction.AUTH_SUCCESS, identifier, True)
        return self.tokens.issue(identifier, now)

    def send_code(self, identifier: str):
        """
        E-mail the account's current OTP code.

        Unknown identifiers are ignored so the call reveals nothing.

        Raises:
            InvalidInput: The identifier is not an e-mail address
            DeliveryFailed: The message could not be delivered
        """
        identifier = normalize_identifier(identifier)
        account = self.store.find(identifier)
        if account is None:
            self._log(EventAction.CODE_SENT, identifier, False, "unknown identifier")
            return

        code = self.engine.current_code(account.otp_secret, self.clock())
        self._deliver(identifier,
                      f"Your {self.settings.service_name} code",
                      f"Your one-time code is: {code}\n"
                      f"It is valid for about {self.settings.otp_interval_seconds} seconds.")
        self._log(EventAction.CODE_SENT, identifier, True)

    def request_reset(self, identifier: str, admin_credential: Optional[str]):
        """
        Issue a recovery token and deliver it to the account owner.

        The token stays valid if delivery fails.

        Args:
            identifier: Account to reset
            admin_credential: Administrative secret authorizing the reset

        Raises:
            Unauthorized: The credential does not match the admin secret
            InvalidInput: The identifier is not an e-mail address
            NotFound: No account exists for the identifier
            DeliveryFailed: The token could not be delivered
        """
        if not self._is_admin(admin_credential):
            self._log(EventAction.RESET_DENIED, None, False, Unauthorized.code)
            raise Unauthorized()

        identifier = normalize_identifier(identifier)
        now = self.clock()
        issued = []

        def issue(account: Optional[Account]) -> Account:
            if account is None:
                raise NotFound()
            issued[:] = [self.recovery.issue(account, now)]
            return account

        try:
            self._apply(identifier, issue)
        except NotFound:
            self._log(EventAction.RESET_DENIED, identifier, False, NotFound.code)
            raise

        self._log(EventAction.RESET_REQUESTED, identifier, True)
        minutes = self.settings.recovery_validity_seconds // 60
        self._deliver(identifier,
                      f"Your {self.settings.service_name} recovery token",
                      f"Your recovery token is: {issued[0]}\n"
                      f"It can be used once within the next {minutes} minutes "
                      f"to set up your authenticator again.")

    def complete_reset(self, identifier: str, token: str) -> EnrollmentArtifact:
        """
        Consume a recovery token and rotate the account's OTP secret.

        Returns:
            Enrollment artifact embedding the new secret

        Raises:
            InvalidOrExpiredToken: No matching, unexpired token (or no account)
        """
        try:
            identifier = normalize_identifier(identifier)
        except InvalidInput:
            raise InvalidOrExpiredToken() from None

        now = self.clock()

        def rotate(account: Optional[Account]) -> Account:
            if account is None or not self.recovery.consume(account, token, now):
                raise InvalidOrExpiredToken()
            account.otp_secret = self.engine.generate_enrollment_secret()
            account.last_used_step = None
            return account

        try:
            account = self._apply(identifier, rotate)
        except InvalidOrExpiredToken:
            self._log(EventAction.RESET_FAILED, identifier, False)
            raise

        self._log(EventAction.RESET_COMPLETED, identifier, True)
        return self._artifact(account)
