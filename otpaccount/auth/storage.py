#!/usr/bin/env python3
"""
Secret Store Module for the OTP Account Service

Durable mapping from account identifier to OTP secret and recovery tokens.
Writes are conditional on the record version that was read, so two
read-modify-write cycles racing on one account cannot both succeed.

The file-backed store keeps all accounts in one file encrypted with the
cryptography library's Fernet symmetric encryption. Every read and every
read-check-write cycle holds an exclusive lock on a sibling ``.lock`` file,
so separate processes sharing the directory are serialized as well.
"""

import base64
import copy
import json
import os
import stat
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from otpaccount.auth.models import Account
from otpaccount.errors import StoreConflict, StoreUnavailable
from otpaccount.utils.paths import ensure_private_dir, resolve_config_dir

if os.name == "nt":
    import msvcrt

    def _lock_handle(handle):
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)

    def _unlock_handle(handle):
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
else:
    import fcntl

    def _lock_handle(handle):
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)

    def _unlock_handle(handle):
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

STORE_FORMAT_VERSION = 1
KDF_ITERATIONS = 100000


class SecretStore:
    """Interface every secret store implements."""

    def find(self, identifier: str) -> Optional[Account]:
        """
        Look up an account.

        Returns:
            A detached copy of the stored account, or None
        """
        raise NotImplementedError

    def save(self, account: Account) -> Account:
        """
        Upsert an account by identifier.

        The write only succeeds if the stored version still equals
        ``account.version`` (version 0 means the record must not exist yet).

        Returns:
            A copy of the stored account carrying its new version

        Raises:
            StoreConflict: The record changed since it was read
            StoreUnavailable: The store could not be read or written
        """
        raise NotImplementedError

    @staticmethod
    def _check_version(current: Optional[Account], account: Account):
        current_version = current.version if current is not None else 0
        if current_version != account.version:
            raise StoreConflict()


class InMemorySecretStore(SecretStore):
    """Process-local store, used for tests and short-lived deployments."""

    def __init__(self):
        self._records: Dict[str, Account] = {}
        self._lock = threading.Lock()

    def find(self, identifier: str) -> Optional[Account]:
        with self._lock:
            account = self._records.get(identifier)
            return copy.deepcopy(account) if account is not None else None

    def save(self, account: Account) -> Account:
        with self._lock:
            self._check_version(self._records.get(account.identifier), account)
            stored = copy.deepcopy(account)
            stored.version += 1
            self._records[stored.identifier] = stored
            return copy.deepcopy(stored)

    def __len__(self) -> int:
        return len(self._records)


class EncryptedFileStore(SecretStore):
    """Stores all accounts in a single Fernet-encrypted JSON file."""

    def __init__(self, config_dir: Optional[Path] = None, passphrase: Optional[str] = None):
        """
        Initialize the encrypted store.

        Args:
            config_dir: Directory holding the store files. If None, uses the shared config dir.
            passphrase: Secret the encryption key is derived from. If None, a
                machine-specific value is used.

        Raises:
            StoreUnavailable: The directory or salt file cannot be prepared
        """
        self.config_dir = resolve_config_dir(config_dir)

        # File paths
        self.accounts_file = self.config_dir / "accounts.enc"
        self.salt_file = self.config_dir / ".salt"
        self.lock_file = self.config_dir / ".lock"

        self._lock = threading.Lock()
        try:
            ensure_private_dir(self.config_dir)
            self._init_encryption(passphrase)
        except OSError as e:
            raise StoreUnavailable(f"The account store at {self.config_dir} could not be prepared") from e

    def _init_encryption(self, passphrase: Optional[str]):
        """Initialize encryption keys and cipher."""
        if self.salt_file.exists():
            salt = self.salt_file.read_bytes()
        else:
            salt = os.urandom(16)
            # Another process may create the salt first; theirs wins
            try:
                fd = os.open(self.salt_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, stat.S_IRUSR | stat.S_IWUSR)
            except FileExistsError:
                salt = self.salt_file.read_bytes()
            else:
                with os.fdopen(fd, 'wb') as f:
                    f.write(salt)

        if not passphrase:
            try:
                with open('/etc/machine-id', 'r') as f:
                    passphrase = f.read().strip()
            except FileNotFoundError:
                passphrase = str(Path.home()) + str(self.config_dir)

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=KDF_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))

        self.cipher = Fernet(key)

    @contextmanager
    def _locked(self):
        """Hold the in-process lock and the exclusive lock on ``.lock``."""
        with self._lock:
            try:
                handle = open(self.lock_file, 'a+b')
            except OSError as e:
                raise StoreUnavailable("The account store lock could not be opened") from e

            with handle:
                try:
                    _lock_handle(handle)
                except OSError as e:
                    raise StoreUnavailable("The account store is locked by another process") from e
                try:
                    yield
                finally:
                    _unlock_handle(handle)

    def _read_all(self) -> Dict[str, Dict]:
        """Decrypt and parse the accounts file. Caller holds the lock."""
        if not self.accounts_file.exists():
            return {}

        try:
            encrypted = self.accounts_file.read_bytes()
            data = json.loads(self.cipher.decrypt(encrypted).decode())
        except InvalidToken as e:
            raise StoreUnavailable("The account store could not be decrypted") from e
        except (OSError, ValueError) as e:
            raise StoreUnavailable("The account store could not be read") from e

        if not isinstance(data, dict) or not isinstance(data.get('accounts', {}), dict):
            raise StoreUnavailable("The account store is malformed")
        return data.get('accounts', {})

    def _write_all(self, accounts: Dict[str, Dict]):
        """Encrypt and atomically replace the accounts file. Caller holds the lock."""
        payload = json.dumps({'accounts': accounts, 'version': STORE_FORMAT_VERSION})
        encrypted = self.cipher.encrypt(payload.encode())

        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.config_dir, prefix=".accounts-")
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(encrypted)
                # Set restrictive permissions (600 = owner read/write only)
                os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
                os.replace(tmp_path, self.accounts_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StoreUnavailable("The account store could not be written") from e

    @staticmethod
    def _to_account(data) -> Optional[Account]:
        if data is None:
            return None
        try:
            return Account.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StoreUnavailable("An account record in the store is malformed") from e

    def find(self, identifier: str) -> Optional[Account]:
        with self._locked():
            data = self._read_all().get(identifier)
        return self._to_account(data)

    def save(self, account: Account) -> Account:
        with self._locked():
            accounts = self._read_all()
            self._check_version(self._to_account(accounts.get(account.identifier)), account)

            stored = copy.deepcopy(account)
            stored.version += 1
            accounts[stored.identifier] = stored.to_dict()
            self._write_all(accounts)
        return stored

    def is_configured(self) -> bool:
        """
        Check if any account has been stored yet.

        Returns:
            True if accounts.enc exists, False otherwise
        """
        return self.accounts_file.exists()
