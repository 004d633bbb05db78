#!/usr/bin/env python3
"""
Configuration Module for the OTP Account Service

Manages service settings stored as JSON, plus the secrets that are
only ever read from the environment.
"""

import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .paths import ensure_private_dir, resolve_config_dir

# Environment variables holding secrets; these never go into config.json
ENV_TOKEN_SECRET = "OTPACCOUNT_TOKEN_SECRET"
ENV_ADMIN_SECRET = "OTPACCOUNT_ADMIN_SECRET"
ENV_STORE_PASSPHRASE = "OTPACCOUNT_STORE_PASSPHRASE"
ENV_SMTP_USER = "OTPACCOUNT_SMTP_USER"
ENV_SMTP_PASSWORD = "OTPACCOUNT_SMTP_PASSWORD"


@dataclass(frozen=True)
class ServiceSettings:
    """Settings injected into the AccountService at construction."""

    service_name: str = "OTP Account Service"
    token_secret: str = ""
    admin_secret: Optional[str] = None
    otp_digits: int = 6
    otp_interval_seconds: int = 30
    otp_valid_window: int = 1
    reject_code_reuse: bool = True
    recovery_validity_seconds: int = 3600
    session_lifetime_seconds: int = 3600
    session_algorithm: str = "HS256"
    max_write_attempts: int = 3
    mail_sender: str = "no-reply@localhost"

    def __repr__(self) -> str:
        return (f"ServiceSettings(service_name={self.service_name!r}, "
                f"admin_secret_set={bool(self.admin_secret)})")


@dataclass(frozen=True)
class SMTPSettings:
    """Connection settings for the SMTP delivery channel."""

    host: str = "localhost"
    port: int = 587
    use_tls: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: int = 30
    max_retries: int = 3
    retry_delay_seconds: float = 2

    def __repr__(self) -> str:
        return f"SMTPSettings(host={self.host!r}, port={self.port}, username={self.username!r})"


class Config:
    """Manages OTP Account Service configuration."""

    DEFAULT_CONFIG = {
        'version': 1,
        'service': {
            'name': 'OTP Account Service',
        },
        'otp': {
            'digits': 6,
            'interval_seconds': 30,
            'valid_window': 1,
            'reject_code_reuse': True,
        },
        'recovery': {
            'validity_seconds': 3600,
        },
        'session': {
            'lifetime_seconds': 3600,
            'algorithm': 'HS256',
        },
        'store': {
            'max_write_attempts': 3,
        },
        'delivery': {
            'channel': 'console',  # console, smtp
            'sender': 'no-reply@localhost',
            'smtp_host': 'localhost',
            'smtp_port': 587,
            'use_tls': True,
            'timeout_seconds': 30,
            'max_retries': 3,
        },
        'audit': {
            'enabled': True,
            'retention_days': 90,
        },
    }

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_dir: Configuration directory path. If None, uses the shared config dir.
        """
        self.config_dir = resolve_config_dir(config_dir)
        ensure_private_dir(self.config_dir)
        self.config_file = self.config_dir / "config.json"

        self.config = self._load_config()

        # Create config file if it doesn't exist
        if not self.config_file.exists():
            self.save()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or create default."""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config = json.load(f)

                # Merge with defaults to add any new settings
                return self._merge_configs(self.DEFAULT_CONFIG, config)

            except (OSError, ValueError) as e:
                print(f"[Config] Error loading config: {e}, using defaults")
                return copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            # Return default config (file will be created in __init__)
            return copy.deepcopy(self.DEFAULT_CONFIG)

    def _merge_configs(self, default: Dict, loaded: Dict) -> Dict:
        """
        Recursively merge loaded config with defaults.

        Args:
            default: Default configuration dictionary
            loaded: Loaded configuration dictionary

        Returns:
            Merged configuration dictionary
        """
        result = copy.deepcopy(default)

        for key, value in loaded.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = copy.deepcopy(value) if isinstance(value, (dict, list)) else value

        return result

    def save(self) -> bool:
        """
        Save configuration to file.

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            print(f"[Config] Error saving config: {e}")
            return False

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key_path: Configuration key path (e.g., 'otp.valid_window')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value: Any) -> bool:
        """
        Set configuration value using dot notation.

        Args:
            key_path: Configuration key path (e.g., 'otp.valid_window')
            value: Value to set

        Returns:
            True if successful, False otherwise
        """
        keys = key_path.split('.')
        config = self.config

        # Navigate to parent of target key
        for key in keys[:-1]:
            if not isinstance(config.get(key), dict):
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value
        return self.save()

    def reset_to_defaults(self) -> bool:
        """
        Reset configuration to defaults.

        Returns:
            True if successful, False otherwise
        """
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        return self.save()

    def export_config(self, export_path: Path) -> bool:
        """
        Export configuration to file.

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(export_path, 'w') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            print(f"[Config] Error exporting config: {e}")
            return False

    def import_config(self, import_path: Path) -> bool:
        """
        Import configuration from file, merged over the defaults.

        Returns:
            True if successful, False otherwise
        """
        try:
            with open(import_path, 'r') as f:
                imported = json.load(f)
        except (OSError, ValueError) as e:
            print(f"[Config] Error importing config: {e}")
            return False

        if not isinstance(imported, dict):
            print("[Config] Error importing config: top level must be an object")
            return False

        self.config = self._merge_configs(self.DEFAULT_CONFIG, imported)
        return self.save()

    def to_settings(self, environ: Optional[Mapping[str, str]] = None) -> ServiceSettings:
        """
        Build the settings injected into the AccountService.

        Args:
            environ: Environment to read secrets from (defaults to os.environ)

        Returns:
            ServiceSettings instance
        """
        env = os.environ if environ is None else environ
        return ServiceSettings(
            service_name=self.get('service.name', ServiceSettings.service_name),
            token_secret=env.get(ENV_TOKEN_SECRET, ""),
            admin_secret=env.get(ENV_ADMIN_SECRET) or None,
            otp_digits=int(self.get('otp.digits', 6)),
            otp_interval_seconds=int(self.get('otp.interval_seconds', 30)),
            otp_valid_window=int(self.get('otp.valid_window', 1)),
            reject_code_reuse=bool(self.get('otp.reject_code_reuse', True)),
            recovery_validity_seconds=int(self.get('recovery.validity_seconds', 3600)),
            session_lifetime_seconds=int(self.get('session.lifetime_seconds', 3600)),
            session_algorithm=self.get('session.algorithm', 'HS256'),
            max_write_attempts=max(1, int(self.get('store.max_write_attempts', 3))),
            mail_sender=self.get('delivery.sender', ServiceSettings.mail_sender),
        )

    def to_smtp_settings(self, environ: Optional[Mapping[str, str]] = None) -> SMTPSettings:
        """Build SMTP settings from the delivery section and the environment."""
        env = os.environ if environ is None else environ
        return SMTPSettings(
            host=self.get('delivery.smtp_host', 'localhost'),
            port=int(self.get('delivery.smtp_port', 587)),
            use_tls=bool(self.get('delivery.use_tls', True)),
            username=env.get(ENV_SMTP_USER) or None,
            password=env.get(ENV_SMTP_PASSWORD) or None,
            timeout_seconds=int(self.get('delivery.timeout_seconds', 30)),
            max_retries=max(1, int(self.get('delivery.max_retries', 3))),
        )

    def store_passphrase(self, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        env = os.environ if environ is None else environ
        return env.get(ENV_STORE_PASSPHRASE) or None
