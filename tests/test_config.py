#!/usr/bin/env python3
"""
Unit tests for configuration module.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path

from otpaccount.utils.config import (
    Config,
    ENV_ADMIN_SECRET,
    ENV_SMTP_PASSWORD,
    ENV_SMTP_USER,
    ENV_STORE_PASSPHRASE,
    ENV_TOKEN_SECRET,
    ServiceSettings,
)


class TestConfig(unittest.TestCase):
    """Test cases for Config class."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = Path(tempfile.mkdtemp())
        self.config = Config(config_dir=self.test_dir)

    def tearDown(self):
        """Clean up test fixtures."""
        if self.test_dir.exists():
            shutil.rmtree(self.test_dir)

    def test_default_config_created(self):
        """Test that default config is created on first run."""
        self.assertTrue(self.config.config_file.exists())
        self.assertEqual(self.config.get('otp.valid_window'), 1)
        self.assertEqual(self.config.get('recovery.validity_seconds'), 3600)

    def test_no_secrets_in_config_file(self):
        content = self.config.config_file.read_text()
        self.assertNotIn('secret', content.lower())

    def test_get_nonexistent_key_with_default(self):
        self.assertEqual(self.config.get('nonexistent.key', 'default_value'), 'default_value')

    def test_set_value(self):
        self.assertTrue(self.config.set('otp.valid_window', 2))
        self.assertEqual(self.config.get('otp.valid_window'), 2)

        # Persisted to disk
        reloaded = Config(config_dir=self.test_dir)
        self.assertEqual(reloaded.get('otp.valid_window'), 2)

    def test_set_new_section(self):
        self.config.set('custom.nested.value', 'x')
        self.assertEqual(self.config.get('custom.nested.value'), 'x')

    def test_partial_file_merged_with_defaults(self):
        with open(self.config.config_file, 'w') as f:
            json.dump({'otp': {'digits': 8}}, f)

        config = Config(config_dir=self.test_dir)
        self.assertEqual(config.get('otp.digits'), 8)
        self.assertEqual(config.get('otp.interval_seconds'), 30)
        self.assertEqual(config.get('session.lifetime_seconds'), 3600)

    def test_corrupted_file_uses_defaults(self):
        self.config.config_file.write_text("{not json")
        config = Config(config_dir=self.test_dir)
        self.assertEqual(config.config, Config.DEFAULT_CONFIG)

    def test_reset_to_defaults(self):
        self.config.set('otp.valid_window', 3)
        self.config.reset_to_defaults()
        self.assertEqual(self.config.get('otp.valid_window'), 1)

    def test_export_import(self):
        self.config.set('otp.valid_window', 2)
        export_path = self.test_dir / "exported.json"
        self.assertTrue(self.config.export_config(export_path))

        other_dir = Path(tempfile.mkdtemp())
        try:
            other = Config(config_dir=other_dir)
            self.assertTrue(other.import_config(export_path))
            self.assertEqual(other.get('otp.valid_window'), 2)
        finally:
            shutil.rmtree(other_dir)

    def test_import_invalid_file(self):
        bad = self.test_dir / "bad.json"
        bad.write_text("[1, 2]")
        self.assertFalse(self.config.import_config(bad))
        self.assertFalse(self.config.import_config(self.test_dir / "missing.json"))
        self.assertEqual(self.config.get('otp.valid_window'), 1)

    def test_to_settings(self):
        self.config.set('service.name', 'ExampleService')
        self.config.set('otp.reject_code_reuse', False)
        settings = self.config.to_settings({ENV_TOKEN_SECRET: 'sign', ENV_ADMIN_SECRET: 'admin'})

        self.assertIsInstance(settings, ServiceSettings)
        self.assertEqual(settings.service_name, 'ExampleService')
        self.assertEqual(settings.token_secret, 'sign')
        self.assertEqual(settings.admin_secret, 'admin')
        self.assertFalse(settings.reject_code_reuse)
        self.assertEqual(settings.recovery_validity_seconds, 3600)
        self.assertEqual(settings.max_write_attempts, 3)

    def test_to_settings_without_admin_secret(self):
        settings = self.config.to_settings({ENV_ADMIN_SECRET: ''})
        self.assertIsNone(settings.admin_secret)
        self.assertEqual(settings.token_secret, '')

    def test_settings_repr_hides_secrets(self):
        settings = self.config.to_settings({ENV_TOKEN_SECRET: 'sign-me', ENV_ADMIN_SECRET: 'admin-pw'})
        self.assertNotIn('sign-me', repr(settings))
        self.assertNotIn('admin-pw', repr(settings))

    def test_to_smtp_settings(self):
        self.config.set('delivery.smtp_host', 'mail.example.com')
        smtp = self.config.to_smtp_settings({ENV_SMTP_USER: 'mailer', ENV_SMTP_PASSWORD: 'pw'})

        self.assertEqual(smtp.host, 'mail.example.com')
        self.assertEqual(smtp.port, 587)
        self.assertEqual(smtp.username, 'mailer')
        self.assertEqual(smtp.password, 'pw')
        self.assertNotIn("'pw'", repr(smtp))

    def test_store_passphrase(self):
        self.assertEqual(self.config.store_passphrase({ENV_STORE_PASSPHRASE: 'p'}), 'p')
        self.assertIsNone(self.config.store_passphrase({}))


if __name__ == '__main__':
    unittest.main()
