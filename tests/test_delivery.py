#!/usr/bin/env python3
"""
Unit tests for delivery channels.
"""

import io
import smtplib
import unittest
from unittest.mock import MagicMock, patch

from otpaccount.delivery import ConsoleDeliveryChannel, SMTPDeliveryChannel
from otpaccount.errors import DeliveryError
from otpaccount.utils.config import SMTPSettings


class TestConsoleDeliveryChannel(unittest.TestCase):

    def test_writes_message_to_stream(self):
        out = io.StringIO()
        ConsoleDeliveryChannel(stream=out).send("a@x.com", "Hello", "Your one-time code is: 123456")

        text = out.getvalue()
        self.assertIn("To: a@x.com", text)
        self.assertIn("Subject: Hello", text)
        self.assertIn("123456", text)

    def test_defaults_to_stdout(self):
        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            ConsoleDeliveryChannel().send("a@x.com", "Hello", "body")
        self.assertIn("To: a@x.com", stdout.getvalue())


class TestSMTPDeliveryChannel(unittest.TestCase):
    """Test cases for SMTPDeliveryChannel with smtplib mocked out."""

    def setUp(self):
        self.settings = SMTPSettings(host="mail.example.com", port=587, use_tls=True,
                                     username="mailer", password="pw",
                                     max_retries=3, retry_delay_seconds=0)
        self.channel = SMTPDeliveryChannel(self.settings, sender="no-reply@example.com",
                                           sender_name="ExampleService")
        patcher = patch('otpaccount.delivery.smtp.smtplib.SMTP')
        self.mock_smtp = patcher.start()
        self.addCleanup(patcher.stop)
        self.server = MagicMock()
        self.mock_smtp.return_value.__enter__.return_value = self.server

    def test_send_success(self):
        self.channel.send("a@x.com", "Your code", "Your one-time code is: 123456")

        self.mock_smtp.assert_called_once_with("mail.example.com", 587, timeout=30)
        self.server.starttls.assert_called_once()
        self.server.login.assert_called_once_with("mailer", "pw")
        self.server.send_message.assert_called_once()

        msg = self.server.send_message.call_args[0][0]
        self.assertEqual(msg["To"], "a@x.com")
        self.assertEqual(msg["Subject"], "Your code")
        self.assertIn("no-reply@example.com", msg["From"])
        self.assertIsNotNone(msg["Message-ID"])
        self.assertEqual(self.server.send_message.call_args[1]["to_addrs"], ["a@x.com"])

    def test_no_tls_no_login(self):
        settings = SMTPSettings(host="localhost", port=25, use_tls=False)
        SMTPDeliveryChannel(settings, sender="no-reply@example.com").send("a@x.com", "s", "b")

        self.server.starttls.assert_not_called()
        self.server.login.assert_not_called()
        self.server.send_message.assert_called_once()

    def test_transient_failure_is_retried(self):
        self.server.send_message.side_effect = [smtplib.SMTPServerDisconnected("gone"), {}]

        with patch('builtins.print'):
            self.channel.send("a@x.com", "s", "b")

        self.assertEqual(self.server.send_message.call_count, 2)

    def test_connection_error_is_retried(self):
        self.mock_smtp.side_effect = [ConnectionRefusedError("refused"), self.mock_smtp.return_value]

        with patch('builtins.print'):
            self.channel.send("a@x.com", "s", "b")

        self.assertEqual(self.mock_smtp.call_count, 2)

    def test_gives_up_after_max_retries(self):
        self.server.send_message.side_effect = smtplib.SMTPServerDisconnected("gone")

        with patch('builtins.print'):
            with self.assertRaises(DeliveryError):
                self.channel.send("a@x.com", "s", "b")

        self.assertEqual(self.server.send_message.call_count, 3)

    def test_authentication_error_not_retried(self):
        self.server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        with self.assertRaises(DeliveryError):
            self.channel.send("a@x.com", "s", "b")

        self.assertEqual(self.mock_smtp.call_count, 1)

    def test_recipient_refused_not_retried(self):
        self.server.send_message.side_effect = smtplib.SMTPRecipientsRefused({"a@x.com": (550, b"no")})

        with self.assertRaises(DeliveryError):
            self.channel.send("a@x.com", "s", "b")

        self.assertEqual(self.server.send_message.call_count, 1)


if __name__ == '__main__':
    unittest.main()
