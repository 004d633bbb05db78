#!/usr/bin/env python3
"""
SMTP delivery channel.
"""

import smtplib
import ssl
import time
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

from otpaccount.delivery.base import DeliveryChannel
from otpaccount.errors import DeliveryError
from otpaccount.utils.config import SMTPSettings


class SMTPDeliveryChannel(DeliveryChannel):
    """Sends plain-text e-mail through an SMTP relay, retrying transient failures."""

    def __init__(self, settings: SMTPSettings, sender: str, sender_name: str = None):
        self.settings = settings
        self.sender = sender
        self.sender_name = sender_name

    def _create_message(self, to: str, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = formataddr((self.sender_name, self.sender)) if self.sender_name else self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        return msg

    def send(self, to: str, subject: str, body: str):
        msg = self._create_message(to, subject, body)
        last_error = None

        for attempt in range(1, self.settings.max_retries + 1):
            try:
                with smtplib.SMTP(self.settings.host, self.settings.port,
                                  timeout=self.settings.timeout_seconds) as server:
                    if self.settings.use_tls:
                        server.starttls(context=ssl.create_default_context())
                    if self.settings.username:
                        server.login(self.settings.username, self.settings.password or "")
                    server.send_message(msg, to_addrs=[to])
                return
            except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused) as e:
                # Retrying will not help
                raise DeliveryError(f"SMTP delivery rejected: {e}") from e
            except (smtplib.SMTPException, OSError) as e:
                last_error = e
                print(f"[SMTPDelivery] Attempt {attempt} failed: {e}")
                if attempt < self.settings.max_retries:
                    time.sleep(self.settings.retry_delay_seconds)

        raise DeliveryError(f"SMTP delivery failed after {self.settings.max_retries} attempts") from last_error
