#!/usr/bin/env python3
"""
Delivery channels carry codes and recovery tokens to the account owner.
"""

import sys
from typing import TextIO


class DeliveryChannel:
    """Interface every delivery channel implements."""

    def send(self, to: str, subject: str, body: str):
        """
        Deliver a message.

        Raises:
            DeliveryError: The message could not be delivered
        """
        raise NotImplementedError


class ConsoleDeliveryChannel(DeliveryChannel):
    """Writes messages to a stream instead of sending them. For local use only."""

    def __init__(self, stream: TextIO = None):
        self.stream = stream

    def send(self, to: str, subject: str, body: str):
        out = self.stream or sys.stdout
        print("=" * 60, file=out)
        print(f"To: {to}", file=out)
        print(f"Subject: {subject}", file=out)
        print("", file=out)
        print(body, file=out)
        print("=" * 60, file=out)
