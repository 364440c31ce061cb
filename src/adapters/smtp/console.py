"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging welcome messages to stdout for demo purposes.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints welcome notices to stdout.
    """

    def send_welcome(self, email: str, full_name: str) -> None:
        """
        Log the welcome notice to console (simulates email delivery).

        In production, this would be replaced with an SMTP adapter.
        Logged at INFO level to be visible in the service logs.

        Args:
            email: Recipient email address (normalized by domain layer)
            full_name: Display name used in the greeting
        """
        logger.info("[WELCOME] Email: %s Name: %s", email, full_name)
