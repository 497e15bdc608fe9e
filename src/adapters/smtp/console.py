"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging account emails to stdout for demo purposes.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints tokens to stdout.
    """

    def send_verification_email(self, email: str, name: str, token: str) -> None:
        """
        Log the verification token (simulates email delivery).

        In production, this would be replaced with an SMTP adapter.
        Logged at INFO level to be visible in docker-compose logs.

        Args:
            email: Recipient email address (normalized by domain layer)
            name: Account display name
            token: Opaque verification token
        """
        logger.info("[VERIFICATION] Email: %s Name: %s Token: %s", email, name, token)

    def send_welcome_email(self, email: str, name: str) -> None:
        logger.info("[WELCOME] Email: %s Name: %s", email, name)

    def send_password_reset_email(self, email: str, name: str, token: str) -> None:
        """Log the password reset token (simulates email delivery)."""
        logger.info("[PASSWORD RESET] Email: %s Name: %s Token: %s", email, name, token)
