"""
Console notification adapter - Implements NotificationGateway protocol.

This module provides a console-based implementation of the domain's
notification port, logging verification and reset links to stdout
for demo purposes.
"""

import logging
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


class ConsoleNotificationGateway:
    """
    Implements NotificationGateway protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints links to stdout.
    """

    def __init__(self, frontend_url: str) -> None:
        """
        Args:
            frontend_url: Base URL of the frontend serving the link targets
        """
        self._frontend_url = frontend_url.rstrip("/")

    def build_link(self, path: str, email: str, token: str) -> str:
        return f"{self._frontend_url}/{path}?{urlencode({'token': token, 'email': email})}"

    async def send_verification_link(self, email: str, token: str) -> None:
        """
        Log the verification link (simulates email delivery).

        In production, this would be replaced with an SMTP or API adapter.
        Logged at INFO level to be visible in docker-compose logs.
        """
        link = self.build_link("verify-email", email, token)
        logger.info("[VERIFICATION] Email: %s Link: %s", email, link)

    async def send_password_reset_link(self, email: str, token: str) -> None:
        """Log the password reset link (simulates email delivery)."""
        link = self.build_link("reset-password", email, token)
        logger.info("[PASSWORD RESET] Email: %s Link: %s", email, link)
