"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from typing import Protocol

from .models import Account


class AccountLedger(Protocol):
    """
    Port interface for durable per-account state.

    Implementations must:
    - enforce case-insensitive email uniqueness
    - apply update() as a conditional write on Account.version
    - translate driver failures into DependencyError
    """

    async def find_by_email(self, email: str) -> Account | None:
        """
        Look up an account by normalized email.

        Args:
            email: Normalized (stripped, lowercased) email address

        Returns:
            The stored Account, or None if no account uses this email
        """
        ...

    async def find_by_id(self, account_id: str) -> Account | None:
        """Look up an account by its identifier."""
        ...

    async def insert(self, account: Account) -> str:
        """
        Persist a new account.

        Returns:
            The account identifier

        Raises:
            DuplicateAccountError: If the email is already registered
        """
        ...

    async def update(self, account: Account) -> None:
        """
        Persist a mutated account if nobody else wrote it first.

        The write succeeds only when the stored version equals
        account.version; the stored version is then incremented.

        Raises:
            ConcurrencyConflictError: If the stored version has moved on
                or the account no longer exists
        """
        ...


class NotificationGateway(Protocol):
    """Port interface for outbound verification and reset links."""

    async def send_verification_link(self, email: str, token: str) -> None:
        """
        Deliver an email-verification link.

        Raises:
            DependencyError: If delivery failed
        """
        ...

    async def send_password_reset_link(self, email: str, token: str) -> None:
        """
        Deliver a password-reset link.

        Raises:
            DependencyError: If delivery failed
        """
        ...
