"""
Shared test helpers.

Plain classes and constants used by fixtures and test modules alike:
clocks, notification recorders and ledger doubles that force write conflicts.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta

from src.adapters.repository.memory import InMemoryAccountLedger
from src.domain.exceptions import DependencyError
from src.domain.models import Account

TEST_SIGNING_KEY = "test-signing-key-with-at-least-32-bytes!!"

ALICE_EMAIL = "alice@x.com"
ALICE_PASSWORD = "Secret123!"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotificationGateway:
    """Captures links instead of sending them; can be told to fail."""

    def __init__(self) -> None:
        self.verification_links: list[tuple[str, str]] = []
        self.reset_links: list[tuple[str, str]] = []
        self.fail = False

    async def send_verification_link(self, email: str, token: str) -> None:
        if self.fail:
            raise DependencyError("SMTP relay unreachable")
        self.verification_links.append((email, token))

    async def send_password_reset_link(self, email: str, token: str) -> None:
        if self.fail:
            raise DependencyError("SMTP relay unreachable")
        self.reset_links.append((email, token))


class YieldingLedger(InMemoryAccountLedger):
    """In-memory ledger that yields to the event loop after every read, so writers interleave."""

    async def find_by_id(self, account_id: str) -> Account | None:
        account = await super().find_by_id(account_id)
        await asyncio.sleep(0)
        return account

    async def find_by_email(self, email: str) -> Account | None:
        account = await super().find_by_email(email)
        await asyncio.sleep(0)
        return account


class InterferingLedger(InMemoryAccountLedger):
    """
    In-memory ledger where another writer commits right after a read.

    Each find_* call bumps the stored version of the account it returns,
    so the caller's next update() conflicts. `interference` limits how
    many reads are sabotaged.
    """

    def __init__(self, interference: int = 0) -> None:
        super().__init__()
        self.interference = interference
        self.conflicting_writes = 0

    async def find_by_id(self, account_id: str) -> Account | None:
        account = await super().find_by_id(account_id)
        await self._interfere(account)
        return account

    async def find_by_email(self, email: str) -> Account | None:
        account = await super().find_by_email(email)
        await self._interfere(account)
        return account

    async def _interfere(self, account: Account | None) -> None:
        if account is None or self.interference <= 0:
            return
        self.interference -= 1
        self.conflicting_writes += 1
        await super().update(replace(account))
