"""
In-memory repository adapter - Implements AccountLedger protocol.

Process-local storage for development and tests. Writes are atomic
because no await point separates the version check from the store.
Accounts are copied on the way in and out, so callers never share
mutable state with the ledger.
"""

from dataclasses import replace

from src.domain.exceptions import ConcurrencyConflictError, DuplicateAccountError
from src.domain.models import Account


class InMemoryAccountLedger:
    """
    Implements AccountLedger protocol with dictionaries.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._ids_by_email: dict[str, str] = {}

    async def find_by_email(self, email: str) -> Account | None:
        account_id = self._ids_by_email.get(email.lower())
        if account_id is None:
            return None
        return replace(self._accounts[account_id])

    async def find_by_id(self, account_id: str) -> Account | None:
        account = self._accounts.get(account_id)
        return replace(account) if account is not None else None

    async def insert(self, account: Account) -> str:
        key = account.email.lower()
        if key in self._ids_by_email or account.id in self._accounts:
            raise DuplicateAccountError("An account with this email already exists")
        self._accounts[account.id] = replace(account, version=0)
        self._ids_by_email[key] = account.id
        return account.id

    async def update(self, account: Account) -> None:
        stored = self._accounts.get(account.id)
        if stored is None or stored.version != account.version:
            raise ConcurrencyConflictError("Account was modified concurrently")
        self._accounts[account.id] = replace(account, version=account.version + 1)
