"""Repository adapters - Ledger implementations."""

from .memory import InMemoryAccountLedger
from .postgres import PostgresAccountLedger, run_migrations

__all__ = ["InMemoryAccountLedger", "PostgresAccountLedger", "run_migrations"]
