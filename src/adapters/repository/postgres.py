"""
PostgreSQL repository adapter - Implements AccountLedger protocol.

This module provides the PostgreSQL implementation of the domain's
ledger port using psycopg3 (async pool) with raw SQL.

Concurrency Design - Optimistic Writes:
--------------------------------------
Every account row carries a version counter. update() issues a single
conditional statement:

    UPDATE accounts SET ..., version = version + 1
    WHERE id = %s AND version = %s

A rowcount of 0 means another writer committed first; the adapter raises
ConcurrencyConflictError and the domain service re-reads and retries.
Each write is one statement in one transaction, so a cancelled request
either committed or left no trace.

Uniqueness:
----------
A unique index on LOWER(email) enforces case-insensitive uniqueness;
UniqueViolation on insert is translated to DuplicateAccountError.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from src.domain.exceptions import (
    ConcurrencyConflictError,
    DependencyError,
    DuplicateAccountError,
)
from src.domain.models import Account

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, first_name, last_name, email, password_hash, password_salt,
    email_verified, two_factor_enabled, two_factor_secret, totp_last_step,
    refresh_token, refresh_token_expires_at, created_at, last_login_at, version
"""


@contextmanager
def _dependency_errors(operation: str) -> Iterator[None]:
    """Translate driver and pool failures into DependencyError."""
    try:
        yield
    except (psycopg.OperationalError, psycopg.InterfaceError, PoolTimeout) as e:
        logger.error("Ledger %s failed: %s", operation, e)
        raise DependencyError("Account storage is unavailable") from e


def _to_account(row: dict[str, Any]) -> Account:
    return Account(
        id=str(row["id"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        password_hash=bytes(row["password_hash"]),
        password_salt=bytes(row["password_salt"]),
        email_verified=row["email_verified"],
        two_factor_enabled=row["two_factor_enabled"],
        two_factor_secret=row["two_factor_secret"],
        totp_last_step=row["totp_last_step"],
        refresh_token=row["refresh_token"],
        refresh_token_expires_at=row["refresh_token_expires_at"],
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
        version=row["version"],
    )


class PostgresAccountLedger:
    """
    Implements AccountLedger protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 AsyncConnectionPool for database connections
        """
        self._pool = pool

    async def find_by_email(self, email: str) -> Account | None:
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE LOWER(email) = LOWER(%s)"
        return await self._fetch_one(sql, (email,))

    async def find_by_id(self, account_id: str) -> Account | None:
        try:
            uuid.UUID(account_id)
        except ValueError:
            return None
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE id = %s::uuid"
        return await self._fetch_one(sql, (account_id,))

    async def insert(self, account: Account) -> str:
        """
        Insert a new account row at version 0.

        Raises:
            DuplicateAccountError: Unique index on LOWER(email) violated
        """
        sql = """
            INSERT INTO accounts (
                id, first_name, last_name, email, password_hash, password_salt,
                email_verified, two_factor_enabled, two_factor_secret, totp_last_step,
                refresh_token, refresh_token_expires_at, created_at, last_login_at, version
            )
            VALUES (%s::uuid, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 0)
        """
        params = (
            account.id,
            account.first_name,
            account.last_name,
            account.email,
            account.password_hash,
            account.password_salt,
            account.email_verified,
            account.two_factor_enabled,
            account.two_factor_secret,
            account.totp_last_step,
            account.refresh_token,
            account.refresh_token_expires_at,
            account.created_at,
            account.last_login_at,
        )
        with _dependency_errors("insert"):
            async with self._pool.connection() as conn:
                try:
                    await conn.execute(sql, params)
                    await conn.commit()
                except errors.UniqueViolation:
                    await conn.rollback()
                    raise DuplicateAccountError(
                        "An account with this email already exists"
                    ) from None
        return account.id

    async def update(self, account: Account) -> None:
        """
        Conditionally write every mutable column.

        Raises:
            ConcurrencyConflictError: Stored version differs or row is gone
        """
        sql = """
            UPDATE accounts
            SET first_name = %s,
                last_name = %s,
                password_hash = %s,
                password_salt = %s,
                email_verified = %s,
                two_factor_enabled = %s,
                two_factor_secret = %s,
                totp_last_step = %s,
                refresh_token = %s,
                refresh_token_expires_at = %s,
                last_login_at = %s,
                version = version + 1
            WHERE id = %s::uuid AND version = %s
        """
        params = (
            account.first_name,
            account.last_name,
            account.password_hash,
            account.password_salt,
            account.email_verified,
            account.two_factor_enabled,
            account.two_factor_secret,
            account.totp_last_step,
            account.refresh_token,
            account.refresh_token_expires_at,
            account.last_login_at,
            account.id,
            account.version,
        )
        with _dependency_errors("update"):
            async with self._pool.connection() as conn, conn.cursor() as cursor:
                await cursor.execute(sql, params)
                await conn.commit()
                updated = cursor.rowcount == 1

        if not updated:
            raise ConcurrencyConflictError("Account was modified concurrently")

    async def _fetch_one(self, sql: str, params: tuple) -> Account | None:
        with _dependency_errors("read"):
            async with self._pool.connection() as conn, conn.cursor(
                row_factory=dict_row
            ) as cursor:
                await cursor.execute(sql, params)
                row = await cursor.fetchone()
                await conn.commit()
        return _to_account(row) if row is not None else None


async def run_migrations(pool: AsyncConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 AsyncConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            async with pool.connection() as conn:
                await conn.execute(sql_content)
                await conn.commit()

            logger.info(f"Migration complete: {sql_file.name}")
        except psycopg.Error as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
