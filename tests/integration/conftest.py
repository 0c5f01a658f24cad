"""
Shared fixtures for integration tests.

PostgreSQL-backed tests need DATABASE_URL to point at a reachable server
(docker-compose); they are skipped when none answers.
"""

from collections.abc import AsyncIterator

import psycopg
import pytest
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from src.adapters.repository.postgres import PostgresAccountLedger, run_migrations
from src.config.settings import get_settings


@pytest.fixture
async def pool() -> AsyncIterator[AsyncConnectionPool]:
    """Open a migrated pool with an empty accounts table."""
    settings = get_settings()
    pool = AsyncConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    try:
        await pool.open(wait=True, timeout=5)
    except (PoolTimeout, psycopg.OperationalError) as e:
        await pool.close()
        pytest.skip(f"PostgreSQL not reachable: {e}")

    await run_migrations(pool)
    async with pool.connection() as conn:
        await conn.execute("DELETE FROM accounts")
        await conn.commit()
    yield pool
    await pool.close()


@pytest.fixture
def pg_ledger(pool: AsyncConnectionPool) -> PostgresAccountLedger:
    return PostgresAccountLedger(pool)
