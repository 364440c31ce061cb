"""
Shared fixtures for integration tests.

Requires PostgreSQL to be running at DATABASE_URL. Tests are skipped when
the database cannot be reached.
"""

from collections.abc import Callable, Generator
from datetime import timedelta

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.postgres import PostgresAccountRepository, run_migrations
from src.config.settings import get_settings
from src.domain.ports import NewAccount


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests and apply migrations."""
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=True)
    try:
        pool.wait(timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def repository(pool: ConnectionPool, clean_database: None) -> PostgresAccountRepository:
    """Create repository instance for each test."""
    return PostgresAccountRepository(pool)


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean account tables before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM signup_state")
        conn.execute("DELETE FROM accounts")
    yield


def new_account(
    email: str = "expert@example.com",
    handle: str = "expert01",
    phone: str = "+15550001",
) -> NewAccount:
    return NewAccount(
        email=email,
        handle=handle,
        phone_number=phone,
        password_hash="$2b$04$integrationhashvalue",
        full_name=handle,
    )


@pytest.fixture
def make_account() -> Callable[..., NewAccount]:
    """Factory for registration data; keyword overrides for email/handle/phone."""
    return new_account


@pytest.fixture
def backdate(pool: ConnectionPool) -> Callable[[int, int], None]:
    """Move an account's created_at the given number of minutes into the past."""

    def _backdate(account_id: int, minutes: int) -> None:
        with pool.connection() as conn:
            conn.execute(
                "UPDATE accounts SET created_at = NOW() - %s WHERE id = %s",
                (timedelta(minutes=minutes), account_id),
            )

    return _backdate
