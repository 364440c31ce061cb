"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Atomicity Design:
-----------------
1. **Registration**: collision lookup, resurrection deletes and the
   account + stage tracker inserts run in ONE transaction. Matching
   account rows and then their tracker rows are locked with
   SELECT ... FOR UPDATE, and the terminal check reads the locked values,
   so a concurrent completion of either marker cannot slip between the
   check and the delete.

2. **Duplicate submissions**: the unique indexes on LOWER(email),
   LOWER(handle) and phone_number are the final arbiter. A concurrent
   insert that loses the race raises UniqueViolation, which is mapped to
   ClaimResult.ALREADY_EXISTS after the transaction rolls back.

3. **Stage writes**: single-row compare-and-swap
   (UPDATE ... WHERE id = %s AND stage = %s). A write based on a stale
   read matches zero rows instead of moving the marker backwards.

4. **Reaper deletes**: one transaction per account, re-checking the
   non-terminal and age conditions under row locks.
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

from psycopg import errors, sql
from psycopg_pool import ConnectionPool

from src.domain.exceptions import AccountAlreadyExists, ValidationFailed
from src.domain.ports import (
    AccountRecord,
    AccountStage,
    ClaimOutcome,
    ClaimResult,
    IdentityField,
    NewAccount,
    SignupStatus,
    TERMINAL_STAGES,
    TERMINAL_STATUSES,
)

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = """
    id, email, handle, phone_number, full_name, stage,
    has_agreed_to_terms, has_completed_payment, profile_completed,
    is_admin, subscription_ref, subscription_status
"""

# Domain profile field -> accounts column
_PROFILE_COLUMNS = {
    "full_name": "full_name",
    "company_name": "company_name",
    "phone_number": "phone_number",
    "industry": "industry",
    "title": "title",
    "location": "location",
    "bio": "bio",
    "linkedin": "linkedin_url",
    "website": "website_url",
    "twitter": "twitter_url",
    "instagram": "instagram_url",
    "do_follow": "do_follow_link",
}

_OPEN_STAGES = [
    stage.value for stage in AccountStage if stage not in TERMINAL_STAGES
]
_COMPLETED_STATUS = next(iter(TERMINAL_STATUSES)).value

# Identity field -> WHERE clause matching a normalized value
_IDENTITY_MATCH = {
    IdentityField.USERNAME: "LOWER(handle) = %s",
    IdentityField.EMAIL: "LOWER(email) = %s",
    IdentityField.PHONE: "regexp_replace(phone_number, '\\D', '', 'g') = %s",
}


def _row_to_account(row: tuple) -> AccountRecord:
    return AccountRecord(
        id=row[0],
        email=row[1],
        handle=row[2],
        phone_number=row[3],
        full_name=row[4],
        stage=AccountStage(row[5]),
        has_agreed_to_terms=row[6],
        has_completed_payment=row[7],
        profile_completed=row[8],
        is_admin=row[9],
        subscription_ref=row[10],
        subscription_status=row[11],
    )


def _is_terminal(stage: str, status: str | None) -> bool:
    """
    Terminal accounts are protected from resurrection and reaping.

    A matched account without a tracker row predates stage tracking and
    is treated as terminal.
    """
    if status is None:
        return True
    return AccountStage(stage) in TERMINAL_STAGES or SignupStatus(status) in TERMINAL_STATUSES


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def claim_identity(self, account: NewAccount) -> ClaimOutcome:
        """
        Atomically create an account + stage tracker pair.

        Incomplete registrations sharing the email, handle or phone are
        deleted in the same transaction (resurrection). Any terminal match
        blocks the claim and nothing is modified.

        Args:
            account: Normalized registration data with hashed password

        Returns:
            ClaimOutcome with CREATED, RESURRECTED or ALREADY_EXISTS
        """
        select_sql = """
            SELECT id, stage
            FROM accounts
            WHERE LOWER(email) = LOWER(%s)
               OR LOWER(handle) = LOWER(%s)
               OR phone_number = %s
            FOR UPDATE
        """

        lock_state_sql = """
            SELECT account_id, status
            FROM signup_state
            WHERE account_id = ANY(%s)
            FOR UPDATE
        """

        insert_account_sql = """
            INSERT INTO accounts (
                email, handle, phone_number, password_hash, full_name,
                company_name, industry, stage, has_agreed_to_terms, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, TRUE, NOW())
            RETURNING id
        """

        insert_state_sql = """
            INSERT INTO signup_state (account_id, status, updated_at)
            VALUES (%s, %s, NOW())
        """

        try:
            with self._pool.connection() as conn, conn.transaction():
                matches = conn.execute(
                    select_sql, (account.email, account.handle, account.phone_number)
                ).fetchall()
                removed_ids = tuple(row[0] for row in matches)

                locked_statuses = dict(
                    conn.execute(lock_state_sql, (list(removed_ids),)).fetchall()
                    if removed_ids
                    else []
                )

                if any(
                    _is_terminal(stage, locked_statuses.get(account_id))
                    for account_id, stage in matches
                ):
                    return ClaimOutcome(ClaimResult.ALREADY_EXISTS)

                if removed_ids:
                    conn.execute(
                        "DELETE FROM signup_state WHERE account_id = ANY(%s)",
                        (list(removed_ids),),
                    )
                    conn.execute("DELETE FROM accounts WHERE id = ANY(%s)", (list(removed_ids),))

                row = conn.execute(
                    insert_account_sql,
                    (
                        account.email,
                        account.handle,
                        account.phone_number,
                        account.password_hash,
                        account.full_name,
                        account.company_name,
                        account.industry,
                        AccountStage.PAYMENT.value,
                    ),
                ).fetchone()
                account_id = row[0]
                conn.execute(insert_state_sql, (account_id, SignupStatus.PAYMENT.value))
        except errors.UniqueViolation:
            # Lost the race against a concurrent registration for the same identity
            logger.info("Concurrent registration rejected for %s", account.email)
            return ClaimOutcome(ClaimResult.ALREADY_EXISTS)

        result = ClaimResult.RESURRECTED if removed_ids else ClaimResult.CREATED
        return ClaimOutcome(result, account_id=account_id, removed_ids=removed_ids)

    def get_account(self, email: str) -> AccountRecord | None:
        """Fetch an account by email (case-insensitive)."""
        query = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE LOWER(email) = LOWER(%s)"
        with self._pool.connection() as conn:
            row = conn.execute(query, (email,)).fetchone()
        return _row_to_account(row) if row is not None else None

    def is_identity_taken(self, field: IdentityField, value: str) -> bool:
        """
        Check whether an account already holds the identity value.

        Phone numbers are compared on their digits only, so "+1 555-0100"
        and "15550100" are the same number.
        """
        query = f"SELECT EXISTS (SELECT 1 FROM accounts WHERE {_IDENTITY_MATCH[field]})"
        with self._pool.connection() as conn:
            return conn.execute(query, (value,)).fetchone()[0]

    def update_stage(
        self,
        account_id: int,
        expected: AccountStage,
        new: AccountStage,
        *,
        payment_completed: bool = False,
        subscription_ref: str | None = None,
    ) -> bool:
        """
        Compare-and-swap the account stage.

        Returns:
            True if the stored stage still equaled ``expected`` and was updated
        """
        update_sql = """
            UPDATE accounts
            SET stage = %(new)s,
                has_completed_payment = has_completed_payment OR %(payment_completed)s,
                subscription_ref = COALESCE(%(subscription_ref)s, subscription_ref),
                subscription_status = CASE
                    WHEN %(subscription_ref)s::text IS NULL THEN subscription_status
                    ELSE 'active'
                END
            WHERE id = %(id)s AND stage = %(expected)s
        """
        params = {
            "new": new.value,
            "payment_completed": payment_completed,
            "subscription_ref": subscription_ref,
            "id": account_id,
            "expected": expected.value,
        }
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(update_sql, params)
            conn.commit()
            return cursor.rowcount == 1

    def get_signup_status(self, account_id: int) -> SignupStatus | None:
        """Fetch the stage tracker status for an account."""
        with self._pool.connection() as conn:
            row = conn.execute(
                "SELECT status FROM signup_state WHERE account_id = %s", (account_id,)
            ).fetchone()
        return SignupStatus(row[0]) if row is not None else None

    def update_signup_status(
        self, account_id: int, expected: SignupStatus, new: SignupStatus
    ) -> bool:
        """Compare-and-swap the tracker status and stamp updated_at."""
        update_sql = """
            UPDATE signup_state
            SET status = %s, updated_at = NOW()
            WHERE account_id = %s AND status = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(update_sql, (new.value, account_id, expected.value))
            conn.commit()
            return cursor.rowcount == 1

    def update_profile(self, account_id: int, fields: dict[str, Any]) -> None:
        """
        Persist profile fields and set profile_completed.

        Raises:
            AccountAlreadyExists: If the phone number belongs to another account
            ValidationFailed: If a mandatory column would become NULL
        """
        columns = [_PROFILE_COLUMNS[key] for key in fields]
        update_sql = sql.SQL(
            "UPDATE accounts SET {assignments}, profile_completed = TRUE WHERE id = %s"
        ).format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(column)) for column in columns
            )
        )
        try:
            with self._pool.connection() as conn:
                conn.execute(update_sql, (*fields.values(), account_id))
        except errors.UniqueViolation:
            raise AccountAlreadyExists("Phone number already in use") from None
        except errors.NotNullViolation:
            raise ValidationFailed("Full name and phone number cannot be empty") from None

    def complete_account(self, account_id: int) -> AccountRecord | None:
        """
        Mark the account ready with a completed profile.

        A LEGACY stage is kept as is, READY is never written over a later stage.
        """
        update_sql = f"""
            UPDATE accounts
            SET stage = CASE WHEN stage = 'legacy' THEN stage ELSE 'ready' END,
                profile_completed = TRUE
            WHERE id = %s
            RETURNING {_ACCOUNT_COLUMNS}
        """
        with self._pool.connection() as conn:
            row = conn.execute(update_sql, (account_id,)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_abandoned(self, retention_seconds: int) -> list[int]:
        """
        Ids of open signups created more than ``retention_seconds`` ago.

        Accounts without a tracker row predate stage tracking and are never
        candidates.
        """
        select_sql = """
            SELECT a.id
            FROM accounts a
            JOIN signup_state s ON s.account_id = a.id
            WHERE a.stage = ANY(%s)
              AND s.status <> %s
              AND a.created_at < NOW() - %s
            ORDER BY a.id
        """
        with self._pool.connection() as conn:
            rows = conn.execute(
                select_sql, (_OPEN_STAGES, _COMPLETED_STATUS, timedelta(seconds=retention_seconds))
            ).fetchall()
        return [row[0] for row in rows]

    def delete_abandoned(self, account_id: int, retention_seconds: int) -> bool:
        """
        Delete one abandoned account and its tracker row atomically.

        Both rows are locked and the conditions re-checked before deleting,
        so an account completed after find_abandoned() survives. An account
        without a tracker row is left alone.
        """
        lock_account_sql = """
            SELECT id FROM accounts
            WHERE id = %s
              AND stage = ANY(%s)
              AND created_at < NOW() - %s
            FOR UPDATE
        """
        lock_state_sql = "SELECT status FROM signup_state WHERE account_id = %s FOR UPDATE"

        with self._pool.connection() as conn, conn.transaction():
            locked = conn.execute(
                lock_account_sql, (account_id, _OPEN_STAGES, timedelta(seconds=retention_seconds))
            ).fetchone()
            if locked is None:
                return False

            state = conn.execute(lock_state_sql, (account_id,)).fetchone()
            if state is None or state[0] == _COMPLETED_STATUS:
                return False

            conn.execute("DELETE FROM signup_state WHERE account_id = %s", (account_id,))
            conn.execute("DELETE FROM accounts WHERE id = %s", (account_id,))
        return True


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
