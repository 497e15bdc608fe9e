"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Every call runs in its own transaction on a pooled connection: committed on
success, rolled back when an error escapes. The UNIQUE constraint on email
is the final arbiter of concurrent registrations for the same address.

Opaque tokens are consumed with a conditional UPDATE that re-checks the
token and its expiry under the row lock, so a token is spent at most once
however many requests present it concurrently. Profile updates never write
token columns and cannot resurrect a consumed token.

Driver errors are logged and surfaced as ServerError so no storage detail
reaches callers.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool

from src.domain.exceptions import EmailExist, ServerError
from src.domain.ports import Account, UserRole

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, name, email, password_hash, role, verified,
    verification_token, verification_token_expires_at,
    password_reset_token, password_reset_token_expires_at,
    created_at, updated_at
"""


def _row_to_account(row: tuple) -> Account:
    """Map a SELECT of _COLUMNS to an Account."""
    return Account(
        id=row[0],
        name=row[1],
        email=row[2],
        password_hash=row[3],
        role=UserRole.from_str(row[4]),
        verified=row[5],
        verification_token=row[6],
        verification_token_expires_at=row[7],
        password_reset_token=row[8],
        password_reset_token_expires_at=row[9],
        created_at=row[10],
        updated_at=row[11],
    )


def _account_params(account: Account) -> tuple:
    """Bind values for _COLUMNS in order."""
    return (
        account.id,
        account.name,
        account.email,
        account.password_hash,
        account.role.to_str(),
        account.verified,
        account.verification_token,
        account.verification_token_expires_at,
        account.password_reset_token,
        account.password_reset_token_expires_at,
        account.created_at,
        account.updated_at,
    )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate driver errors into ServerError."""
    try:
        yield
    except psycopg.Error as e:
        logger.exception("Storage failure during %s", operation)
        raise ServerError() from e


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

    def find_account_by_email(self, email: str) -> Account | None:
        return self._find_one("email", email)

    def find_account_by_id(self, account_id: uuid.UUID) -> Account | None:
        return self._find_one("id", account_id)

    def find_account_by_verification_token(self, token: str) -> Account | None:
        return self._find_one("verification_token", token)

    def find_account_by_reset_token(self, token: str) -> Account | None:
        return self._find_one("password_reset_token", token)

    def insert_account(self, account: Account) -> Account:
        """
        Insert a new account row.

        Raises:
            EmailExist: If another account already holds the email
            ServerError: On any other storage failure
        """
        sql = f"""
            INSERT INTO accounts ({_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS}
        """

        with _storage_errors("insert_account"):
            try:
                with self._pool.connection() as conn, conn.cursor() as cursor:
                    cursor.execute(sql, _account_params(account))
                    row = cursor.fetchone()
                    conn.commit()
            except errors.UniqueViolation:
                raise EmailExist() from None
        return _row_to_account(row)

    def update_account(self, account: Account) -> Account:
        """
        Overwrite the profile columns of an existing account.

        Raises:
            ServerError: If the row is gone or storage fails
        """
        sql = f"""
            UPDATE accounts
            SET name = %s,
                email = %s,
                password_hash = %s,
                role = %s,
                updated_at = %s
            WHERE id = %s
            RETURNING {_COLUMNS}
        """
        params = (
            account.name,
            account.email,
            account.password_hash,
            account.role.to_str(),
            account.updated_at,
            account.id,
        )

        row = self._execute_returning("update_account", sql, params)
        if row is None:
            logger.error("Update of missing account %s", account.id)
            raise ServerError()
        return _row_to_account(row)

    def store_reset_token(
        self,
        account_id: uuid.UUID,
        token: str,
        expires_at: datetime,
        updated_at: datetime,
    ) -> Account:
        """
        Replace the outstanding reset token of an account.

        Raises:
            ServerError: If the row is gone or storage fails
        """
        sql = f"""
            UPDATE accounts
            SET password_reset_token = %s,
                password_reset_token_expires_at = %s,
                updated_at = %s
            WHERE id = %s
            RETURNING {_COLUMNS}
        """

        row = self._execute_returning(
            "store_reset_token", sql, (token, expires_at, updated_at, account_id)
        )
        if row is None:
            logger.error("Reset token stored for missing account %s", account_id)
            raise ServerError()
        return _row_to_account(row)

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        """
        Verify the account holding an unexpired token and clear the token.

        The token match and expiry are re-checked in the UPDATE's WHERE
        clause, so of two concurrent calls with one token only the first
        to take the row lock gets a row back.
        """
        sql = f"""
            UPDATE accounts
            SET verified = TRUE,
                verification_token = NULL,
                verification_token_expires_at = NULL,
                updated_at = %s
            WHERE verification_token = %s
              AND verification_token_expires_at > %s
            RETURNING {_COLUMNS}
        """

        row = self._execute_returning("consume_verification_token", sql, (now, token, now))
        return _row_to_account(row) if row is not None else None

    def consume_reset_token(
        self, token: str, password_hash: str, now: datetime
    ) -> Account | None:
        """
        Set a new password hash on the account holding an unexpired reset
        token and clear the token, in one conditional UPDATE.
        """
        sql = f"""
            UPDATE accounts
            SET password_hash = %s,
                password_reset_token = NULL,
                password_reset_token_expires_at = NULL,
                updated_at = %s
            WHERE password_reset_token = %s
              AND password_reset_token_expires_at > %s
            RETURNING {_COLUMNS}
        """

        row = self._execute_returning(
            "consume_reset_token", sql, (password_hash, now, token, now)
        )
        return _row_to_account(row) if row is not None else None

    def list_accounts(self, limit: int, offset: int) -> list[Account]:
        sql = f"""
            SELECT {_COLUMNS}
            FROM accounts
            ORDER BY created_at DESC, id
            LIMIT %s OFFSET %s
        """

        with _storage_errors("list_accounts"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (limit, offset))
                rows = cursor.fetchall()
        return [_row_to_account(row) for row in rows]

    def count_accounts(self) -> int:
        with _storage_errors("count_accounts"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute("SELECT COUNT(*) FROM accounts")
                row = cursor.fetchone()
        return row[0]

    def _execute_returning(self, operation: str, sql: str, params: tuple) -> tuple | None:
        """Run one write statement with RETURNING in its own transaction."""
        with _storage_errors(operation):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, params)
                row = cursor.fetchone()
                conn.commit()
        return row

    def _find_one(self, column: str, value: object) -> Account | None:
        # column is always one of the literals above, never caller input
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE {column} = %s"

        with _storage_errors(f"find by {column}"):
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (value,))
                row = cursor.fetchone()
        return _row_to_account(row) if row is not None else None


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
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
                conn.commit()

            logger.info("Migration complete: %s", sql_file.name)
        except psycopg.Error as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
