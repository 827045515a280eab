"""
PostgreSQL repository adapters - Implement the store protocols.

This module provides PostgreSQL implementations of the domain's store
ports using psycopg3 with raw SQL.

Concurrency Design - Single-Use Codes:
--------------------------------------
compare_and_delete issues a single ``DELETE ... WHERE email = %s AND
code = %s`` and reports success by rowcount. Postgres row locking makes
the statement atomic: of several concurrent transactions deleting the
same row, exactly one sees rowcount == 1.

Email uniqueness for accounts is enforced by a UNIQUE constraint; a
violation surfaces as EmailAlreadyRegistered. Every other psycopg error
is wrapped in StorageFailure so the domain never sees driver types.

Timing oracle prevention in check_credential follows the same rule as
the in-memory adapter: bcrypt always runs, against a dummy hash when the
email is unknown. Credentials over 72 UTF-8 bytes are rejected before
bcrypt sees them.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import bcrypt
import psycopg
from psycopg_pool import ConnectionPool

from src.domain.exceptions import EmailAlreadyRegistered, StorageFailure
from src.domain.models import (
    Account,
    PendingRegistration,
    VerificationPurpose,
    VerificationRecord,
    credential_fits,
)

from ._credentials import DUMMY_BCRYPT_HASH

logger = logging.getLogger(__name__)


@contextmanager
def _connect(pool: ConnectionPool, operation: str) -> Iterator[psycopg.Connection]:
    """Borrow a pooled connection, translating driver errors into StorageFailure."""
    try:
        with pool.connection() as conn:
            yield conn
    except psycopg.Error as e:
        logger.error("Storage operation failed: %s - %s", operation, e)
        raise StorageFailure(operation) from e


class PostgresVerificationStore:
    """
    Implements VerificationStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def put(self, record: VerificationRecord) -> None:
        """Upsert the record; last write wins."""
        sql = """
            INSERT INTO verification_codes (email, code, purpose, issued_at, expires_at)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (email) DO UPDATE
            SET code = EXCLUDED.code,
                purpose = EXCLUDED.purpose,
                issued_at = EXCLUDED.issued_at,
                expires_at = EXCLUDED.expires_at
        """
        params = (record.email, record.code, record.purpose.value, record.issued_at, record.expires_at)

        with _connect(self._pool, "verification.put") as conn:
            conn.execute(sql, params)
            conn.commit()

    def get(self, email: str) -> VerificationRecord | None:
        sql = """
            SELECT email, code, purpose, issued_at, expires_at
            FROM verification_codes
            WHERE email = %s
        """

        with _connect(self._pool, "verification.get") as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()

        if row is None:
            return None
        return VerificationRecord(
            email=row[0],
            code=row[1],
            purpose=VerificationPurpose(row[2]),
            issued_at=row[3],
            expires_at=row[4],
        )

    def delete(self, email: str) -> None:
        with _connect(self._pool, "verification.delete") as conn:
            conn.execute("DELETE FROM verification_codes WHERE email = %s", (email,))
            conn.commit()

    def compare_and_delete(self, email: str, code: str) -> bool:
        """Delete the row only if the stored code matches. True if deleted."""
        sql = "DELETE FROM verification_codes WHERE email = %s AND code = %s"

        with _connect(self._pool, "verification.compare_and_delete") as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email, code))
            conn.commit()
            return cursor.rowcount == 1

    def purge_expired(self, now: datetime) -> int:
        with _connect(self._pool, "verification.purge_expired") as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM verification_codes WHERE expires_at < %s", (now,))
            conn.commit()
            return cursor.rowcount


class PostgresPendingRegistrationStore:
    """Implements PendingRegistrationStore protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def put(self, registration: PendingRegistration) -> None:
        """Upsert the staged registration; re-submitting sign-up restarts it."""
        sql = """
            INSERT INTO pending_registrations (email, display_name, credential_material, created_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (email) DO UPDATE
            SET display_name = EXCLUDED.display_name,
                credential_material = EXCLUDED.credential_material,
                created_at = EXCLUDED.created_at
        """
        params = (
            registration.email,
            registration.display_name,
            registration.credential_material,
            registration.created_at,
        )

        with _connect(self._pool, "pending.put") as conn:
            conn.execute(sql, params)
            conn.commit()

    def get(self, email: str) -> PendingRegistration | None:
        sql = """
            SELECT email, display_name, credential_material, created_at
            FROM pending_registrations
            WHERE email = %s
        """

        with _connect(self._pool, "pending.get") as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()

        if row is None:
            return None
        return PendingRegistration(
            email=row[0],
            display_name=row[1],
            credential_material=row[2],
            created_at=row[3],
        )

    def delete(self, email: str) -> None:
        with _connect(self._pool, "pending.delete") as conn:
            conn.execute("DELETE FROM pending_registrations WHERE email = %s", (email,))
            conn.commit()

    def purge_created_before(self, cutoff: datetime) -> int:
        with _connect(self._pool, "pending.purge_created_before") as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM pending_registrations WHERE created_at < %s", (cutoff,))
            conn.commit()
            return cursor.rowcount


class PostgresAccountStore:
    """Implements AccountStore protocol via psycopg3."""

    _COLUMNS = "id, display_name, email, created_at, last_login_at"

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create(
        self,
        display_name: str,
        email: str,
        credential_material: str,
        created_at: datetime,
        last_login_at: datetime,
    ) -> Account:
        """
        Insert a new account.

        Raises:
            EmailAlreadyRegistered: On UNIQUE(email) violation
        """
        account_id = str(uuid.uuid4())
        sql = """
            INSERT INTO accounts (id, display_name, email, credential_material, created_at, last_login_at)
            VALUES (%s, %s, %s, %s, %s, %s)
        """
        params = (account_id, display_name, email, credential_material, created_at, last_login_at)

        try:
            with _connect(self._pool, "accounts.create") as conn:
                conn.execute(sql, params)
                conn.commit()
        except StorageFailure as e:
            if isinstance(e.__cause__, psycopg.errors.UniqueViolation):
                raise EmailAlreadyRegistered(email) from e.__cause__
            raise

        return Account(
            id=account_id,
            display_name=display_name,
            email=email,
            created_at=created_at,
            last_login_at=last_login_at,
        )

    def fetch_by_email(self, email: str) -> Account | None:
        return self._fetch_one(f"SELECT {self._COLUMNS} FROM accounts WHERE email = %s", email)

    def fetch_by_id(self, account_id: str) -> Account | None:
        return self._fetch_one(f"SELECT {self._COLUMNS} FROM accounts WHERE id = %s", account_id)

    def update(self, account_id: str, *, last_login_at: datetime) -> None:
        with _connect(self._pool, "accounts.update") as conn:
            conn.execute("UPDATE accounts SET last_login_at = %s WHERE id = %s", (last_login_at, account_id))
            conn.commit()

    def update_credential(self, account_id: str, credential_material: str) -> None:
        sql = "UPDATE accounts SET credential_material = %s WHERE id = %s"

        with _connect(self._pool, "accounts.update_credential") as conn:
            conn.execute(sql, (credential_material, account_id))
            conn.commit()

    def delete(self, account_id: str) -> None:
        with _connect(self._pool, "accounts.delete") as conn:
            conn.execute("DELETE FROM accounts WHERE id = %s", (account_id,))
            conn.commit()

    def check_credential(self, email: str, credential: str) -> Account | None:
        if not credential_fits(credential):
            return None

        sql = f"SELECT {self._COLUMNS}, credential_material FROM accounts WHERE email = %s"

        with _connect(self._pool, "accounts.check_credential") as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()

        # Always run bcrypt for constant-time behavior, even for unknown emails
        stored_hash = row[5] if row is not None else DUMMY_BCRYPT_HASH
        valid = bcrypt.checkpw(credential.encode(), stored_hash.encode())

        if row is None or not valid:
            return None
        return self._to_account(row)

    def _fetch_one(self, sql: str, key: str) -> Account | None:
        with _connect(self._pool, "accounts.fetch") as conn, conn.cursor() as cursor:
            cursor.execute(sql, (key,))
            row = cursor.fetchone()
        return self._to_account(row) if row is not None else None

    @staticmethod
    def _to_account(row: tuple) -> Account:
        return Account(
            id=row[0],
            display_name=row[1],
            email=row[2],
            created_at=row[3],
            last_login_at=row[4],
        )


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
