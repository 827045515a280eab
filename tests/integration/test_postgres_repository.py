"""
Integration tests for the PostgreSQL store adapters.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL to be running (via docker-compose).
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import bcrypt
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import (
    PostgresAccountStore,
    PostgresPendingRegistrationStore,
    PostgresVerificationStore,
)
from src.domain.exceptions import EmailAlreadyRegistered
from src.domain.models import PendingRegistration, VerificationPurpose, VerificationRecord

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("clean_database")]

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _record(email: str = "test@example.com", code: str = "123456", minutes: int = 10) -> VerificationRecord:
    return VerificationRecord(
        email=email,
        code=code,
        purpose=VerificationPurpose.SIGN_UP,
        issued_at=NOW,
        expires_at=NOW + timedelta(minutes=minutes),
    )


@pytest.fixture
def codes(pool: ConnectionPool) -> PostgresVerificationStore:
    return PostgresVerificationStore(pool)


@pytest.fixture
def pending(pool: ConnectionPool) -> PostgresPendingRegistrationStore:
    return PostgresPendingRegistrationStore(pool)


@pytest.fixture
def accounts(pool: ConnectionPool) -> PostgresAccountStore:
    return PostgresAccountStore(pool)


class TestVerificationStore:
    def test_put_and_get(self, codes: PostgresVerificationStore) -> None:
        codes.put(_record())

        assert codes.get("test@example.com") == _record()

    def test_put_overwrites(self, codes: PostgresVerificationStore) -> None:
        codes.put(_record(code="111111"))
        codes.put(_record(code="222222"))

        assert codes.get("test@example.com").code == "222222"

    def test_get_missing(self, codes: PostgresVerificationStore) -> None:
        assert codes.get("missing@example.com") is None

    def test_compare_and_delete(self, codes: PostgresVerificationStore) -> None:
        codes.put(_record())

        assert codes.compare_and_delete("test@example.com", "654321") is False
        assert codes.compare_and_delete("test@example.com", "123456") is True
        assert codes.compare_and_delete("test@example.com", "123456") is False
        assert codes.get("test@example.com") is None

    def test_concurrent_compare_and_delete_single_winner(self, codes: PostgresVerificationStore) -> None:
        codes.put(_record())

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(lambda _: codes.compare_and_delete("test@example.com", "123456"), range(10)))

        assert results.count(True) == 1

    def test_purge_expired(self, codes: PostgresVerificationStore) -> None:
        codes.put(_record(email="old@example.com", minutes=1))
        codes.put(_record(email="new@example.com", minutes=30))

        assert codes.purge_expired(NOW + timedelta(minutes=5)) == 1
        assert codes.get("new@example.com") is not None


class TestPendingRegistrationStore:
    def test_put_get_delete(self, pending: PostgresPendingRegistrationStore) -> None:
        registration = PendingRegistration("test@example.com", "Ann", "$2b$04$hash", NOW)
        pending.put(registration)

        assert pending.get("test@example.com") == registration

        pending.delete("test@example.com")
        assert pending.get("test@example.com") is None

    def test_put_overwrites(self, pending: PostgresPendingRegistrationStore) -> None:
        pending.put(PendingRegistration("test@example.com", "Ann", "$2b$04$hash1", NOW))
        pending.put(PendingRegistration("test@example.com", "Annie", "$2b$04$hash2", NOW))

        assert pending.get("test@example.com").display_name == "Annie"

    def test_purge_created_before(self, pending: PostgresPendingRegistrationStore) -> None:
        pending.put(PendingRegistration("old@example.com", "Old", "h", NOW - timedelta(days=2)))
        pending.put(PendingRegistration("new@example.com", "New", "h", NOW))

        assert pending.purge_created_before(NOW - timedelta(days=1)) == 1
        assert pending.get("new@example.com") is not None


class TestAccountStore:
    @pytest.fixture
    def password_hash(self) -> str:
        return bcrypt.hashpw(b"secure123", bcrypt.gensalt(4)).decode()

    def test_create_and_fetch(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        account = accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)

        assert accounts.fetch_by_id(account.id) == account
        assert accounts.fetch_by_email("test@example.com") == account

    def test_duplicate_email(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)

        with pytest.raises(EmailAlreadyRegistered):
            accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)

    def test_update_last_login(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        account = accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)
        later = NOW + timedelta(days=1)

        accounts.update(account.id, last_login_at=later)

        assert accounts.fetch_by_id(account.id).last_login_at == later

    def test_delete(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        account = accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)

        accounts.delete(account.id)

        assert accounts.fetch_by_id(account.id) is None

    def test_check_credential(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        account = accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)

        assert accounts.check_credential("test@example.com", "secure123") == account
        assert accounts.check_credential("test@example.com", "wrong") is None
        assert accounts.check_credential("missing@example.com", "secure123") is None

    def test_check_credential_over_72_bytes(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)

        assert accounts.check_credential("test@example.com", "é" * 40) is None

    def test_update_credential(self, accounts: PostgresAccountStore, password_hash: str) -> None:
        account = accounts.create("Ann", "test@example.com", password_hash, NOW, NOW)
        new_hash = bcrypt.hashpw(b"changed456", bcrypt.gensalt(4)).decode()

        accounts.update_credential(account.id, new_hash)

        assert accounts.check_credential("test@example.com", "secure123") is None
        assert accounts.check_credential("test@example.com", "changed456") == account

    def test_reset_purpose_round_trips(self, codes: PostgresVerificationStore) -> None:
        record = VerificationRecord(
            email="test@example.com",
            code="654321",
            purpose=VerificationPurpose.RESET_PASSWORD,
            issued_at=NOW,
            expires_at=NOW + timedelta(minutes=10),
        )

        codes.put(record)

        assert codes.get("test@example.com") == record
