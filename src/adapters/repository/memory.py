"""
In-memory repository adapters - Implement the store protocols.

Process-local dict-backed stores for development, demos and tests.
Each store guards its dict with a lock, which makes compare_and_delete
atomic across threads.
"""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime

import bcrypt

from src.domain.exceptions import EmailAlreadyRegistered
from src.domain.models import Account, PendingRegistration, VerificationRecord, credential_fits

from ._credentials import DUMMY_BCRYPT_HASH

logger = logging.getLogger(__name__)


class InMemoryVerificationStore:
    """Implements VerificationStore protocol with a locked dict."""

    def __init__(self) -> None:
        self._records: dict[str, VerificationRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: VerificationRecord) -> None:
        with self._lock:
            self._records[record.email] = record

    def get(self, email: str) -> VerificationRecord | None:
        with self._lock:
            return self._records.get(email)

    def delete(self, email: str) -> None:
        with self._lock:
            self._records.pop(email, None)

    def compare_and_delete(self, email: str, code: str) -> bool:
        with self._lock:
            record = self._records.get(email)
            if record is None or record.code != code:
                return False
            del self._records[email]
            return True

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [email for email, record in self._records.items() if record.expires_at < now]
            for email in expired:
                del self._records[email]
            return len(expired)


class InMemoryPendingRegistrationStore:
    """Implements PendingRegistrationStore protocol with a locked dict."""

    def __init__(self) -> None:
        self._registrations: dict[str, PendingRegistration] = {}
        self._lock = threading.Lock()

    def put(self, registration: PendingRegistration) -> None:
        with self._lock:
            self._registrations[registration.email] = registration

    def get(self, email: str) -> PendingRegistration | None:
        with self._lock:
            return self._registrations.get(email)

    def delete(self, email: str) -> None:
        with self._lock:
            self._registrations.pop(email, None)

    def purge_created_before(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [email for email, reg in self._registrations.items() if reg.created_at < cutoff]
            for email in stale:
                del self._registrations[email]
            return len(stale)


class InMemoryAccountStore:
    """
    Implements AccountStore protocol with a locked dict.

    Email uniqueness is enforced here the way the database UNIQUE
    constraint enforces it for the Postgres adapter.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._credentials: dict[str, str] = {}
        self._lock = threading.Lock()

    def create(
        self,
        display_name: str,
        email: str,
        credential_material: str,
        created_at: datetime,
        last_login_at: datetime,
    ) -> Account:
        with self._lock:
            if any(account.email == email for account in self._accounts.values()):
                raise EmailAlreadyRegistered(email)
            account = Account(
                id=str(uuid.uuid4()),
                display_name=display_name,
                email=email,
                created_at=created_at,
                last_login_at=last_login_at,
            )
            self._accounts[account.id] = account
            self._credentials[account.id] = credential_material
            return account

    def fetch_by_email(self, email: str) -> Account | None:
        with self._lock:
            return self._find_by_email(email)

    def fetch_by_id(self, account_id: str) -> Account | None:
        with self._lock:
            return self._accounts.get(account_id)

    def update(self, account_id: str, *, last_login_at: datetime) -> None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is not None:
                self._accounts[account_id] = replace(account, last_login_at=last_login_at)

    def update_credential(self, account_id: str, credential_material: str) -> None:
        with self._lock:
            if account_id in self._accounts:
                self._credentials[account_id] = credential_material

    def delete(self, account_id: str) -> None:
        with self._lock:
            self._accounts.pop(account_id, None)
            self._credentials.pop(account_id, None)

    def check_credential(self, email: str, credential: str) -> Account | None:
        if not credential_fits(credential):
            return None

        with self._lock:
            account = self._find_by_email(email)
            stored_hash = self._credentials.get(account.id) if account is not None else None

        # Always run bcrypt so a missing account costs the same as a wrong password
        valid = bcrypt.checkpw(credential.encode(), (stored_hash or DUMMY_BCRYPT_HASH).encode())
        if account is None or not valid:
            return None
        return account

    def _find_by_email(self, email: str) -> Account | None:
        for account in self._accounts.values():
            if account.email == email:
                return account
        return None
