"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols structurally.

Every store method may raise StorageFailure. The notification gateway
may raise anything; the issuer absorbs it.
"""

from datetime import datetime
from typing import Protocol

from .models import Account, PendingRegistration, VerificationRecord


class Clock(Protocol):
    """Source of the current time (timezone-aware UTC)."""

    def now(self) -> datetime: ...


class VerificationStore(Protocol):
    """Port interface for verification code persistence, keyed by email."""

    def put(self, record: VerificationRecord) -> None:
        """Store the record, replacing any existing record for the email."""
        ...

    def get(self, email: str) -> VerificationRecord | None:
        """Return the record for the email, expired or not."""
        ...

    def delete(self, email: str) -> None:
        """Remove the record for the email if present."""
        ...

    def compare_and_delete(self, email: str, code: str) -> bool:
        """
        Atomically delete the record only if its code equals ``code``.

        Returns:
            True if this call removed the record, False otherwise.
            Of several concurrent callers with the same code, at most
            one observes True.
        """
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete records with expires_at < now. Returns count removed."""
        ...


class PendingRegistrationStore(Protocol):
    """Port interface for staged sign-up data, keyed by email."""

    def put(self, registration: PendingRegistration) -> None:
        """Store the registration, replacing any existing one for the email."""
        ...

    def get(self, email: str) -> PendingRegistration | None: ...

    def delete(self, email: str) -> None: ...

    def purge_created_before(self, cutoff: datetime) -> int:
        """Delete registrations with created_at < cutoff. Returns count removed."""
        ...


class AccountStore(Protocol):
    """Port interface for durable accounts."""

    def create(
        self,
        display_name: str,
        email: str,
        credential_material: str,
        created_at: datetime,
        last_login_at: datetime,
    ) -> Account:
        """
        Create an account and assign its id.

        Raises:
            EmailAlreadyRegistered: If an account already uses the email
        """
        ...

    def fetch_by_email(self, email: str) -> Account | None: ...

    def fetch_by_id(self, account_id: str) -> Account | None: ...

    def update(self, account_id: str, *, last_login_at: datetime) -> None: ...

    def update_credential(self, account_id: str, credential_material: str) -> None:
        """Replace the stored credential material (a bcrypt hash)."""
        ...

    def delete(self, account_id: str) -> None: ...

    def check_credential(self, email: str, credential: str) -> Account | None:
        """
        Check a plaintext credential against the stored credential material.

        Returns:
            The account if the credential matches, None otherwise
            (including when no account exists for the email or the
            credential is longer than bcrypt accepts).
        """
        ...


class NotificationGateway(Protocol):
    """Port interface for verification code delivery."""

    def send_verification_code(self, email: str, code: str) -> None:
        """
        Send verification code to email address.

        Args:
            email: Recipient email address
            code: 6-digit verification code
        """
        ...
