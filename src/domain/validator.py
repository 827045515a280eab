"""
Verification validator and account promotion.

Checks a submitted code against the verification store and, on match,
consumes it and promotes the session:

    lookup -> purpose check -> expiry check -> code check -> compare-and-delete -> promote

Single use is enforced by compare-and-delete: the code is consumed
before any account work, and of several concurrent callers holding the
same valid code only the one whose delete succeeds goes on to promote.
The others see CodeNotFound.

Promotion by purpose:
- SIGN_UP: PendingRegistration -> new Account, then staging record removed.
  A failure removing the staging record is logged and ignored; accounts
  are never rolled back once created.
- SIGN_IN: existing Account gets last_login_at refreshed.
- RESET_PASSWORD: existing Account gets new credential material. Only
  reset_credential accepts these codes, and it accepts nothing else.
"""

import logging
import secrets
from dataclasses import dataclass

from .exceptions import CodeExpired, CodeMismatch, CodeNotFound, StateInconsistent, StorageFailure
from .models import SessionOutcome, VerificationPurpose, VerificationRecord
from .ports import AccountStore, Clock, PendingRegistrationStore, VerificationStore

logger = logging.getLogger(__name__)

_SESSION_PURPOSES = frozenset({VerificationPurpose.SIGN_UP, VerificationPurpose.SIGN_IN})
_RESET_PURPOSES = frozenset({VerificationPurpose.RESET_PASSWORD})


@dataclass
class VerificationValidator:
    """Validates codes and promotes verified sessions."""

    verification_store: VerificationStore
    pending_store: PendingRegistrationStore
    account_store: AccountStore
    clock: Clock

    def verify(self, email: str, submitted_code: str) -> SessionOutcome:
        """
        Verify a sign-up or sign-in code for an already-normalized email.

        Returns:
            SessionOutcome with the authenticated account id

        Raises:
            CodeNotFound: No live record, a password-reset record, or a
                concurrent caller consumed it
            CodeExpired: Record present but past expires_at
            CodeMismatch: Record present and live, code differs
            StateInconsistent: Code consumed but nothing to promote
            StorageFailure: A store failed
        """
        record = self._consume(email, submitted_code, _SESSION_PURPOSES)

        if record.purpose is VerificationPurpose.SIGN_UP:
            return self._promote_registration(record)
        return self._refresh_login(record)

    def reset_credential(self, email: str, submitted_code: str, credential_material: str) -> SessionOutcome:
        """
        Verify a password-reset code and store the new credential material.

        Raises:
            CodeNotFound, CodeExpired, CodeMismatch: As for verify
            StateInconsistent: Code consumed but the account no longer exists
            StorageFailure: A store failed
        """
        record = self._consume(email, submitted_code, _RESET_PURPOSES)

        account = self.account_store.fetch_by_email(record.email)
        if account is None:
            logger.error("Reset code consumed for %s but the account no longer exists", email)
            raise StateInconsistent(email)

        self.account_store.update_credential(account.id, credential_material)
        logger.info("Credential reset for account %s", account.id)
        return SessionOutcome(account_id=account.id, purpose=VerificationPurpose.RESET_PASSWORD)

    def _consume(
        self, email: str, submitted_code: str, purposes: frozenset[VerificationPurpose]
    ) -> VerificationRecord:
        record = self.verification_store.get(email)
        if record is None or record.purpose not in purposes:
            raise CodeNotFound(email)

        if record.is_expired(self.clock.now()):
            raise CodeExpired(email)

        if not secrets.compare_digest(record.code.encode(), submitted_code.encode()):
            raise CodeMismatch(email)

        if not self.verification_store.compare_and_delete(email, record.code):
            raise CodeNotFound(email)

        return record

    def _promote_registration(self, record: VerificationRecord) -> SessionOutcome:
        email = record.email
        pending = self.pending_store.get(email)
        if pending is None:
            logger.error("Sign-up code consumed for %s but no pending registration exists", email)
            raise StateInconsistent(email)

        now = self.clock.now()
        account = self.account_store.create(
            display_name=pending.display_name,
            email=email,
            credential_material=pending.credential_material,
            created_at=now,
            last_login_at=now,
        )

        try:
            self.pending_store.delete(email)
        except StorageFailure:
            logger.warning(
                "Account %s created but pending registration for %s could not be removed",
                account.id,
                email,
                exc_info=True,
            )

        logger.info("Promoted pending registration for %s to account %s", email, account.id)
        return SessionOutcome(account_id=account.id, purpose=VerificationPurpose.SIGN_UP)

    def _refresh_login(self, record: VerificationRecord) -> SessionOutcome:
        email = record.email
        account = self.account_store.fetch_by_email(email)
        if account is None:
            logger.error("Sign-in code consumed for %s but the account no longer exists", email)
            raise StateInconsistent(email)

        self.account_store.update(account.id, last_login_at=self.clock.now())
        logger.info("Sign-in verified for account %s", account.id)
        return SessionOutcome(account_id=account.id, purpose=VerificationPurpose.SIGN_IN)
