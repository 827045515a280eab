"""
Verification code issuer.

Generates a 6-digit code, stores it with a fixed TTL (overwriting any
earlier code for the same email) and hands it to the notification gateway.

Delivery is best-effort: once the record is stored, issuance has
succeeded even if the gateway raises. The failure is logged and absorbed.
A user who never receives the code can ask for a resend, at most once per
resend cooldown (60 seconds by default) measured from the current code's
issued_at.
"""

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import timedelta

from .exceptions import ResendTooSoon
from .models import VerificationPurpose, VerificationRecord
from .ports import Clock, NotificationGateway, VerificationStore

logger = logging.getLogger(__name__)

CODE_DIGITS = 6
DEFAULT_CODE_TTL = timedelta(minutes=10)
DEFAULT_RESEND_COOLDOWN = timedelta(seconds=60)


@dataclass
class VerificationCodeIssuer:
    """Issues single-use verification codes."""

    store: VerificationStore
    gateway: NotificationGateway
    clock: Clock
    ttl: timedelta = DEFAULT_CODE_TTL
    resend_cooldown: timedelta = DEFAULT_RESEND_COOLDOWN

    def issue(self, email: str, purpose: VerificationPurpose) -> VerificationRecord:
        """
        Issue a new code for an already-normalized email.

        Raises:
            StorageFailure: If the record could not be stored
        """
        issued_at = self.clock.now()
        record = VerificationRecord(
            email=email,
            code=self._generate_code(),
            purpose=purpose,
            issued_at=issued_at,
            expires_at=issued_at + self.ttl,
        )
        self.store.put(record)

        try:
            self.gateway.send_verification_code(email, record.code)
        except Exception:
            logger.warning(
                "Verification code delivery failed for %s (%s); code remains valid",
                email,
                purpose.value,
                exc_info=True,
            )

        logger.info("Issued %s verification code for %s", purpose.value, email)
        return record

    def resend(self, email: str, purpose: VerificationPurpose) -> VerificationRecord:
        """
        Reissue a code unless the current one is younger than the cooldown.

        Raises:
            ResendTooSoon: If the live code was issued less than resend_cooldown ago
            StorageFailure: If the record could not be read or stored
        """
        current = self.store.get(email)
        if current is not None:
            wait = current.issued_at + self.resend_cooldown - self.clock.now()
            if wait > timedelta(0):
                logger.info("Resend for %s refused; %s remaining", email, wait)
                raise ResendTooSoon(email, math.ceil(wait.total_seconds()))
        return self.issue(email, purpose)

    @staticmethod
    def _generate_code() -> str:
        """
        Generate a uniformly random code in [000000, 999999].

        Uses secrets for cryptographic randomness. Returns a string
        to preserve leading zeros.
        """
        return f"{secrets.randbelow(10**CODE_DIGITS):0{CODE_DIGITS}d}"
