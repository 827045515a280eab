"""
Staging reaper - TTL sweep of abandoned staging records.

Verification records are reaped once past expires_at. Pending
registrations are reaped once older than pending_ttl. Nothing in the
domain calls sweep() on its own; the host schedules it.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from .ports import Clock, PendingRegistrationStore, VerificationStore

logger = logging.getLogger(__name__)

DEFAULT_PENDING_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class ReapResult:
    codes: int
    registrations: int


@dataclass
class StagingReaper:
    verification_store: VerificationStore
    pending_store: PendingRegistrationStore
    clock: Clock
    pending_ttl: timedelta = DEFAULT_PENDING_TTL

    def sweep(self) -> ReapResult:
        now = self.clock.now()
        codes = self.verification_store.purge_expired(now)
        registrations = self.pending_store.purge_created_before(now - self.pending_ttl)
        if codes or registrations:
            logger.info("Reaped %d expired code(s), %d abandoned registration(s)", codes, registrations)
        return ReapResult(codes=codes, registrations=registrations)
