"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock
- A recording notification gateway
- In-memory stores and the domain services wired to them
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.repository.memory import (
    InMemoryAccountStore,
    InMemoryPendingRegistrationStore,
    InMemoryVerificationStore,
)
from src.domain.exceptions import GatewayFailure
from src.domain.issuer import VerificationCodeIssuer
from src.domain.reaper import StagingReaper
from src.domain.session import SessionController
from src.domain.validator import VerificationValidator

# Minimum bcrypt work factor keeps credential hashing fast in tests
TEST_BCRYPT_COST = 4

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class RecordingSender:
    """NotificationGateway that records every send, optionally failing."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def send_verification_code(self, email: str, code: str) -> None:
        if self.fail:
            raise GatewayFailure("delivery failed")
        self.sent.append((email, code))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def verification_store() -> InMemoryVerificationStore:
    return InMemoryVerificationStore()


@pytest.fixture
def pending_store() -> InMemoryPendingRegistrationStore:
    return InMemoryPendingRegistrationStore()


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def issuer(
    verification_store: InMemoryVerificationStore, sender: RecordingSender, clock: FakeClock
) -> VerificationCodeIssuer:
    return VerificationCodeIssuer(store=verification_store, gateway=sender, clock=clock)


@pytest.fixture
def validator(
    verification_store: InMemoryVerificationStore,
    pending_store: InMemoryPendingRegistrationStore,
    account_store: InMemoryAccountStore,
    clock: FakeClock,
) -> VerificationValidator:
    return VerificationValidator(
        verification_store=verification_store,
        pending_store=pending_store,
        account_store=account_store,
        clock=clock,
    )


@pytest.fixture
def controller(
    issuer: VerificationCodeIssuer,
    validator: VerificationValidator,
    pending_store: InMemoryPendingRegistrationStore,
    account_store: InMemoryAccountStore,
    clock: FakeClock,
) -> SessionController:
    return SessionController(
        issuer=issuer,
        validator=validator,
        pending_store=pending_store,
        account_store=account_store,
        clock=clock,
        bcrypt_cost=TEST_BCRYPT_COST,
    )


@pytest.fixture
def reaper(
    verification_store: InMemoryVerificationStore,
    pending_store: InMemoryPendingRegistrationStore,
    clock: FakeClock,
) -> StagingReaper:
    return StagingReaper(verification_store=verification_store, pending_store=pending_store, clock=clock)
