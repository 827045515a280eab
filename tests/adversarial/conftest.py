"""
Shared fixtures for adversarial tests.

Adversarial tests drive the domain services concurrently from many
threads against the in-memory stores.
"""

import pytest

from src.domain.models import PendingRegistration, VerificationPurpose



@pytest.fixture
def signup_code(issuer, pending_store, clock) -> str:
    """Stage a registration for racer@example.com and return its live code."""
    pending_store.put(
        PendingRegistration(
            email="racer@example.com",
            display_name="Racer",
            credential_material="$2b$04$stagedhash",
            created_at=clock.now(),
        )
    )
    return issuer.issue("racer@example.com", VerificationPurpose.SIGN_UP).code
