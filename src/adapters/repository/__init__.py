"""Repository adapters - Store implementations."""

from .memory import InMemoryAccountStore, InMemoryPendingRegistrationStore, InMemoryVerificationStore
from .postgres import (
    PostgresAccountStore,
    PostgresPendingRegistrationStore,
    PostgresVerificationStore,
    run_migrations,
)

__all__ = [
    "InMemoryAccountStore",
    "InMemoryPendingRegistrationStore",
    "InMemoryVerificationStore",
    "PostgresAccountStore",
    "PostgresPendingRegistrationStore",
    "PostgresVerificationStore",
    "run_migrations",
]
