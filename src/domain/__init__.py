"""
Domain layer - Pure business logic with zero framework imports.

This package contains the two-phase email verification flow: code
issuance, time-boxed validation, staged-registration promotion and the
session state machine. It defines its own port interfaces for
infrastructure abstraction, ensuring hexagonal architecture decoupling.
"""

from .exceptions import (
    AuthError,
    CodeExpired,
    CodeMismatch,
    CodeNotFound,
    CredentialTooLong,
    EmailAlreadyRegistered,
    GatewayFailure,
    InvalidCredential,
    NoPendingVerification,
    NotAuthenticated,
    ResendTooSoon,
    StateInconsistent,
    StorageFailure,
    VerificationFailed,
)
from .issuer import VerificationCodeIssuer
from .models import (
    MAX_CREDENTIAL_BYTES,
    Account,
    PendingRegistration,
    SessionOutcome,
    SessionPhase,
    SessionState,
    VerificationPurpose,
    VerificationRecord,
    VerifyResult,
    credential_fits,
)
from .ports import AccountStore, Clock, NotificationGateway, PendingRegistrationStore, VerificationStore
from .reaper import ReapResult, StagingReaper
from .session import SessionController, SessionStream
from .validator import VerificationValidator

__all__ = [
    "MAX_CREDENTIAL_BYTES",
    "Account",
    "AccountStore",
    "AuthError",
    "Clock",
    "CodeExpired",
    "CodeMismatch",
    "CodeNotFound",
    "CredentialTooLong",
    "EmailAlreadyRegistered",
    "GatewayFailure",
    "InvalidCredential",
    "NoPendingVerification",
    "NotAuthenticated",
    "NotificationGateway",
    "PendingRegistration",
    "PendingRegistrationStore",
    "ReapResult",
    "ResendTooSoon",
    "SessionController",
    "SessionOutcome",
    "SessionPhase",
    "SessionState",
    "SessionStream",
    "StagingReaper",
    "StateInconsistent",
    "StorageFailure",
    "VerificationCodeIssuer",
    "VerificationFailed",
    "VerificationPurpose",
    "VerificationRecord",
    "VerificationStore",
    "VerificationValidator",
    "VerifyResult",
    "credential_fits",
]
