"""
Domain models - Value types shared by the verification flow.

Plain dataclasses and enums; no framework imports.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# bcrypt only reads the first 72 bytes of a secret; longer ones are refused
MAX_CREDENTIAL_BYTES = 72


def credential_fits(credential: str) -> bool:
    """True if the UTF-8 encoded credential is within MAX_CREDENTIAL_BYTES."""
    return len(credential.encode()) <= MAX_CREDENTIAL_BYTES


class VerificationPurpose(str, Enum):
    """Which flow a verification code completes."""

    SIGN_UP = "SIGN_UP"
    SIGN_IN = "SIGN_IN"
    RESET_PASSWORD = "RESET_PASSWORD"


class SessionPhase(str, Enum):
    """
    Session state machine phases.

    Transitions:
    - ANONYMOUS -> AWAITING_VERIFICATION (sign-up or sign-in)
    - AWAITING_VERIFICATION -> AWAITING_VERIFICATION (restart, resend, failed verify)
    - AWAITING_VERIFICATION -> AUTHENTICATED (successful verify)
    - AUTHENTICATED -> ANONYMOUS (sign-out, account deletion)
    """

    ANONYMOUS = "ANONYMOUS"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    AUTHENTICATED = "AUTHENTICATED"


class VerifyResult(Enum):
    """Reason a verification attempt was rejected."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class VerificationRecord:
    """Live verification code for one email."""

    email: str
    code: str
    purpose: VerificationPurpose
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class PendingRegistration:
    """Sign-up data staged until the email is verified."""

    email: str
    display_name: str
    credential_material: str = field(repr=False)
    created_at: datetime


@dataclass(frozen=True)
class Account:
    """Materialized user account."""

    id: str
    display_name: str
    email: str
    created_at: datetime
    last_login_at: datetime

    @property
    def initials(self) -> str:
        return "".join(part[0].upper() for part in self.display_name.split()[:2])


@dataclass(frozen=True)
class SessionOutcome:
    """Result of a successful verification."""

    account_id: str
    purpose: VerificationPurpose


@dataclass(frozen=True)
class SessionState:
    """
    Snapshot of the session state machine.

    Exactly one of pending_email / active_account_id is set outside
    ANONYMOUS, matching the phase. Enforced on construction.
    """

    phase: SessionPhase = SessionPhase.ANONYMOUS
    pending_email: str | None = None
    active_account_id: str | None = None

    def __post_init__(self) -> None:
        expected = {
            SessionPhase.ANONYMOUS: (False, False),
            SessionPhase.AWAITING_VERIFICATION: (True, False),
            SessionPhase.AUTHENTICATED: (False, True),
        }[self.phase]
        actual = (self.pending_email is not None, self.active_account_id is not None)
        if actual != expected:
            raise ValueError(f"Invalid session state for phase {self.phase.value}")

    @classmethod
    def anonymous(cls) -> "SessionState":
        return cls()

    @classmethod
    def awaiting(cls, email: str) -> "SessionState":
        return cls(phase=SessionPhase.AWAITING_VERIFICATION, pending_email=email)

    @classmethod
    def authenticated(cls, account_id: str) -> "SessionState":
        return cls(phase=SessionPhase.AUTHENTICATED, active_account_id=account_id)
