"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.domain.models import MAX_CREDENTIAL_BYTES, Account, SessionPhase, SessionState, credential_fits


def _check_password_bytes(value: str) -> str:
    """Reject passwords bcrypt cannot hash."""
    if not credential_fits(value):
        raise ValueError(f"Password must be at most {MAX_CREDENTIAL_BYTES} bytes when UTF-8 encoded")
    return value


class SignUpRequest(BaseModel):
    """Request model for sign-up."""

    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=100, description="Full name shown in the app")
    password: str = Field(..., min_length=8, max_length=64, description="User password (8-64 characters)")

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        return _check_password_bytes(v)


class SignInRequest(BaseModel):
    """Request model for sign-in."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=64)

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        return _check_password_bytes(v)


class VerifyRequest(BaseModel):
    """Request model for code verification."""

    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="6-digit verification code",
    )


class PasswordResetRequest(BaseModel):
    """Request model for starting a password reset."""

    email: EmailStr


class PasswordResetConfirmRequest(BaseModel):
    """Request model for completing a password reset."""

    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="6-digit verification code",
    )
    new_password: str = Field(..., min_length=8, max_length=64, description="New password (8-64 characters)")

    @field_validator("new_password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        return _check_password_bytes(v)


class SessionResponse(BaseModel):
    """Current session state."""

    session_id: str
    phase: SessionPhase
    pending_email: str | None = None
    active_account_id: str | None = None

    @classmethod
    def from_state(cls, session_id: str, state: SessionState) -> "SessionResponse":
        return cls(
            session_id=session_id,
            phase=state.phase,
            pending_email=state.pending_email,
            active_account_id=state.active_account_id,
        )


class CodeSentResponse(SessionResponse):
    """Session state after a code was issued."""

    message: str = "Verification code sent"
    expires_in_seconds: int


class AccountResponse(BaseModel):
    """Authenticated account profile."""

    id: str
    display_name: str
    initials: str
    email: str
    created_at: datetime
    last_login_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            display_name=account.display_name,
            initials=account.initials,
            email=account.email,
            created_at=account.created_at,
            last_login_at=account.last_login_at,
        )


class ReapResponse(BaseModel):
    """Result of a staging sweep."""

    codes_removed: int
    registrations_removed: int


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
