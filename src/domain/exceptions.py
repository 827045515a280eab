"""
Domain exceptions - Semantic error types for the verification flow.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Every error raised by the session controller derives from AuthError.
"""

from .models import VerifyResult


class AuthError(Exception):
    """Base class for authentication domain errors."""

    pass


class InvalidCredential(AuthError):
    """Sign-in credential check failed. No code was issued."""

    pass


class EmailAlreadyRegistered(AuthError):
    """An account already exists for this email."""

    pass


class CredentialTooLong(AuthError):
    """Credential exceeds the 72 UTF-8 bytes bcrypt can hash."""

    pass


class NoPendingVerification(AuthError):
    """The session is not awaiting a verification code."""

    pass


class NotAuthenticated(AuthError):
    """The session has no authenticated account."""

    pass


class ResendTooSoon(AuthError):
    """A code was requested again before the resend cooldown elapsed."""

    def __init__(self, email: str, retry_after_seconds: int) -> None:
        super().__init__(email, retry_after_seconds)
        self.email = email
        self.retry_after_seconds = retry_after_seconds


class VerificationFailed(AuthError):
    """
    Submitted code was rejected.

    The ``reason`` attribute distinguishes the corrective action:
    request a new code (NOT_FOUND, EXPIRED) or retry (MISMATCH).
    """

    reason: VerifyResult

    def __init__(self, email: str) -> None:
        super().__init__(email)
        self.email = email


class CodeNotFound(VerificationFailed):
    """No live code for the email (never requested or already consumed)."""

    reason = VerifyResult.NOT_FOUND


class CodeExpired(VerificationFailed):
    """Code present but past its expiry."""

    reason = VerifyResult.EXPIRED


class CodeMismatch(VerificationFailed):
    """Code present and unexpired, but differs from the submitted one."""

    reason = VerifyResult.MISMATCH


class StateInconsistent(AuthError):
    """Code matched but the staged data it should promote is missing."""

    pass


class StorageFailure(AuthError):
    """A store collaborator failed."""

    pass


class GatewayFailure(AuthError):
    """The notification gateway failed to deliver a message."""

    pass
