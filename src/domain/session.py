"""
Session controller - Authentication state machine.

Owns the SessionState of one running application instance and drives
sign-up, sign-in, verification, sign-out and account deletion through
the issuer, validator and stores.

State machine
=============

    ANONYMOUS --sign_up/sign_in--> AWAITING_VERIFICATION
    AWAITING_VERIFICATION --sign_up/sign_in/resend_code--> AWAITING_VERIFICATION
    AWAITING_VERIFICATION --verify (fails)--> AWAITING_VERIFICATION
    AWAITING_VERIFICATION --verify (succeeds)--> AUTHENTICATED
    AUTHENTICATED --sign_out/delete_account--> ANONYMOUS

Password reset shares the awaiting phase:

    ANONYMOUS --request_password_reset--> AWAITING_VERIFICATION
    AWAITING_VERIFICATION --reset_password (succeeds)--> ANONYMOUS

Every public method runs under one re-entrant lock, so callers never see
a partially applied transition. State changes are published to every
open SessionStream.
"""

import logging
import queue
import threading
from collections.abc import Callable, Iterator

import bcrypt

from .exceptions import (
    CredentialTooLong,
    EmailAlreadyRegistered,
    InvalidCredential,
    NoPendingVerification,
    NotAuthenticated,
)
from .issuer import VerificationCodeIssuer
from .models import (
    Account,
    PendingRegistration,
    SessionPhase,
    SessionState,
    VerificationPurpose,
    credential_fits,
)
from .ports import AccountStore, Clock, PendingRegistrationStore
from .validator import VerificationValidator

logger = logging.getLogger(__name__)

_CLOSED = object()


class SessionStream:
    """
    Per-subscriber stream of SessionState snapshots.

    Yields the state current at subscription time, then every subsequent
    state. Iteration blocks until the next change and ends after close().
    """

    def __init__(self, unsubscribe: Callable[["SessionStream"], None]) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._unsubscribe = unsubscribe
        self._closed = False

    def __iter__(self) -> Iterator[SessionState]:
        return self

    def __next__(self) -> SessionState:
        item = self.get()
        if item is None:
            raise StopIteration
        return item

    def get(self, timeout: float | None = None) -> SessionState | None:
        """
        Return the next state, or None once the stream is closed.

        Raises:
            queue.Empty: If timeout elapses with no new state
        """
        if self._closed and self._queue.empty():
            return None
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe(self)
        self._queue.put(_CLOSED)

    def _publish(self, state: SessionState) -> None:
        if not self._closed:
            self._queue.put(state)


class SessionController:
    """Authentication state machine for one application instance."""

    def __init__(
        self,
        issuer: VerificationCodeIssuer,
        validator: VerificationValidator,
        pending_store: PendingRegistrationStore,
        account_store: AccountStore,
        clock: Clock,
        bcrypt_cost: int = 10,
    ) -> None:
        self._issuer = issuer
        self._validator = validator
        self._pending_store = pending_store
        self._account_store = account_store
        self._clock = clock
        self._bcrypt_cost = bcrypt_cost

        self._lock = threading.RLock()
        self._state = SessionState.anonymous()
        self._pending_purpose: VerificationPurpose | None = None
        self._streams: list[SessionStream] = []

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def observe(self) -> SessionStream:
        """Subscribe to session state changes."""
        with self._lock:
            stream = SessionStream(self._unsubscribe)
            stream._publish(self._state)
            self._streams.append(stream)
            return stream

    def sign_up(self, email: str, display_name: str, credential: str) -> None:
        """
        Stage a registration and send a sign-up code.

        Restarts the flow if a verification is already pending.

        Raises:
            CredentialTooLong: If the credential exceeds 72 UTF-8 bytes
            EmailAlreadyRegistered: If an account exists for the email
            StorageFailure: If staging or code storage failed
        """
        normalized_email = self._normalize_email(email)
        if not credential_fits(credential):
            raise CredentialTooLong(normalized_email)
        with self._lock:
            if self._account_store.fetch_by_email(normalized_email) is not None:
                raise EmailAlreadyRegistered(normalized_email)

            self._pending_store.put(
                PendingRegistration(
                    email=normalized_email,
                    display_name=display_name.strip(),
                    credential_material=self._hash_credential(credential),
                    created_at=self._clock.now(),
                )
            )
            self._issuer.issue(normalized_email, VerificationPurpose.SIGN_UP)
            self._await(normalized_email, VerificationPurpose.SIGN_UP)

    def sign_in(self, email: str, credential: str) -> None:
        """
        Check the credential and send a sign-in code.

        No code is issued, and no email sent, unless the credential matches.

        Raises:
            InvalidCredential: If the email/credential pair is not valid
            StorageFailure: If a store failed
        """
        normalized_email = self._normalize_email(email)
        with self._lock:
            if self._account_store.check_credential(normalized_email, credential) is None:
                logger.info("Sign-in rejected for %s: invalid credential", normalized_email)
                raise InvalidCredential(normalized_email)

            self._issuer.issue(normalized_email, VerificationPurpose.SIGN_IN)
            self._await(normalized_email, VerificationPurpose.SIGN_IN)

    def verify(self, code: str) -> None:
        """
        Submit the code for the pending email.

        On failure the session stays AWAITING_VERIFICATION.

        Raises:
            NoPendingVerification: If no sign-up or sign-in verification is pending
            VerificationFailed: CodeNotFound, CodeExpired or CodeMismatch
            StateInconsistent: If the code matched but nothing could be promoted
            StorageFailure: If a store failed
        """
        with self._lock:
            email = self._require_pending_email()
            if self._pending_purpose is VerificationPurpose.RESET_PASSWORD:
                raise NoPendingVerification("password reset in progress")
            outcome = self._validator.verify(email, code.strip())
            self._pending_purpose = None
            self._transition(SessionState.authenticated(outcome.account_id))

    def resend_code(self) -> None:
        """
        Issue a fresh code for the pending email, invalidating the previous one.

        Raises:
            NoPendingVerification: If no verification is pending
            ResendTooSoon: If the current code is younger than the resend cooldown
        """
        with self._lock:
            email = self._require_pending_email()
            if self._pending_purpose is VerificationPurpose.RESET_PASSWORD:
                self._issue_reset(email, resend=True)
            else:
                self._issuer.resend(email, self._pending_purpose)

    def request_password_reset(self, email: str) -> None:
        """
        Send a password-reset code if an account exists for the email.

        The session awaits a code either way, so callers cannot tell
        registered emails from unknown ones.
        """
        normalized_email = self._normalize_email(email)
        with self._lock:
            self._issue_reset(normalized_email, resend=False)
            self._await(normalized_email, VerificationPurpose.RESET_PASSWORD)

    def reset_password(self, code: str, new_credential: str) -> None:
        """
        Submit the reset code with the new credential.

        On success the session returns to ANONYMOUS; the user signs in
        with the new credential. On failure it stays AWAITING_VERIFICATION.

        Raises:
            NoPendingVerification: If no password reset is pending
            CredentialTooLong: If the new credential exceeds 72 UTF-8 bytes
            VerificationFailed: CodeNotFound, CodeExpired or CodeMismatch
            StateInconsistent: If the account disappeared mid-flow
            StorageFailure: If a store failed
        """
        with self._lock:
            email = self._require_pending_email()
            if self._pending_purpose is not VerificationPurpose.RESET_PASSWORD:
                raise NoPendingVerification("no password reset in progress")
            if not credential_fits(new_credential):
                raise CredentialTooLong(email)

            self._validator.reset_credential(email, code.strip(), self._hash_credential(new_credential))
            self._pending_purpose = None
            self._transition(SessionState.anonymous())

    def sign_out(self) -> None:
        with self._lock:
            if self._state.phase is not SessionPhase.AUTHENTICATED:
                return
            logger.info("Account %s signed out", self._state.active_account_id)
            self._transition(SessionState.anonymous())

    def delete_account(self) -> None:
        """
        Delete the authenticated account and reset the session.

        Raises:
            NotAuthenticated: If no account is signed in
            StorageFailure: If the account could not be deleted
        """
        with self._lock:
            account_id = self._require_account_id()
            self._account_store.delete(account_id)
            logger.info("Account %s deleted", account_id)
            self._transition(SessionState.anonymous())

    def current_account(self) -> Account | None:
        """Fetch the authenticated account's profile."""
        with self._lock:
            return self._account_store.fetch_by_id(self._require_account_id())

    def _issue_reset(self, email: str, resend: bool) -> None:
        if self._account_store.fetch_by_email(email) is None:
            logger.info("Password reset requested for unknown email %s; no code sent", email)
            return
        if resend:
            self._issuer.resend(email, VerificationPurpose.RESET_PASSWORD)
        else:
            self._issuer.issue(email, VerificationPurpose.RESET_PASSWORD)

    def _await(self, email: str, purpose: VerificationPurpose) -> None:
        self._pending_purpose = purpose
        self._transition(SessionState.awaiting(email))

    def _transition(self, new_state: SessionState) -> None:
        old_phase = self._state.phase
        self._state = new_state
        logger.info("Session %s -> %s", old_phase.value, new_state.phase.value)
        for stream in list(self._streams):
            stream._publish(new_state)

    def _require_pending_email(self) -> str:
        if self._state.phase is not SessionPhase.AWAITING_VERIFICATION:
            raise NoPendingVerification(self._state.phase.value)
        return self._state.pending_email

    def _require_account_id(self) -> str:
        if self._state.phase is not SessionPhase.AUTHENTICATED:
            raise NotAuthenticated(self._state.phase.value)
        return self._state.active_account_id

    def _unsubscribe(self, stream: SessionStream) -> None:
        with self._lock:
            if stream in self._streams:
                self._streams.remove(stream)

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()

    def _hash_credential(self, credential: str) -> str:
        """Hash the credential with bcrypt before it is staged."""
        return bcrypt.hashpw(credential.encode(), bcrypt.gensalt(rounds=self._bcrypt_cost)).decode()
