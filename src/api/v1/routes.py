"""
API v1 routes.

Defines REST endpoints for the two-phase verification flow. Each client
creates a session, then drives it through sign-up or sign-in, code
verification, sign-out and account deletion.

Verification failures are reported with distinct status codes so the
client can tell "wrong code" (retry) from "expired" and "no code"
(request a new one). Resends inside the cooldown get 429 with a
Retry-After header.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.api.dependencies import (
    Services,
    get_reaper,
    get_services,
    get_session_controller,
    get_session_registry,
)
from src.api.models import (
    AccountResponse,
    CodeSentResponse,
    ErrorResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    ReapResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    VerifyRequest,
)
from src.api.sessions import SessionRegistry
from src.domain.exceptions import (
    AuthError,
    CodeExpired,
    CodeMismatch,
    CodeNotFound,
    CredentialTooLong,
    EmailAlreadyRegistered,
    InvalidCredential,
    NoPendingVerification,
    NotAuthenticated,
    ResendTooSoon,
    StateInconsistent,
    StorageFailure,
)
from src.domain.reaper import StagingReaper
from src.domain.session import SessionController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

# Ordered most specific first; the first isinstance match wins
_ERROR_RESPONSES: list[tuple[type[AuthError], int, str]] = [
    (InvalidCredential, status.HTTP_401_UNAUTHORIZED, "Email or password is incorrect"),
    (EmailAlreadyRegistered, status.HTTP_409_CONFLICT, "Email is already registered"),
    (CredentialTooLong, status.HTTP_422_UNPROCESSABLE_ENTITY, "Password must be at most 72 bytes"),
    (ResendTooSoon, status.HTTP_429_TOO_MANY_REQUESTS, "Please wait before requesting another code"),
    (CodeMismatch, status.HTTP_401_UNAUTHORIZED, "Incorrect verification code"),
    (CodeExpired, status.HTTP_410_GONE, "Verification code expired, request a new one"),
    (CodeNotFound, status.HTTP_404_NOT_FOUND, "No verification code pending, request a new one"),
    (NoPendingVerification, status.HTTP_409_CONFLICT, "No verification in progress"),
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED, "Not signed in"),
    (StateInconsistent, status.HTTP_500_INTERNAL_SERVER_ERROR, "Verification failed"),
    (StorageFailure, status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable"),
]


def _http_error(exc: AuthError) -> HTTPException:
    """Translate a domain error to an HTTPException."""
    for error_type, status_code, detail in _ERROR_RESPONSES:
        if isinstance(exc, error_type):
            headers = None
            if isinstance(exc, ResendTooSoon):
                headers = {"Retry-After": str(exc.retry_after_seconds)}
            return HTTPException(status_code=status_code, detail=detail, headers=headers)
    logger.error("Unmapped domain error: %r", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Request failed")


def _code_sent(session_id: str, controller: SessionController, services: Services) -> CodeSentResponse:
    state = controller.state
    return CodeSentResponse(
        session_id=session_id,
        phase=state.phase,
        pending_email=state.pending_email,
        expires_in_seconds=int(services.issuer.ttl.total_seconds()),
    )


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a session",
    description="Create an anonymous session. The returned session id addresses all further calls.",
)
def create_session(registry: SessionRegistry = Depends(get_session_registry)) -> SessionResponse:
    session_id, controller = registry.create()
    return SessionResponse.from_state(session_id, controller.state)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown session"}},
    summary="Get session state",
)
def get_session(
    session_id: str,
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    return SessionResponse.from_state(session_id, controller.state)


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Unknown session"}},
    summary="End a session",
    description="Forget the session. Its id stops working; accounts are not affected.",
)
def end_session(session_id: str, registry: SessionRegistry = Depends(get_session_registry)) -> Response:
    if not registry.discard(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sessions/{session_id}/sign-up",
    response_model=CodeSentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"description": "Validation error or password too long"},
    },
    summary="Sign up",
    description="Stage a registration and send a 6-digit verification code to the email.",
)
def sign_up(
    session_id: str,
    request_data: SignUpRequest,
    controller: SessionController = Depends(get_session_controller),
    services: Services = Depends(get_services),
) -> CodeSentResponse:
    try:
        controller.sign_up(request_data.email, request_data.display_name, request_data.password)
    except AuthError as exc:
        raise _http_error(exc) from None
    return _code_sent(session_id, controller, services)


@router.post(
    "/sessions/{session_id}/sign-in",
    response_model=CodeSentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        422: {"description": "Validation error"},
    },
    summary="Sign in",
    description="Check credentials and send a 6-digit verification code to the account email.",
)
def sign_in(
    session_id: str,
    request_data: SignInRequest,
    controller: SessionController = Depends(get_session_controller),
    services: Services = Depends(get_services),
) -> CodeSentResponse:
    try:
        controller.sign_in(request_data.email, request_data.password)
    except AuthError as exc:
        raise _http_error(exc) from None
    return _code_sent(session_id, controller, services)


@router.post(
    "/sessions/{session_id}/verify",
    response_model=SessionResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Incorrect code"},
        404: {"model": ErrorResponse, "description": "No code pending"},
        409: {"model": ErrorResponse, "description": "No verification in progress"},
        410: {"model": ErrorResponse, "description": "Code expired"},
        422: {"description": "Validation error"},
    },
    summary="Verify code",
    description="Submit the 6-digit code received by email to complete sign-up or sign-in.",
)
def verify(
    session_id: str,
    request_data: VerifyRequest,
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    try:
        controller.verify(request_data.code)
    except AuthError as exc:
        raise _http_error(exc) from None
    return SessionResponse.from_state(session_id, controller.state)


@router.post(
    "/sessions/{session_id}/resend",
    response_model=CodeSentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        409: {"model": ErrorResponse, "description": "No verification in progress"},
        429: {"model": ErrorResponse, "description": "Resend cooldown has not elapsed"},
    },
    summary="Resend code",
    description="Issue a fresh code for the pending email. Earlier codes stop working. "
    "Allowed once the current code is older than the resend cooldown.",
)
def resend_code(
    session_id: str,
    controller: SessionController = Depends(get_session_controller),
    services: Services = Depends(get_services),
) -> CodeSentResponse:
    try:
        controller.resend_code()
    except AuthError as exc:
        raise _http_error(exc) from None
    return _code_sent(session_id, controller, services)


@router.post(
    "/sessions/{session_id}/password-reset",
    response_model=CodeSentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={422: {"description": "Validation error"}},
    summary="Request password reset",
    description="Send a 6-digit reset code if an account exists for the email. "
    "The response is the same whether or not it does.",
)
def request_password_reset(
    session_id: str,
    request_data: PasswordResetRequest,
    controller: SessionController = Depends(get_session_controller),
    services: Services = Depends(get_services),
) -> CodeSentResponse:
    try:
        controller.request_password_reset(request_data.email)
    except AuthError as exc:
        raise _http_error(exc) from None
    return _code_sent(session_id, controller, services)


@router.post(
    "/sessions/{session_id}/password-reset/confirm",
    response_model=SessionResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Incorrect code"},
        404: {"model": ErrorResponse, "description": "No code pending"},
        409: {"model": ErrorResponse, "description": "No password reset in progress"},
        410: {"model": ErrorResponse, "description": "Code expired"},
        422: {"description": "Validation error"},
    },
    summary="Complete password reset",
    description="Submit the reset code with a new password. The session returns to ANONYMOUS.",
)
def confirm_password_reset(
    session_id: str,
    request_data: PasswordResetConfirmRequest,
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    try:
        controller.reset_password(request_data.code, request_data.new_password)
    except AuthError as exc:
        raise _http_error(exc) from None
    return SessionResponse.from_state(session_id, controller.state)


@router.post(
    "/sessions/{session_id}/sign-out",
    response_model=SessionResponse,
    summary="Sign out",
)
def sign_out(
    session_id: str,
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    controller.sign_out()
    return SessionResponse.from_state(session_id, controller.state)


@router.get(
    "/sessions/{session_id}/account",
    response_model=AccountResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
    summary="Get signed-in account",
)
def get_account(
    controller: SessionController = Depends(get_session_controller),
) -> AccountResponse:
    try:
        account = controller.current_account()
    except AuthError as exc:
        raise _http_error(exc) from None
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse.from_account(account)


@router.delete(
    "/sessions/{session_id}/account",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse, "description": "Not signed in"}},
    summary="Delete account",
    description="Permanently delete the signed-in account and end the session.",
)
def delete_account(
    session_id: str,
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    try:
        controller.delete_account()
    except AuthError as exc:
        raise _http_error(exc) from None
    return SessionResponse.from_state(session_id, controller.state)


@router.post(
    "/maintenance/reap",
    response_model=ReapResponse,
    summary="Reap abandoned staging records",
    description="Delete expired verification codes and sign-ups never verified within the pending TTL.",
)
def reap(reaper: StagingReaper = Depends(get_reaper)) -> ReapResponse:
    try:
        result = reaper.sweep()
    except AuthError as exc:
        raise _http_error(exc) from None
    return ReapResponse(codes_removed=result.codes, registrations_removed=result.registrations)
