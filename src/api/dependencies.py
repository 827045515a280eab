"""
FastAPI dependencies - Dependency injection factories.

This module wires domain services to infrastructure adapters according
to Settings, and provides Depends() factories for injecting them into
routes.
"""

import math
from dataclasses import dataclass
from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status
from psycopg_pool import ConnectionPool

from src.adapters.clock import SystemClock
from src.adapters.repository.memory import (
    InMemoryAccountStore,
    InMemoryPendingRegistrationStore,
    InMemoryVerificationStore,
)
from src.adapters.repository.postgres import (
    PostgresAccountStore,
    PostgresPendingRegistrationStore,
    PostgresVerificationStore,
)
from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.smtp.smtp import SmtpEmailSender
from src.api.sessions import SessionRegistry
from src.config.settings import Settings
from src.domain.issuer import VerificationCodeIssuer
from src.domain.ports import (
    AccountStore,
    Clock,
    NotificationGateway,
    PendingRegistrationStore,
    VerificationStore,
)
from src.domain.reaper import StagingReaper
from src.domain.session import SessionController
from src.domain.validator import VerificationValidator


@dataclass
class Services:
    """Adapters and domain services shared by every session."""

    verification_store: VerificationStore
    pending_store: PendingRegistrationStore
    account_store: AccountStore
    gateway: NotificationGateway
    clock: Clock
    issuer: VerificationCodeIssuer
    validator: VerificationValidator
    reaper: StagingReaper
    bcrypt_cost: int = 10

    def new_controller(self) -> SessionController:
        return SessionController(
            issuer=self.issuer,
            validator=self.validator,
            pending_store=self.pending_store,
            account_store=self.account_store,
            clock=self.clock,
            bcrypt_cost=self.bcrypt_cost,
        )


def build_gateway(settings: Settings) -> NotificationGateway:
    """Select the email adapter configured by EMAIL_BACKEND."""
    if settings.email_backend == "smtp":
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            from_email=settings.smtp_from_email,
            from_name=settings.smtp_from_name,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout_seconds=settings.smtp_timeout_seconds,
            expire_minutes=math.ceil(settings.code_ttl_seconds / 60),
        )
    return ConsoleEmailSender()


def build_services(
    settings: Settings,
    pool: ConnectionPool | None = None,
    clock: Clock | None = None,
    gateway: NotificationGateway | None = None,
) -> Services:
    """
    Wire stores, gateway and domain services.

    Postgres stores are used when a pool is given, in-memory stores otherwise.
    """
    clock = clock or SystemClock()
    gateway = gateway or build_gateway(settings)

    if pool is not None:
        verification_store = PostgresVerificationStore(pool)
        pending_store = PostgresPendingRegistrationStore(pool)
        account_store = PostgresAccountStore(pool)
    else:
        verification_store = InMemoryVerificationStore()
        pending_store = InMemoryPendingRegistrationStore()
        account_store = InMemoryAccountStore()

    return Services(
        verification_store=verification_store,
        pending_store=pending_store,
        account_store=account_store,
        gateway=gateway,
        clock=clock,
        issuer=VerificationCodeIssuer(
            store=verification_store,
            gateway=gateway,
            clock=clock,
            ttl=timedelta(seconds=settings.code_ttl_seconds),
            resend_cooldown=timedelta(seconds=settings.resend_cooldown_seconds),
        ),
        validator=VerificationValidator(
            verification_store=verification_store,
            pending_store=pending_store,
            account_store=account_store,
            clock=clock,
        ),
        reaper=StagingReaper(
            verification_store=verification_store,
            pending_store=pending_store,
            clock=clock,
            pending_ttl=timedelta(seconds=settings.pending_ttl_seconds),
        ),
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_services(request: Request) -> Services:
    """
    Get wired services from app state.

    Services are built during app lifespan startup and stored in app.state.
    """
    return request.app.state.services


def get_session_registry(request: Request) -> SessionRegistry:
    """Get the per-client session registry from app state."""
    return request.app.state.sessions


def get_reaper(services: Services = Depends(get_services)) -> StagingReaper:
    return services.reaper


def get_session_controller(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionController:
    """
    Resolve the session controller for the session_id path parameter.

    Raises:
        HTTPException: 404 if the session id is unknown
    """
    controller = registry.get(session_id)
    if controller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return controller
