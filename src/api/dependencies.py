"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository
from src.adapters.smtp.console import ConsoleEmailSender
from src.api.errors import AuthenticationFailed
from src.config.settings import Settings
from src.domain.accounts import AccountService
from src.domain.exceptions import AccountError
from src.domain.passwords import PasswordHasher
from src.domain.ports import Account

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()

SESSION_COOKIE = "token"


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_app_settings(request: Request) -> Settings:
    """Get the settings loaded once at startup."""
    return request.app.state.settings


def get_repository(request: Request) -> PostgresAccountRepository:
    """Create repository with connection pool from app state."""
    pool = get_pool(request)
    return PostgresAccountRepository(pool)


def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_account_service(request: Request) -> AccountService:
    """
    Create account service with injected dependencies.

    Wires together the repository, email sender and settings for the domain service.
    """
    settings = get_app_settings(request)
    return AccountService(
        repository=get_repository(request),
        email_sender=get_email_sender(),
        jwt_secret=settings.jwt_secret_key,
        jwt_maxage=settings.jwt_maxage,
        hasher=PasswordHasher(cost=settings.bcrypt_cost, max_length=settings.max_password_length),
        verification_ttl_seconds=settings.verification_token_ttl_seconds,
        reset_ttl_seconds=settings.reset_token_ttl_seconds,
        require_verified_email=settings.require_verified_email,
    )


# Bearer security scheme for OpenAPI documentation. Missing header is not an
# error here: the cookie is tried next and the domain reports TokenNotProvided.
http_bearer = HTTPBearer(auto_error=False)


def get_session_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    token: str | None = Cookie(default=None, alias=SESSION_COOKIE),
) -> str | None:
    """
    Extract the session token from the Authorization header or cookie.

    The Authorization: Bearer header wins when both are present.
    """
    if credentials is not None:
        return credentials.credentials
    return token


def get_current_account(
    token: str | None = Depends(get_session_token),
    service: AccountService = Depends(get_account_service),
) -> Account:
    """
    Authenticate the request and return the principal.

    Any authentication failure is rendered as HTTP 401.
    """
    try:
        return service.authenticate(token)
    except AccountError as e:
        raise AuthenticationFailed(e) from e
