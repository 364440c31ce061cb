"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository
from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.tokens.jwt_issuer import JwtTokenIssuer
from src.config.settings import get_settings
from src.domain.exceptions import InvalidToken
from src.domain.ports import TokenClaims
from src.domain.registration import RegistrationService

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_repository(request: Request) -> PostgresAccountRepository:
    """Create repository with connection pool from app state."""
    pool = get_pool(request)
    return PostgresAccountRepository(pool)


def get_email_sender() -> ConsoleEmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_token_issuer() -> JwtTokenIssuer:
    """Create the JWT issuer from settings."""
    settings = get_settings()
    return JwtTokenIssuer(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_days=settings.token_ttl_days,
    )


def get_registration_service(request: Request) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the repository, email sender and token issuer.
    """
    return RegistrationService(
        repository=get_repository(request),
        email_sender=get_email_sender(),
        token_issuer=get_token_issuer(),
        bcrypt_cost=get_settings().bcrypt_cost,
    )


# Bearer token security scheme for OpenAPI documentation
http_bearer = HTTPBearer(auto_error=False)


def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    token_issuer: JwtTokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    """
    Resolve the caller from the Authorization: Bearer header.

    Returns 401 for a missing, expired or badly signed token.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"reason": InvalidToken.reason, "message": "Unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return token_issuer.verify(credentials.credentials)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"reason": exc.reason, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
