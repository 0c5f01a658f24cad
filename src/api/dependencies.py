"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.smtp.console import ConsoleNotificationGateway
from src.config.settings import get_settings
from src.domain.lifecycle import AccountLifecycle
from src.domain.models import AccessClaims
from src.domain.passwords import PasswordHasher
from src.domain.ports import AccountLedger
from src.domain.results import Failure
from src.domain.tokens import TokenIssuer
from src.domain.totp import TotpEngine


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide hasher; building it costs one bcrypt derivation."""
    return PasswordHasher(cost=get_settings().password_hash_cost)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Process-wide token issuer holding the signing key."""
    settings = get_settings()
    return TokenIssuer(
        signing_key=settings.jwt_secret,
        config=settings.lifecycle_config(),
        algorithm=settings.jwt_algorithm,
        verification_key=settings.jwt_public_key,
        issuer=settings.jwt_issuer,
    )


@lru_cache
def get_totp_engine() -> TotpEngine:
    return TotpEngine(tolerance_steps=get_settings().totp_step_tolerance_steps)


@lru_cache
def get_notification_gateway() -> ConsoleNotificationGateway:
    """Get console notification gateway (singleton, stateless)."""
    return ConsoleNotificationGateway(frontend_url=get_settings().frontend_url)


def get_ledger(request: Request) -> AccountLedger:
    """
    Get the account ledger from app state.

    The ledger is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.ledger


def get_lifecycle(request: Request) -> AccountLifecycle:
    """
    Create the lifecycle service with injected dependencies.

    Wires together the ledger, notification gateway and crypto engines.
    """
    return AccountLifecycle(
        ledger=get_ledger(request),
        notifications=get_notification_gateway(),
        hasher=get_password_hasher(),
        tokens=get_token_issuer(),
        totp=get_totp_engine(),
        config=get_settings().lifecycle_config(),
    )


# Bearer access token security scheme for OpenAPI documentation
http_bearer = HTTPBearer()


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials = Depends(http_bearer),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> AccessClaims:
    """
    Validate the bearer access token.

    Returns:
        Claims identifying the authenticated account

    Raises:
        HTTPException: 401 for missing, malformed, forged or expired tokens
    """
    result = await lifecycle.authenticate(credentials.credentials)
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.value
