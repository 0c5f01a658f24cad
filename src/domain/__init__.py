"""
Domain layer - Pure business logic with zero framework imports.

This package contains the credential and session lifecycle engine:
password hashing, token issuance, TOTP, and the AccountLifecycle state
machine. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .exceptions import (
    ConcurrencyConflictError,
    DependencyError,
    DuplicateAccountError,
    EmailNotVerifiedError,
    ErrorKind,
    InvalidCredentialsError,
    InvalidTokenError,
    InvalidTwoFactorCodeError,
    LifecycleError,
    ValidationError,
)
from .lifecycle import AccountLifecycle
from .models import (
    AccessClaims,
    Account,
    AuthTokens,
    LifecycleConfig,
    LoginResult,
    RegistrationReceipt,
    TwoFactorSetup,
)
from .passwords import PasswordHasher
from .ports import AccountLedger, NotificationGateway
from .results import Failure, Ok, Result
from .tokens import TokenIssuer
from .totp import TotpEngine

__all__ = [
    "AccessClaims",
    "Account",
    "AccountLedger",
    "AccountLifecycle",
    "AuthTokens",
    "ConcurrencyConflictError",
    "DependencyError",
    "DuplicateAccountError",
    "EmailNotVerifiedError",
    "ErrorKind",
    "Failure",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "InvalidTwoFactorCodeError",
    "LifecycleConfig",
    "LifecycleError",
    "LoginResult",
    "NotificationGateway",
    "Ok",
    "PasswordHasher",
    "RegistrationReceipt",
    "Result",
    "TokenIssuer",
    "TotpEngine",
    "TwoFactorSetup",
    "ValidationError",
]
