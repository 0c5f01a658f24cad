"""
Domain exceptions - Semantic error types for the credential lifecycle.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Each exception carries an ErrorKind so the lifecycle boundary can
turn it into a typed Failure result.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminator for failed lifecycle operations."""

    VALIDATION = "validation_error"
    DUPLICATE_ACCOUNT = "duplicate_account"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    INVALID_TWO_FACTOR_CODE = "invalid_two_factor_code"
    INVALID_TOKEN = "invalid_token"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    DEPENDENCY = "dependency_error"


class LifecycleError(Exception):
    """Base class for credential lifecycle domain errors."""

    kind: ErrorKind = ErrorKind.VALIDATION


class ValidationError(LifecycleError):
    """Malformed input; the caller may retry with corrected input."""

    kind = ErrorKind.VALIDATION


class DuplicateAccountError(LifecycleError):
    """An account with this email already exists."""

    kind = ErrorKind.DUPLICATE_ACCOUNT


class InvalidCredentialsError(LifecycleError):
    """Unknown email or wrong password (deliberately indistinguishable)."""

    kind = ErrorKind.INVALID_CREDENTIALS


class EmailNotVerifiedError(LifecycleError):
    """Login attempted before the email address was verified."""

    kind = ErrorKind.EMAIL_NOT_VERIFIED


class InvalidTwoFactorCodeError(LifecycleError):
    """Submitted TOTP code did not validate."""

    kind = ErrorKind.INVALID_TWO_FACTOR_CODE


class InvalidTokenError(LifecycleError):
    """Expired, used, forged or mismatched verification, reset, access or refresh token."""

    kind = ErrorKind.INVALID_TOKEN


class ConcurrencyConflictError(LifecycleError):
    """A conditional write lost against a concurrent writer. Retryable."""

    kind = ErrorKind.CONCURRENCY_CONFLICT


class DependencyError(LifecycleError):
    """Storage or notification transport failure."""

    kind = ErrorKind.DEPENDENCY
