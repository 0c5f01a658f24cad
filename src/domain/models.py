"""
Domain models - Account aggregate, configuration and operation payloads.

Plain dataclasses only; persistence and transport layers map these to
their own representations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass
class Account:
    """
    Account aggregate root.

    Session state is modelled purely by refresh token presence:
    LoggedIn while refresh_token is set and unexpired, LoggedOut otherwise.

    Two-factor state is derived from two fields:
    - TwoFactorOff: two_factor_secret is None
    - TwoFactorPending: secret set, two_factor_enabled False
    - TwoFactorOn: secret set, two_factor_enabled True
    """

    id: str
    first_name: str
    last_name: str
    email: str
    password_hash: bytes = field(repr=False)
    password_salt: bytes = field(repr=False)
    created_at: datetime
    email_verified: bool = False
    two_factor_enabled: bool = False
    two_factor_secret: str | None = field(default=None, repr=False)
    totp_last_step: int | None = None
    refresh_token: str | None = field(default=None, repr=False)
    refresh_token_expires_at: datetime | None = None
    last_login_at: datetime | None = None
    version: int = 0

    def active_refresh_token(self, now: datetime) -> str | None:
        """Return the stored refresh token, or None if absent or expired."""
        if self.refresh_token is None or self.refresh_token_expires_at is None:
            return None
        if self.refresh_token_expires_at <= now:
            return None
        return self.refresh_token


@dataclass(frozen=True)
class LifecycleConfig:
    """
    Immutable engine configuration, built once per process.

    Durations are timedeltas; password_hash_cost is the bcrypt work factor.
    """

    access_token_ttl: timedelta = timedelta(minutes=30)
    refresh_token_ttl: timedelta = timedelta(days=7)
    verification_token_ttl: timedelta = timedelta(hours=24)
    reset_token_ttl: timedelta = timedelta(hours=1)
    password_hash_cost: int = 12
    totp_issuer_label: str = "Lifecycle"
    totp_step_tolerance_steps: int = 1
    totp_replay_protection: bool = False
    revoke_on_refresh_mismatch: bool = False
    max_conflict_retries: int = 3


@dataclass(frozen=True)
class AccessClaims:
    """Identity carried by a validated access token."""

    account_id: str
    email: str
    expires_at: datetime


@dataclass(frozen=True)
class AuthTokens:
    """Access/refresh token pair issued on login or rotation."""

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful credential check."""

    requires_two_factor: bool
    tokens: AuthTokens | None = None


@dataclass(frozen=True)
class TwoFactorSetup:
    """Pending TOTP secret and its provisioning URI."""

    secret: str = field(repr=False)
    provisioning_uri: str = field(repr=False)


@dataclass(frozen=True)
class RegistrationReceipt:
    account_id: str
    email: str
