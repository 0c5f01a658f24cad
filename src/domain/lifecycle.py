"""
Account lifecycle domain service - credential and session state machine.

This module contains the core business logic for registration, email
verification, login, two-factor enrolment, password reset, refresh token
rotation and logout.

Account State (orthogonal flags, not a single enum)
===================================================

Verification:   Unverified -> Verified          (verification token redeemed)
Two-factor:     Off -> Pending -> On            (setup, then confirm with a code)
                Pending -> Pending              (setup again overwrites the secret)
Session:        LoggedOut <-> LoggedIn          (refresh token present and unexpired)

Login Sequence
==============

1. Unknown email           -> InvalidCredentialsError (dummy bcrypt run first)
2. Email not verified      -> EmailNotVerifiedError (regardless of password)
3. Wrong password          -> InvalidCredentialsError
4. 2FA on, no code         -> LoginResult(requires_two_factor=True), no tokens
5. 2FA on, bad code        -> InvalidTwoFactorCodeError
6. Otherwise               -> access + refresh tokens, refresh token persisted

Steps 1-3 each cost one ledger read and one bcrypt derivation.

Every write goes through _mutate(), which re-reads the account and
re-applies the change when the ledger reports a version conflict.
Business-rule failures are raised internally and converted to Failure
results at the public method boundary.
"""

import asyncio
import functools
import hmac
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from .exceptions import (
    ConcurrencyConflictError,
    DependencyError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidTokenError,
    InvalidTwoFactorCodeError,
    LifecycleError,
    ValidationError,
)
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
from .tokens import TokenIssuer, password_fingerprint, utcnow
from .totp import TotpEngine

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_NAME_LENGTH = 50
MAX_EMAIL_LENGTH = 100


def _returns_result(operation):
    """Convert LifecycleError raised by an operation into a Failure result."""

    @functools.wraps(operation)
    async def wrapper(self, *args, **kwargs):
        try:
            return await operation(self, *args, **kwargs)
        except LifecycleError as e:
            return Failure.from_error(e)

    return wrapper


@dataclass
class AccountLifecycle:
    """
    Domain service orchestrating the credential and session lifecycle.

    Holds no mutable state of its own: the ledger is the only shared
    mutable resource, and config/issuer/hasher are read-only.
    """

    ledger: AccountLedger
    notifications: NotificationGateway
    hasher: PasswordHasher
    tokens: TokenIssuer
    totp: TotpEngine
    config: LifecycleConfig = field(default_factory=LifecycleConfig)
    clock: Callable[[], datetime] = utcnow

    # -- registration & verification ----------------------------------------

    @_returns_result
    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        confirm_password: str,
    ) -> Result[RegistrationReceipt]:
        """
        Create an unverified account and send a verification link.

        Delivery failure does not undo the account; it is reported as a
        warning on the Ok result.

        Raises (as Failure):
            ValidationError: Bad names, email or password shape
            DuplicateAccountError: Email already registered
        """
        first_name, last_name = first_name.strip(), last_name.strip()
        normalized_email = self._normalize_email(email)
        self._validate_name(first_name, "First name")
        self._validate_name(last_name, "Last name")
        self._validate_email(normalized_email)
        self._validate_new_password(password, confirm_password)

        password_hash, salt = await asyncio.to_thread(self.hasher.hash, password)
        account = Account(
            id=str(uuid.uuid4()),
            first_name=first_name,
            last_name=last_name,
            email=normalized_email,
            password_hash=password_hash,
            password_salt=salt,
            created_at=self.clock(),
        )
        account_id = await self.ledger.insert(account)
        logger.info("Registered account %s", account_id)

        token = self.tokens.issue_verification_token(normalized_email)
        warnings = await self._notify(
            self.notifications.send_verification_link, normalized_email, token
        )
        return Ok(RegistrationReceipt(account_id=account_id, email=normalized_email), warnings)

    @_returns_result
    async def verify_email(self, email: str, token: str) -> Result[None]:
        """
        Redeem a verification token.

        A second redemption fails with InvalidTokenError and leaves the
        account untouched.
        """
        normalized_email = self._normalize_email(email)
        token_email = self.tokens.redeem_verification_token(token)
        if token_email != normalized_email:
            raise InvalidTokenError("Invalid or expired verification token")

        def apply(account: Account) -> Account:
            if account.email_verified:
                raise InvalidTokenError("Verification token has already been used")
            return replace(account, email_verified=True)

        account = await self._mutate(
            functools.partial(self.ledger.find_by_email, normalized_email),
            apply,
            InvalidTokenError("Invalid or expired verification token"),
        )
        logger.info("Verified email for account %s", account.id)
        return Ok(None)

    # -- login ------------------------------------------------------------

    @_returns_result
    async def login(
        self, email: str, password: str, two_factor_code: str | None = None
    ) -> Result[LoginResult]:
        """
        Authenticate and, on full success, issue an access/refresh pair.

        An enabled second factor without a code yields
        LoginResult(requires_two_factor=True) instead of an error.
        """
        normalized_email = self._normalize_email(email)
        account = await self.ledger.find_by_email(normalized_email)

        if account is None:
            await asyncio.to_thread(self.hasher.dummy_verify, password)
            logger.info("Login rejected: invalid credentials")
            raise InvalidCredentialsError("Invalid credentials")

        # Always derive before branching so every pre-token path costs the same
        password_valid = await asyncio.to_thread(
            self.hasher.verify, password, account.password_hash, account.password_salt
        )
        if not account.email_verified:
            logger.info("Login rejected for account %s: email not verified", account.id)
            raise EmailNotVerifiedError("Please verify your email first")
        if not password_valid:
            logger.info("Login rejected: invalid credentials")
            raise InvalidCredentialsError("Invalid credentials")

        if account.two_factor_enabled and not two_factor_code:
            return Ok(LoginResult(requires_two_factor=True))

        verified_hash = account.password_hash
        now = self.clock()
        refresh_token, refresh_expires_at = self.tokens.issue_refresh_token()

        def apply(current: Account) -> Account:
            # Password changed between verification and write
            if not hmac.compare_digest(current.password_hash, verified_hash):
                raise InvalidCredentialsError("Invalid credentials")
            last_step = current.totp_last_step
            if current.two_factor_enabled:
                last_step = self._check_totp(current, two_factor_code or "", now)
            return replace(
                current,
                refresh_token=refresh_token,
                refresh_token_expires_at=refresh_expires_at,
                last_login_at=now,
                totp_last_step=last_step,
            )

        account = await self._mutate(
            functools.partial(self.ledger.find_by_id, account.id),
            apply,
            InvalidCredentialsError("Invalid credentials"),
        )
        access_token, access_expires_at = self.tokens.issue_access_token(account)
        logger.info("Account %s logged in", account.id)
        return Ok(
            LoginResult(
                requires_two_factor=False,
                tokens=AuthTokens(
                    access_token=access_token,
                    refresh_token=refresh_token,
                    access_token_expires_at=access_expires_at,
                    refresh_token_expires_at=refresh_expires_at,
                ),
            )
        )

    @_returns_result
    async def authenticate(self, access_token: str) -> Result[AccessClaims]:
        """Validate an access token for an authenticated operation."""
        return Ok(self.tokens.validate_access_token(access_token))

    # -- two-factor -------------------------------------------------------

    @_returns_result
    async def setup_two_factor(self, account_id: str) -> Result[TwoFactorSetup]:
        """
        Generate and store a pending TOTP secret.

        Overwrites any earlier pending secret. Accounts with 2FA already
        on are rejected rather than silently re-keyed.
        """
        secret = self.totp.generate_secret()

        def apply(account: Account) -> Account:
            if account.two_factor_enabled:
                raise ValidationError("Two-factor authentication is already enabled")
            return replace(account, two_factor_secret=secret, totp_last_step=None)

        account = await self._mutate(
            functools.partial(self.ledger.find_by_id, account_id),
            apply,
            InvalidTokenError("Unknown account"),
        )
        logger.info("Two-factor setup started for account %s", account.id)
        uri = self.totp.provisioning_uri(self.config.totp_issuer_label, account.email, secret)
        return Ok(TwoFactorSetup(secret=secret, provisioning_uri=uri))

    @_returns_result
    async def confirm_two_factor(self, account_id: str, code: str) -> Result[None]:
        """Enable 2FA once a code for the pending secret validates."""
        now = self.clock()

        def apply(account: Account) -> Account:
            if not account.two_factor_secret:
                raise InvalidTwoFactorCodeError("No two-factor setup is pending")
            last_step = self._check_totp(account, code, now)
            return replace(account, two_factor_enabled=True, totp_last_step=last_step)

        account = await self._mutate(
            functools.partial(self.ledger.find_by_id, account_id),
            apply,
            InvalidTokenError("Unknown account"),
        )
        logger.info("Two-factor authentication enabled for account %s", account.id)
        return Ok(None)

    # -- password reset ---------------------------------------------------

    @_returns_result
    async def request_password_reset(self, email: str) -> Result[None]:
        """
        Send a reset link if the account exists.

        The result is identical for known and unknown emails, and delivery
        failures are logged only.
        """
        normalized_email = self._normalize_email(email)
        account = await self.ledger.find_by_email(normalized_email)
        if account is None:
            logger.info("Password reset requested for unknown email")
            return Ok(None)

        token = self.tokens.issue_reset_token(
            normalized_email,
            password_fingerprint(account.password_hash, account.password_salt),
        )
        await self._notify(self.notifications.send_password_reset_link, normalized_email, token)
        logger.info("Password reset issued for account %s", account.id)
        return Ok(None)

    @_returns_result
    async def reset_password(
        self, email: str, token: str, new_password: str, confirm_new_password: str
    ) -> Result[None]:
        """
        Redeem a reset token and replace the password.

        Clears the stored refresh token so every device must log in again.
        """
        self._validate_new_password(new_password, confirm_new_password)
        normalized_email = self._normalize_email(email)
        token_email, fingerprint = self.tokens.redeem_reset_token(token)
        if token_email != normalized_email:
            raise InvalidTokenError("Invalid or expired reset token")

        password_hash, salt = await asyncio.to_thread(self.hasher.hash, new_password)

        def apply(account: Account) -> Account:
            current = password_fingerprint(account.password_hash, account.password_salt)
            if not hmac.compare_digest(current.encode(), fingerprint.encode()):
                raise InvalidTokenError("Invalid or expired reset token")
            return replace(
                account,
                password_hash=password_hash,
                password_salt=salt,
                refresh_token=None,
                refresh_token_expires_at=None,
            )

        account = await self._mutate(
            functools.partial(self.ledger.find_by_email, normalized_email),
            apply,
            InvalidTokenError("Invalid or expired reset token"),
        )
        logger.info("Password reset for account %s; sessions revoked", account.id)
        return Ok(None)

    # -- sessions ---------------------------------------------------------

    @_returns_result
    async def refresh_token(self, access_token: str, refresh_token: str) -> Result[AuthTokens]:
        """
        Rotate the access/refresh pair.

        The access token may be expired but must carry a valid signature;
        the refresh token must exactly match the stored, unexpired value.
        The old refresh token is unusable once this succeeds.
        """
        account_id = self.tokens.identity_from_token(access_token)
        now = self.clock()
        new_refresh_token, refresh_expires_at = self.tokens.issue_refresh_token()

        def apply(account: Account) -> Account:
            stored = account.active_refresh_token(now)
            if stored is None or not hmac.compare_digest(
                stored.encode(), refresh_token.encode()
            ):
                raise InvalidTokenError("Invalid refresh token")
            return replace(
                account,
                refresh_token=new_refresh_token,
                refresh_token_expires_at=refresh_expires_at,
            )

        try:
            account = await self._mutate(
                functools.partial(self.ledger.find_by_id, account_id),
                apply,
                InvalidTokenError("Invalid refresh token"),
            )
        except InvalidTokenError:
            logger.warning("Refresh token mismatch for account %s", account_id)
            if self.config.revoke_on_refresh_mismatch:
                try:
                    await self._revoke_sessions(account_id)
                except ConcurrencyConflictError:
                    logger.error("Could not revoke refresh token for account %s", account_id)
            raise

        access_token, access_expires_at = self.tokens.issue_access_token(account)
        logger.info("Rotated tokens for account %s", account.id)
        return Ok(
            AuthTokens(
                access_token=access_token,
                refresh_token=new_refresh_token,
                access_token_expires_at=access_expires_at,
                refresh_token_expires_at=refresh_expires_at,
            )
        )

    @_returns_result
    async def logout(self, account_id: str) -> Result[None]:
        """
        Clear the stored refresh token.

        Access tokens already issued stay valid until they expire.
        """
        await self._mutate(
            functools.partial(self.ledger.find_by_id, account_id),
            self._without_session,
            InvalidTokenError("Unknown account"),
        )
        logger.info("Account %s logged out", account_id)
        return Ok(None)

    # -- internals --------------------------------------------------------

    async def _mutate(
        self,
        lookup: Callable[[], Awaitable[Account | None]],
        apply: Callable[[Account], Account],
        not_found: LifecycleError,
    ) -> Account:
        """
        Read-modify-write with bounded retry on version conflicts.

        apply() receives the freshly read account and returns the mutated
        copy; it may raise a LifecycleError to abort without writing.
        """
        attempts = self.config.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            account = await lookup()
            if account is None:
                raise not_found
            updated = apply(account)
            try:
                await self.ledger.update(updated)
            except ConcurrencyConflictError:
                logger.info(
                    "Write conflict on account %s (attempt %d/%d)", account.id, attempt, attempts
                )
                continue
            return updated
        raise ConcurrencyConflictError("Account was modified concurrently, please retry")

    async def _revoke_sessions(self, account_id: str) -> None:
        account = await self.ledger.find_by_id(account_id)
        if account is None or account.refresh_token is None:
            return
        await self._mutate(
            functools.partial(self.ledger.find_by_id, account_id),
            self._without_session,
            InvalidTokenError("Unknown account"),
        )
        logger.warning("Revoked refresh token for account %s after mismatch", account_id)

    @staticmethod
    def _without_session(account: Account) -> Account:
        return replace(account, refresh_token=None, refresh_token_expires_at=None)

    def _check_totp(self, account: Account, code: str, now: datetime) -> int | None:
        """
        Validate a code against the account secret.

        Returns:
            The value to store as totp_last_step

        Raises:
            InvalidTwoFactorCodeError: Code invalid, or replayed when
                replay protection is on
        """
        step = self.totp.match_step(account.two_factor_secret or "", code, now)
        if step is None:
            raise InvalidTwoFactorCodeError("Invalid two-factor code")
        if not self.config.totp_replay_protection:
            return account.totp_last_step
        if account.totp_last_step is not None and step <= account.totp_last_step:
            raise InvalidTwoFactorCodeError("Two-factor code has already been used")
        return step

    async def _notify(
        self, send: Callable[[str, str], Awaitable[None]], email: str, token: str
    ) -> tuple[str, ...]:
        """Best-effort delivery; the account mutation has already committed."""
        try:
            await send(email, token)
        except DependencyError as e:
            logger.warning("Notification delivery failed: %s", e)
            return (f"Notification could not be delivered: {e}",)
        except Exception:
            logger.exception("Notification delivery failed unexpectedly")
            return ("Notification could not be delivered",)
        return ()

    def _normalize_email(self, email: str) -> str:
        """
        Normalize email address for consistent storage and lookup.

        Applies: strip whitespace + lowercase
        """
        return email.strip().lower()

    @staticmethod
    def _validate_name(value: str, label: str) -> None:
        if not value or len(value) > MAX_NAME_LENGTH:
            raise ValidationError(f"{label} must be 1-{MAX_NAME_LENGTH} characters")

    @staticmethod
    def _validate_email(email: str) -> None:
        local, _, domain = email.partition("@")
        if not local or "." not in domain or len(email) > MAX_EMAIL_LENGTH:
            raise ValidationError("Invalid email address")

    def _validate_new_password(self, password: str, confirmation: str) -> None:
        if password != confirmation:
            raise ValidationError("Passwords do not match")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not self.hasher.accepts(password):
            raise ValidationError("Password is too long")
