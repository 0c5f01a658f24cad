"""
Token issuance - signed JWTs and opaque refresh tokens.

Token kinds (distinguished by the "purpose" claim):
- access: short-lived, sub = account id, never stored server-side
- verify_email: sub = email, single use via Account.email_verified
- reset_password: sub = email, fp = password fingerprint, single use
  because a successful reset changes the fingerprint

Refresh tokens are NOT JWTs: they are opaque random strings whose only
meaning is an exact match against the ledger.

Expiry is checked against the injected clock rather than PyJWT's own
wall-clock check, so one time source governs every expiry decision.
"""

import hashlib
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import jwt

from .exceptions import InvalidTokenError
from .models import AccessClaims, Account, LifecycleConfig

logger = logging.getLogger(__name__)

PURPOSE_ACCESS = "access"
PURPOSE_VERIFY_EMAIL = "verify_email"
PURPOSE_RESET_PASSWORD = "reset_password"

# 48 bytes -> 384 bits of entropy, 64 url-safe characters
REFRESH_TOKEN_BYTES = 48


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def password_fingerprint(password_hash: bytes, salt: bytes) -> str:
    """Short digest of the stored credentials, embedded in reset tokens."""
    return hashlib.sha256(salt + b":" + password_hash).hexdigest()[:32]


class TokenIssuer:
    """Creates and validates signed tokens with a process-wide key."""

    def __init__(
        self,
        signing_key: str,
        config: LifecycleConfig,
        algorithm: str = "HS256",
        verification_key: str | None = None,
        issuer: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Args:
            signing_key: HMAC secret, or PEM private key for asymmetric algorithms
            config: Lifecycle configuration (token TTLs)
            algorithm: JWS algorithm, HS256 by default
            verification_key: PEM public key for asymmetric algorithms;
                defaults to signing_key
            issuer: Optional "iss" claim, required on validation when set
            clock: Time source for iat/exp
        """
        self._signing_key = signing_key
        self._verification_key = verification_key or signing_key
        self._algorithm = algorithm
        self._issuer = issuer
        self._config = config
        self._clock = clock

    # -- access tokens ------------------------------------------------------

    def issue_access_token(self, account: Account) -> tuple[str, datetime]:
        """
        Sign an access token for the account.

        Returns:
            Tuple of (token, expiry)
        """
        expires_at = self._clock() + self._config.access_token_ttl
        claims = {
            "sub": account.id,
            "email": account.email,
            "jti": uuid.uuid4().hex,
        }
        return self._encode(PURPOSE_ACCESS, claims, expires_at), expires_at

    def validate_access_token(self, token: str) -> AccessClaims:
        """
        Validate signature, purpose and expiry.

        Raises:
            InvalidTokenError: On any failure (fails closed)
        """
        payload = self._decode(token, PURPOSE_ACCESS, check_expiry=True)
        email = payload.get("email")
        if not isinstance(email, str):
            raise InvalidTokenError("Invalid access token")
        return AccessClaims(
            account_id=payload["sub"],
            email=email,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def identity_from_token(self, token: str) -> str:
        """
        Extract the account id from an access token, ignoring expiry.

        Used by refresh rotation, where the access token has usually
        expired already. The signature is still verified.
        """
        return self._decode(token, PURPOSE_ACCESS, check_expiry=False)["sub"]

    # -- refresh tokens -----------------------------------------------------

    def issue_refresh_token(self) -> tuple[str, datetime]:
        """
        Generate an opaque refresh token.

        Returns:
            Tuple of (token, expiry)
        """
        expires_at = self._clock() + self._config.refresh_token_ttl
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES), expires_at

    # -- verification / reset tokens ---------------------------------------

    def issue_verification_token(self, email: str) -> str:
        expires_at = self._clock() + self._config.verification_token_ttl
        return self._encode(PURPOSE_VERIFY_EMAIL, {"sub": email}, expires_at)

    def redeem_verification_token(self, token: str) -> str:
        """Return the email the verification token was issued for."""
        return self._decode(token, PURPOSE_VERIFY_EMAIL, check_expiry=True)["sub"]

    def issue_reset_token(self, email: str, fingerprint: str) -> str:
        expires_at = self._clock() + self._config.reset_token_ttl
        return self._encode(
            PURPOSE_RESET_PASSWORD, {"sub": email, "fp": fingerprint}, expires_at
        )

    def redeem_reset_token(self, token: str) -> tuple[str, str]:
        """
        Returns:
            Tuple of (email, password fingerprint at issuance)
        """
        payload = self._decode(token, PURPOSE_RESET_PASSWORD, check_expiry=True)
        fingerprint = payload.get("fp")
        if not isinstance(fingerprint, str):
            raise InvalidTokenError("Invalid or expired reset token")
        return payload["sub"], fingerprint

    # -- internals ----------------------------------------------------------

    def _encode(self, purpose: str, claims: dict, expires_at: datetime) -> str:
        now = self._clock()
        payload = {
            **claims,
            "purpose": purpose,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        if self._issuer:
            payload["iss"] = self._issuer
        return jwt.encode(payload, self._signing_key, algorithm=self._algorithm)

    def _decode(self, token: str, purpose: str, check_expiry: bool) -> dict:
        messages = {
            PURPOSE_ACCESS: "Invalid access token",
            PURPOSE_VERIFY_EMAIL: "Invalid or expired verification token",
            PURPOSE_RESET_PASSWORD: "Invalid or expired reset token",
        }
        message = messages[purpose]
        options = {
            "verify_exp": False,
            "verify_iat": False,
            "require": ["exp", "iat", "sub"],
        }
        try:
            payload = jwt.decode(
                token,
                self._verification_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options=options,
            )
        except jwt.PyJWTError as e:
            logger.warning("Rejected %s token: %s", purpose, type(e).__name__)
            raise InvalidTokenError(message) from None

        if payload.get("purpose") != purpose or not isinstance(payload.get("sub"), str):
            logger.warning("Rejected %s token: wrong purpose or subject", purpose)
            raise InvalidTokenError(message)

        if check_expiry and payload["exp"] <= self._clock().timestamp():
            logger.info("Rejected %s token: expired", purpose)
            raise InvalidTokenError(message)

        return payload
