"""
Unit tests for TokenIssuer.

Tests verify access token validation fails closed, refresh tokens are
opaque and high-entropy, and verification/reset tokens are bound to
their purpose, subject and expiry.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from src.domain.exceptions import InvalidTokenError
from src.domain.models import Account, LifecycleConfig
from src.domain.tokens import TokenIssuer, password_fingerprint
from tests.helpers import TEST_SIGNING_KEY, FrozenClock


def make_account(account_id: str = "acc-1", email: str = "alice@x.com") -> Account:
    return Account(
        id=account_id,
        first_name="Alice",
        last_name="Liddell",
        email=email,
        password_hash=b"$2b$04$hash",
        password_salt=b"$2b$04$salt",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class TestAccessTokens:
    """Tests for access token issuance and validation."""

    def test_valid_token_round_trips_identity(self, token_issuer: TokenIssuer) -> None:
        token, expires_at = token_issuer.issue_access_token(make_account())
        claims = token_issuer.validate_access_token(token)
        assert claims.account_id == "acc-1"
        assert claims.email == "alice@x.com"
        assert claims.expires_at == expires_at

    def test_expiry_uses_configured_ttl(
        self, token_issuer: TokenIssuer, clock: FrozenClock, config: LifecycleConfig
    ) -> None:
        _, expires_at = token_issuer.issue_access_token(make_account())
        assert expires_at == clock() + config.access_token_ttl

    def test_expired_token_rejected(
        self, token_issuer: TokenIssuer, clock: FrozenClock, config: LifecycleConfig
    ) -> None:
        token, _ = token_issuer.issue_access_token(make_account())
        clock.advance(seconds=config.access_token_ttl.total_seconds() + 1)
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(token)

    def test_token_signed_with_other_key_rejected(
        self, config: LifecycleConfig, clock: FrozenClock, token_issuer: TokenIssuer
    ) -> None:
        other = TokenIssuer(signing_key="another-key-that-is-also-32-bytes-long", config=config, clock=clock)
        token, _ = other.issue_access_token(make_account())
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(token)

    def test_tampered_payload_rejected(self, token_issuer: TokenIssuer) -> None:
        token, _ = token_issuer.issue_access_token(make_account())
        header, payload, signature = token.split(".")
        forged_payload = payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB")
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(f"{header}.{forged_payload}.{signature}")

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "...."])
    def test_malformed_token_rejected(self, token_issuer: TokenIssuer, garbage: str) -> None:
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(garbage)

    def test_unsigned_token_rejected(self, token_issuer: TokenIssuer, clock: FrozenClock) -> None:
        """alg=none tokens never validate."""
        now = int(clock().timestamp())
        token = jwt.encode(
            {"sub": "acc-1", "email": "a@x.com", "purpose": "access", "iat": now, "exp": now + 60},
            key=None,
            algorithm="none",
        )
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(token)

    def test_verification_token_is_not_an_access_token(self, token_issuer: TokenIssuer) -> None:
        token = token_issuer.issue_verification_token("alice@x.com")
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(token)

    def test_identity_from_token_ignores_expiry(
        self, token_issuer: TokenIssuer, clock: FrozenClock
    ) -> None:
        token, _ = token_issuer.issue_access_token(make_account("acc-9"))
        clock.advance(days=3)
        assert token_issuer.identity_from_token(token) == "acc-9"

    def test_identity_from_token_still_checks_signature(
        self, config: LifecycleConfig, clock: FrozenClock, token_issuer: TokenIssuer
    ) -> None:
        other = TokenIssuer(signing_key="another-key-that-is-also-32-bytes-long", config=config, clock=clock)
        token, _ = other.issue_access_token(make_account())
        with pytest.raises(InvalidTokenError):
            token_issuer.identity_from_token(token)

    def test_issuer_claim_enforced_when_configured(
        self, config: LifecycleConfig, clock: FrozenClock
    ) -> None:
        ours = TokenIssuer(TEST_SIGNING_KEY, config, issuer="lifecycle", clock=clock)
        theirs = TokenIssuer(TEST_SIGNING_KEY, config, issuer="someone-else", clock=clock)
        token, _ = theirs.issue_access_token(make_account())
        with pytest.raises(InvalidTokenError):
            ours.validate_access_token(token)


class TestRefreshTokens:
    """Tests for opaque refresh tokens."""

    def test_refresh_token_is_opaque(self, token_issuer: TokenIssuer) -> None:
        token, _ = token_issuer.issue_refresh_token()
        assert token.count(".") == 0
        with pytest.raises(InvalidTokenError):
            token_issuer.validate_access_token(token)

    def test_refresh_token_has_at_least_256_bits(self, token_issuer: TokenIssuer) -> None:
        token, _ = token_issuer.issue_refresh_token()
        # url-safe base64: 6 bits per character
        assert len(token) * 6 >= 256

    def test_refresh_tokens_are_unique(self, token_issuer: TokenIssuer) -> None:
        tokens = {token_issuer.issue_refresh_token()[0] for _ in range(50)}
        assert len(tokens) == 50

    def test_refresh_expiry_uses_configured_ttl(
        self, token_issuer: TokenIssuer, clock: FrozenClock, config: LifecycleConfig
    ) -> None:
        _, expires_at = token_issuer.issue_refresh_token()
        assert expires_at == clock() + config.refresh_token_ttl


class TestVerificationTokens:
    """Tests for email verification tokens."""

    def test_redeem_returns_email(self, token_issuer: TokenIssuer) -> None:
        token = token_issuer.issue_verification_token("alice@x.com")
        assert token_issuer.redeem_verification_token(token) == "alice@x.com"

    def test_expires_after_configured_window(
        self, token_issuer: TokenIssuer, clock: FrozenClock
    ) -> None:
        token = token_issuer.issue_verification_token("alice@x.com")
        clock.advance(hours=24, seconds=1)
        with pytest.raises(InvalidTokenError, match="verification"):
            token_issuer.redeem_verification_token(token)

    def test_reset_token_cannot_verify_email(self, token_issuer: TokenIssuer) -> None:
        token = token_issuer.issue_reset_token("alice@x.com", "f" * 32)
        with pytest.raises(InvalidTokenError):
            token_issuer.redeem_verification_token(token)


class TestResetTokens:
    """Tests for password reset tokens."""

    def test_redeem_returns_email_and_fingerprint(self, token_issuer: TokenIssuer) -> None:
        fingerprint = password_fingerprint(b"hash", b"salt")
        token = token_issuer.issue_reset_token("alice@x.com", fingerprint)
        assert token_issuer.redeem_reset_token(token) == ("alice@x.com", fingerprint)

    def test_expires_after_one_hour(self, token_issuer: TokenIssuer, clock: FrozenClock) -> None:
        token = token_issuer.issue_reset_token("alice@x.com", "f" * 32)
        clock.advance(hours=1, seconds=1)
        with pytest.raises(InvalidTokenError, match="reset"):
            token_issuer.redeem_reset_token(token)

    def test_verification_token_cannot_reset(self, token_issuer: TokenIssuer) -> None:
        token = token_issuer.issue_verification_token("alice@x.com")
        with pytest.raises(InvalidTokenError):
            token_issuer.redeem_reset_token(token)


class TestPasswordFingerprint:
    def test_changes_with_hash(self) -> None:
        assert password_fingerprint(b"h1", b"s") != password_fingerprint(b"h2", b"s")

    def test_changes_with_salt(self) -> None:
        assert password_fingerprint(b"h", b"s1") != password_fingerprint(b"h", b"s2")

    def test_is_stable(self) -> None:
        assert password_fingerprint(b"h", b"s") == password_fingerprint(b"h", b"s")


def test_ttl_config_is_respected_for_short_lived_tokens(clock: FrozenClock) -> None:
    config = LifecycleConfig(access_token_ttl=timedelta(seconds=5))
    issuer = TokenIssuer(TEST_SIGNING_KEY, config, clock=clock)
    token, _ = issuer.issue_access_token(make_account())
    clock.advance(seconds=4)
    assert issuer.validate_access_token(token).account_id == "acc-1"
    clock.advance(seconds=2)
    with pytest.raises(InvalidTokenError):
        issuer.validate_access_token(token)
