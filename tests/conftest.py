"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock shared by the token issuer and lifecycle
- An AccountLifecycle wired to the in-memory ledger
- A notification gateway that records issued tokens
- Helpers for reaching the verified and 2FA-enabled states
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import pytest

from src.adapters.repository.memory import InMemoryAccountLedger
from src.domain.lifecycle import AccountLifecycle
from src.domain.models import LifecycleConfig
from src.domain.passwords import PasswordHasher
from src.domain.tokens import TokenIssuer
from src.domain.totp import TotpEngine
from tests.helpers import (
    ALICE_EMAIL,
    ALICE_PASSWORD,
    TEST_SIGNING_KEY,
    FrozenClock,
    RecordingNotificationGateway,
)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def config() -> LifecycleConfig:
    # bcrypt cost 4 is the minimum and keeps the suite fast
    return LifecycleConfig(password_hash_cost=4, totp_issuer_label="TestApp")


@pytest.fixture
def hasher(config: LifecycleConfig) -> PasswordHasher:
    return PasswordHasher(cost=config.password_hash_cost)


@pytest.fixture
def token_issuer(config: LifecycleConfig, clock: FrozenClock) -> TokenIssuer:
    return TokenIssuer(signing_key=TEST_SIGNING_KEY, config=config, clock=clock)


@pytest.fixture
def totp(config: LifecycleConfig) -> TotpEngine:
    return TotpEngine(tolerance_steps=config.totp_step_tolerance_steps)


@pytest.fixture
def ledger() -> InMemoryAccountLedger:
    return InMemoryAccountLedger()


@pytest.fixture
def gateway() -> RecordingNotificationGateway:
    return RecordingNotificationGateway()


@pytest.fixture
def lifecycle(
    ledger: InMemoryAccountLedger,
    gateway: RecordingNotificationGateway,
    hasher: PasswordHasher,
    token_issuer: TokenIssuer,
    totp: TotpEngine,
    config: LifecycleConfig,
    clock: FrozenClock,
) -> AccountLifecycle:
    return AccountLifecycle(
        ledger=ledger,
        notifications=gateway,
        hasher=hasher,
        tokens=token_issuer,
        totp=totp,
        config=config,
        clock=clock,
    )


@pytest.fixture
def register_verified(
    lifecycle: AccountLifecycle, gateway: RecordingNotificationGateway
) -> Callable[..., Awaitable[str]]:
    """Return a coroutine function that registers and verifies an account."""

    async def _register_verified(email: str = ALICE_EMAIL, password: str = ALICE_PASSWORD) -> str:
        result = await lifecycle.register("Alice", "Liddell", email, password, password)
        assert result.ok, result
        _, token = gateway.verification_links[-1]
        verified = await lifecycle.verify_email(email, token)
        assert verified.ok, verified
        return result.value.account_id

    return _register_verified


@pytest.fixture
def enable_two_factor(
    lifecycle: AccountLifecycle, totp: TotpEngine, clock: FrozenClock
) -> Callable[[str], Awaitable[str]]:
    """Return a coroutine function that enrols an account in 2FA and returns the secret."""

    async def _enable_two_factor(account_id: str) -> str:
        setup = await lifecycle.setup_two_factor(account_id)
        assert setup.ok, setup
        code = totp.code_at(setup.value.secret, clock())
        confirmed = await lifecycle.confirm_two_factor(account_id, code)
        assert confirmed.ok, confirmed
        return setup.value.secret

    return _enable_two_factor
