"""
Shared fixtures for adversarial tests.

Attack simulations run against the in-memory ledger, wrapped so that
concurrent writers genuinely interleave between read and write.
"""

import pytest

from tests.helpers import YieldingLedger


@pytest.fixture
def ledger() -> YieldingLedger:
    """Every adversarial test runs on a ledger that lets writers interleave."""
    return YieldingLedger()
