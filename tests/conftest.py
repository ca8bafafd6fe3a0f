"""
conftest.py - Shared pytest fixtures for staking tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, token-ready, funded)
- Staking engines on a flat interest schedule
- Clock and state helpers live in tests/helpers.py
"""

import pytest

from stakeledger import Ledger, StakingEngine, token

from tests.helpers import FLAT_CONFIG, LAUNCH


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", LAUNCH, verbose=False)


@pytest.fixture
def token_ledger():
    """Ledger with the STK token and three wallets."""
    ledger = Ledger("test", LAUNCH, verbose=False)
    ledger.register_unit(token("STK", "Stake Token"))
    for wallet in ("alice", "bob", "carol"):
        ledger.register_wallet(wallet)
    return ledger


# =============================================================================
# STAKING FIXTURES
# =============================================================================

@pytest.fixture
def engine(token_ledger):
    """Staking engine on a flat schedule with no balances."""
    return StakingEngine(token_ledger, "STK", FLAT_CONFIG)


@pytest.fixture
def funded_engine(engine):
    """Flat-schedule engine where alice holds 10,000,000 STK."""
    engine.ledger.mint("alice", "STK", 10_000_000)
    return engine


@pytest.fixture
def two_holder_engine(engine):
    """Flat-schedule engine where alice and bob hold 5,000,000 STK each."""
    engine.ledger.mint("alice", "STK", 5_000_000)
    engine.ledger.mint("bob", "STK", 5_000_000)
    return engine
