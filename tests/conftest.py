"""
conftest.py - Shared pytest fixtures for sale pool tests

Provides common fixtures used across unit and functional tests:
- Ledgers (empty, funded sale ledger)
- Pools (unscheduled, phase 0 open, rewards switched on)
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from blochpool import Ledger, LedgerAdapter, stablecoin

from tests.sale_setup import (
    build_sale_ledger, build_pool, open_phase,
    T0, OWNER,
)


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", T0, verbose=False, test_mode=True)


@pytest.fixture
def usdt_ledger():
    """Ledger with USDT and two wallets, alice holding 1,000 USDT."""
    ledger = Ledger("test", T0, verbose=False, test_mode=True)
    ledger.register_unit(stablecoin("USDT", "Tether USD"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    ledger.set_balance("alice", "USDT", Decimal("1000"))
    return ledger


@pytest.fixture
def ledger():
    """Sale ledger: 240M BLOCH in the pool wallet, 10,000 USDT each for alice and bob."""
    return build_sale_ledger()


@pytest.fixture
def adapter(ledger):
    return LedgerAdapter(ledger)


# =============================================================================
# POOL FIXTURES
# =============================================================================

@pytest.fixture
def pool(ledger):
    """Pool with default configuration and no phase scheduled."""
    return build_pool(ledger)


@pytest.fixture
def active_pool(ledger, pool):
    """Pool with phase 0 open for 30 days."""
    open_phase(pool, ledger, 0)
    return pool


@pytest.fixture
def limited_pool(ledger, active_pool):
    """Open pool with purchases limited to 100..10,000 BLOCH."""
    active_pool.set_purchase_limits(OWNER, Decimal("100"), Decimal("10000"))
    return active_pool


@pytest.fixture
def rewarding_pool(ledger, active_pool):
    """Open pool paying 5% of purchase spend, claimable daily."""
    active_pool.set_reward_parameters(OWNER, True, 500, timedelta(days=1))
    return active_pool
