"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, functional and conformance tests:
- A full system (asset ledger, WETH/WBTC collateral, credit token, feeds, engine)
- Funded participants with approvals in place
- Human-unit constants re-exported from tests.fakes
"""

import pytest

from tests.fakes import System, build_system, fund, ETHER, BTC


# =============================================================================
# SYSTEM FIXTURES
# =============================================================================

@pytest.fixture
def system() -> System:
    """Engine over WETH ($2000) and WBTC ($1000), credit token owned by the engine."""
    return build_system()


@pytest.fixture
def engine(system):
    return system.engine


@pytest.fixture
def chain(system):
    return system.chain


@pytest.fixture
def weth(system):
    return system.weth


@pytest.fixture
def wbtc(system):
    return system.wbtc


@pytest.fixture
def credit(system):
    return system.credit


@pytest.fixture
def eth_feed(system):
    return system.eth_feed


@pytest.fixture
def btc_feed(system):
    return system.btc_feed


# =============================================================================
# PARTICIPANTS
# =============================================================================

@pytest.fixture
def alice(system):
    """alice holds 10 WETH and 1 WBTC, both approved for the engine."""
    fund(system.weth, system.engine, "alice", 10 * ETHER)
    fund(system.wbtc, system.engine, "alice", 1 * BTC)
    return "alice"


@pytest.fixture
def liquidator(system):
    """liquidator holds 20 WETH approved for the engine."""
    fund(system.weth, system.engine, "liquidator", 20 * ETHER)
    return "liquidator"
