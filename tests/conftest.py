"""
conftest.py - Shared pytest fixtures for stablecoin tests

Provides common fixtures used across unit, functional and conformance tests:
- A deployed system (token ledger, WETH/WBTC with feeds, DSC, engine)
- Accounts at typical stages: funded, deposited, minted
- A position made liquidatable by a price drop
"""

import pytest

from stablecoin import TokenLedger, to_wei

from tests.deployment import (
    deploy, Deployment,
    USER, LIQUIDATOR, AMOUNT_COLLATERAL, AMOUNT_TO_MINT,
)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    """Fresh token ledger with no units."""
    return TokenLedger("test")


@pytest.fixture
def system() -> Deployment:
    """WETH at $2000, WBTC at $1000, DSC owned by the engine."""
    return deploy()


@pytest.fixture
def engine(system):
    return system.engine


# =============================================================================
# ACCOUNT FIXTURES
# =============================================================================

@pytest.fixture
def funded(system):
    """USER holds 10 WETH and has approved the engine for it."""
    system.fund(USER, AMOUNT_COLLATERAL)
    return system


@pytest.fixture
def deposited(system):
    """USER has 10 WETH ($20,000) deposited and no debt."""
    system.deposit(USER, AMOUNT_COLLATERAL)
    return system


@pytest.fixture
def minted(system):
    """USER has 10 WETH deposited and 100 DSC minted."""
    system.deposit_and_mint(USER, AMOUNT_COLLATERAL, AMOUNT_TO_MINT)
    return system


@pytest.fixture
def liquidatable(system):
    """
    USER: 10 WETH, 8,000 DSC debt, WETH dropped to $1000 (health factor 0.625).
    LIQUIDATOR: 20 WETH deposited after the drop, 4,000 DSC minted and
    approved to the engine (health factor 2.5).
    """
    system.deposit_and_mint(USER, AMOUNT_COLLATERAL, to_wei(8000))
    system.eth_feed.update_answer(1000 * 10**8)
    system.deposit_and_mint(LIQUIDATOR, to_wei(20), to_wei(4000))
    system.approve_dsc(LIQUIDATOR, to_wei(4000))
    return system
