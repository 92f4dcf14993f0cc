"""
test_scenarios.py - End-to-end borrowing and liquidation scenarios

The canonical walk-through, step by step on one deployment:
1. Deposit 10 WETH at $2000 -> collateral value $20,000
2. Mint $8,000 -> health factor 1.25
3. Mint $3,000 more -> health factor would be ~0.909, rejected, debt stays $8,000
4. WETH drops to $1000 -> health factor 0.625, liquidatable
5. Liquidator covers $4,000 -> 4.4 WETH seized, health factor 0.7

Followed by full position lifecycles (open, repay, close) across assets.
"""

import pytest

from stablecoin import (
    BreaksHealthFactor, MAX_HEALTH_FACTOR, to_wei,
)

from tests.deployment import deploy, USER, LIQUIDATOR, ENGINE, AMOUNT_COLLATERAL


class TestCanonicalWalkThrough:
    """The five steps run in sequence on one deployment."""

    @pytest.fixture(scope="class")
    def walk(self):
        return deploy()

    def test_1_deposit(self, walk):
        walk.deposit(USER, AMOUNT_COLLATERAL)
        assert walk.engine.get_account_collateral_value(USER) == to_wei(20000)
        assert walk.weth.balance_of(ENGINE) == AMOUNT_COLLATERAL

    def test_2_mint(self, walk):
        walk.engine.mint(USER, to_wei(8000))
        assert walk.engine.get_health_factor(USER) == 1_250_000_000_000_000_000
        assert walk.dsc.balance_of(USER) == to_wei(8000)

    def test_3_mint_past_limit_rejected(self, walk):
        with pytest.raises(BreaksHealthFactor) as exc_info:
            walk.engine.mint(USER, to_wei(3000))
        assert exc_info.value.health_factor == 909_090_909_090_909_090
        assert walk.engine.get_account_information(USER).total_debt_minted == to_wei(8000)
        assert walk.dsc.balance_of(USER) == to_wei(8000)

    def test_4_price_drop(self, walk):
        walk.eth_feed.update_answer(1000 * 10**8)
        assert walk.engine.get_account_collateral_value(USER) == to_wei(10000)
        assert walk.engine.get_health_factor(USER) == 625_000_000_000_000_000
        assert walk.engine.health.is_liquidatable(USER)

    def test_5_liquidation(self, walk):
        walk.deposit_and_mint(LIQUIDATOR, to_wei(20), to_wei(4000))
        walk.approve_dsc(LIQUIDATOR, to_wei(4000))

        result = walk.engine.liquidate(LIQUIDATOR, "WETH", USER, to_wei(4000))

        assert result.collateral_seized == to_wei("4.4")
        assert walk.weth.balance_of(LIQUIDATOR) == to_wei("4.4")
        assert walk.engine.get_account_information(USER).total_debt_minted == to_wei(4000)
        assert walk.engine.get_collateral_balance_of_user(USER, "WETH") == to_wei("5.6")
        assert walk.engine.get_account_collateral_value(USER) == to_wei(5600)
        assert walk.engine.get_health_factor(USER) == 700_000_000_000_000_000


class TestPositionLifecycle:

    def test_open_and_close_position(self, funded):
        engine = funded.engine
        engine.deposit_collateral_and_mint(USER, "WETH", AMOUNT_COLLATERAL, to_wei(5000))
        funded.approve_dsc(USER, to_wei(5000))

        engine.redeem_collateral_for_debt(USER, "WETH", AMOUNT_COLLATERAL, to_wei(5000))

        assert engine.get_account_information(USER).total_debt_minted == 0
        assert engine.get_collateral_balance_of_user(USER, "WETH") == 0
        assert engine.get_health_factor(USER) == MAX_HEALTH_FACTOR
        assert funded.weth.balance_of(USER) == AMOUNT_COLLATERAL
        assert funded.dsc.total_supply() == 0
        assert funded.weth.balance_of(ENGINE) == 0

    def test_partial_repay_then_withdraw(self, minted):
        engine = minted.engine
        minted.approve_dsc(USER, to_wei(50))
        engine.burn(USER, to_wei(50))
        engine.redeem_collateral(USER, "WETH", to_wei(9))

        # 1 WETH ($2000) backs 50 DSC: health factor 20
        assert engine.get_health_factor(USER) == 20 * 10**18
        assert minted.weth.balance_of(USER) == to_wei(9)

    def test_two_assets_back_one_debt(self, system):
        system.deposit(USER, to_wei(1), "WETH")
        system.deposit(USER, to_wei(2), "WBTC")
        # $4000 collateral -> up to $2000 debt
        system.engine.mint(USER, to_wei(2000))
        assert system.engine.get_health_factor(USER) == 10**18

        # Withdrawing any WBTC now breaks the position
        with pytest.raises(BreaksHealthFactor):
            system.engine.redeem_collateral(USER, "WBTC", 1)

    def test_repeated_liquidation_keeps_improving(self, liquidatable):
        engine = liquidatable.engine
        # Two rounds: $4,000 then $2,000 at $1000 seize 4.4 + 2.2 WETH
        engine.liquidate(LIQUIDATOR, "WETH", USER, to_wei(4000))
        liquidatable.deposit_and_mint(LIQUIDATOR, to_wei(10), to_wei(2000))
        liquidatable.approve_dsc(LIQUIDATOR, to_wei(2000))
        # Health factor 0.7 after the first liquidation, still liquidatable
        engine.liquidate(LIQUIDATOR, "WETH", USER, to_wei(2000))

        assert engine.get_collateral_balance_of_user(USER, "WETH") == to_wei("3.4")
        assert engine.get_health_factor(USER) == 850_000_000_000_000_000
        assert liquidatable.weth.balance_of(LIQUIDATOR) == to_wei("6.6")

    def test_many_users_are_isolated(self, system):
        for i in range(5):
            system.deposit_and_mint(f"user{i}", to_wei(i + 1), to_wei(100 * (i + 1)))
        for i in range(5):
            info = system.engine.get_account_information(f"user{i}")
            assert info.total_debt_minted == to_wei(100 * (i + 1))
            assert info.collateral_value_usd == to_wei(2000 * (i + 1))
        assert system.engine.debt.total_debt() == system.dsc.total_supply()
