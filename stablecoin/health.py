"""
health.py - Health Factor Calculation

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Integer inputs only, no oracle, no ledger
   - Trivially testable and stress-testable

2. HealthFactorCalculator:
   - Reads collateral balances, debt and oracle prices once
   - Hands them to the pure functions
   - Holds no mutable state of its own

Key Formulas (all integer, 18-decimal fixed point, truncating):
    usd_value        = price * amount // PRECISION
    token_amount     = usd_amount * PRECISION // price
    adjusted         = collateral_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    health_factor    = adjusted * PRECISION // total_debt        (MAX_HEALTH_FACTOR if no debt)
    bonus            = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, Mapping, Tuple

from .core import (
    EngineConfig,
    PRECISION, LIQUIDATION_THRESHOLD, LIQUIDATION_PRECISION, LIQUIDATION_BONUS,
    MAX_HEALTH_FACTOR,
)
from .pricing import PriceOracle


logger = logging.getLogger(__name__)


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_health_factor(
    total_debt: int,
    collateral_value_usd: int,
    liquidation_threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
    precision: int = PRECISION,
) -> int:
    """
    Scaled ratio of risk-adjusted collateral value to debt.

    An account without debt cannot be undercollateralized, so zero debt
    returns MAX_HEALTH_FACTOR instead of dividing by zero.

    Example:
        # $20,000 collateral, $8,000 debt, 50% threshold -> 1.25
        calculate_health_factor(8000 * 10**18, 20000 * 10**18)   # 1_250_000_000_000_000_000
    """
    if total_debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = collateral_value_usd * liquidation_threshold // liquidation_precision
    return adjusted * precision // total_debt


def calculate_usd_value(price: int, amount: int, precision: int = PRECISION) -> int:
    """USD value of ``amount`` tokens at ``price`` (both 18-decimal)."""
    return price * amount // precision


def calculate_token_amount_from_usd(price: int, usd_amount: int, precision: int = PRECISION) -> int:
    """Quantity of a token worth ``usd_amount`` at ``price`` (both 18-decimal)."""
    return usd_amount * precision // price


def calculate_collateral_value(
    collateral: Mapping[str, int],
    prices: Mapping[str, int],
    precision: int = PRECISION,
) -> int:
    """
    Total USD value of a collateral map.

    Assets are summed in the mapping's iteration order; each term is
    truncated individually, which keeps the result deterministic.

    Raises:
        KeyError: If an asset with a non-zero balance has no price
    """
    total = 0
    for asset, amount in collateral.items():
        if amount == 0:
            continue
        total += calculate_usd_value(prices[asset], amount, precision)
    return total


def calculate_seizure(
    debt_to_cover: int,
    price: int,
    liquidation_bonus: int = LIQUIDATION_BONUS,
    liquidation_precision: int = LIQUIDATION_PRECISION,
    precision: int = PRECISION,
) -> Tuple[int, int]:
    """
    Collateral owed to a liquidator for repaying ``debt_to_cover``.

    Returns:
        Tuple of (token_amount, bonus_amount); the liquidator receives their sum.

    Example:
        # $4,000 of debt against collateral priced at $1,000 -> 4 + 0.4 tokens
        calculate_seizure(4000 * 10**18, 1000 * 10**18)
    """
    token_amount = calculate_token_amount_from_usd(price, debt_to_cover, precision)
    bonus_amount = token_amount * liquidation_bonus // liquidation_precision
    return token_amount, bonus_amount


# ============================================================================
# CALCULATOR
# ============================================================================

class HealthFactorCalculator:
    """
    Values accounts against the oracle.

    Args:
        oracle: Price source for every registered asset
        assets: Registered assets, in the order collateral value is summed
        collateral_of: account -> {asset: amount}
        debt_of: account -> debt minted
        config: Protocol parameters
    """

    def __init__(
        self,
        oracle: PriceOracle,
        assets: Tuple[str, ...],
        collateral_of: Callable[[str], Dict[str, int]],
        debt_of: Callable[[str], int],
        config: EngineConfig,
    ):
        self.oracle = oracle
        self.assets = assets
        self._collateral_of = collateral_of
        self._debt_of = debt_of
        self.config = config

    def usd_value(self, asset: str, amount: int) -> int:
        return calculate_usd_value(
            self.oracle.answer_in_precision(asset), amount, self.config.precision
        )

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        return calculate_token_amount_from_usd(
            self.oracle.answer_in_precision(asset), usd_amount, self.config.precision
        )

    def collateral_value_usd(self, account: str) -> int:
        """Sum of price x balance over every registered asset, in registry order."""
        collateral = self._collateral_of(account)
        total = 0
        for asset in self.assets:
            amount = collateral.get(asset, 0)
            if amount:
                total += self.usd_value(asset, amount)
        return total

    def account_information(self, account: str) -> Tuple[int, int]:
        """Return (total_debt, collateral_value_usd)."""
        return self._debt_of(account), self.collateral_value_usd(account)

    def health_factor(self, account: str) -> int:
        total_debt, collateral_value = self.account_information(account)
        health_factor = self.health_factor_for(total_debt, collateral_value)
        logger.debug(
            "health factor of %s: debt=%d collateral_usd=%d -> %d",
            account, total_debt, collateral_value, health_factor,
        )
        return health_factor

    def health_factor_for(self, total_debt: int, collateral_value_usd: int) -> int:
        return calculate_health_factor(
            total_debt,
            collateral_value_usd,
            self.config.liquidation_threshold,
            self.config.liquidation_precision,
            self.config.precision,
        )

    def is_liquidatable(self, account: str) -> bool:
        return self.health_factor(account) < self.config.min_health_factor
