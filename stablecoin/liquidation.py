"""
liquidation.py - Liquidation Engine

A liquidator repays part of an unhealthy account's debt and receives the
equivalent collateral plus a bonus. One call runs four ordered steps:

1. Eligibility: the target's health factor must be below the minimum
   (HealthFactorOk otherwise).
2. Sizing:      debt_to_cover -> collateral tokens at the oracle price,
                plus LIQUIDATION_BONUS percent. A repayment too small to
                buy a single token unit is rejected (InvalidAmount).
3. Transfer:    debit the seized collateral from the target's balance and
                reduce the target's debt by debt_to_cover. Only the tables
                change here.
4. Improvement: the target's health factor, read from the updated tables,
                must have strictly increased (HealthFactorNotImproved
                otherwise), and the caller's check on the liquidator must pass.

Tokens move only after step 4: the debt tokens are pulled from the
liquidator, the collateral is released to the liquidator, and the pulled
debt tokens are burned. A failure at any point restores both tables; a
failed collateral release also hands the pulled debt tokens back.
"""

from __future__ import annotations
import logging
from typing import Optional, Tuple

from .core import (
    EngineConfig, LiquidationResult, SolvencyCheck,
    HealthFactorOk, HealthFactorNotImproved, InvalidAmount,
    require_more_than_zero,
)
from .collateral import CollateralLedger
from .debt import MintBurnController
from .health import HealthFactorCalculator, calculate_seizure


logger = logging.getLogger(__name__)


class LiquidationEngine:
    """Composes the collateral ledger, the mint/burn controller and the calculator."""

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: MintBurnController,
        health: HealthFactorCalculator,
        config: EngineConfig,
    ):
        self.collateral = collateral
        self.debt = debt
        self.health = health
        self.config = config

    def size_seizure(self, asset: str, debt_to_cover: int) -> Tuple[int, int]:
        """Return (token_amount, bonus_amount) owed for repaying ``debt_to_cover``."""
        return calculate_seizure(
            debt_to_cover,
            self.health.oracle.answer_in_precision(asset),
            self.config.liquidation_bonus,
            self.config.liquidation_precision,
            self.config.precision,
        )

    def liquidate(
        self,
        liquidator: str,
        asset: str,
        user: str,
        debt_to_cover: int,
        solvency_check: Optional[SolvencyCheck] = None,
    ) -> LiquidationResult:
        """
        Repay ``debt_to_cover`` of ``user``'s debt and seize ``asset`` collateral.

        Args:
            solvency_check: Called with ``liquidator`` once the target's
                            improvement is confirmed and before any tokens
                            move; raising aborts the liquidation

        Raises:
            InvalidAmount: If debt_to_cover is not a positive int or seizes nothing
            UnknownAsset: If asset is not registered
            HealthFactorOk: If user is not liquidatable
            InsufficientCollateral: If user holds less of asset than the seizure
            DebtUnderflow: If debt_to_cover exceeds user's debt
            HealthFactorNotImproved: If user's health factor did not strictly increase
            TransferFailed: If a token transfer fails
            Whatever ``solvency_check`` raises
        """
        require_more_than_zero(debt_to_cover)
        self.collateral.token(asset)

        starting = self.health.health_factor(user)
        if starting >= self.config.min_health_factor:
            raise HealthFactorOk(starting)

        token_amount, bonus_amount = self.size_seizure(asset, debt_to_cover)
        total_seized = token_amount + bonus_amount
        if total_seized == 0:
            raise InvalidAmount(
                f"Covering {debt_to_cover} of debt seizes no {asset} at the current price"
            )

        collateral_snapshot = self.collateral.snapshot()
        debt_snapshot = self.debt.snapshot()
        try:
            self.collateral.debit(user, liquidator, asset, total_seized)
            self.debt.reduce_debt(user, debt_to_cover)

            ending = self.health.health_factor(user)
            if ending <= starting:
                raise HealthFactorNotImproved(starting, ending)
            if solvency_check is not None:
                solvency_check(liquidator)

            self.debt.settle(
                liquidator,
                debt_to_cover,
                release=lambda: self.collateral.release(liquidator, asset, total_seized),
            )
        except Exception:
            self.collateral.restore(collateral_snapshot)
            self.debt.restore(debt_snapshot)
            raise

        logger.info(
            "liquidated %s by %s: covered %d, seized %d %s (bonus %d), health factor %d -> %d",
            user, liquidator, debt_to_cover, total_seized, asset, bonus_amount, starting, ending,
        )
        return LiquidationResult(
            liquidator=liquidator,
            user=user,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=total_seized,
            bonus_collateral=bonus_amount,
            starting_health_factor=starting,
            ending_health_factor=ending,
        )
