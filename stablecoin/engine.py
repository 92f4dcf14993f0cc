"""
engine.py - Stablecoin Engine

The Engine is the composition root and the only public way to change
collateral or debt. It owns the asset registry and the account tables, and
sequences every operation in the same guard order:

    (a) argument validation   amount > 0, asset registered
    (b) state mutation        CollateralLedger / MintBurnController tables
    (c) solvency re-check     any operation that can lower a health factor
    (d) external call         token transfers, debt-token mint/burn

No token moves until (c) has passed, so a rejected operation never depends
on undoing a transfer.

Key guarantees:
    - Single writer: every mutating entry point holds a reentrancy lock; a
      collaborator calling back into a guarded entry point gets ReentrantCall.
    - Atomic: engine state is snapshotted on entry and restored if anything
      raises. Token ledgers reachable from the registered tokens are
      restored as well; for other tokens, a failed transfer late in an
      operation is answered by handing back what had already moved.
    - Solvent: after any committed operation, every account with debt has a
      health factor of at least MIN_HEALTH_FACTOR, except accounts whose
      price moved against them (those are liquidatable).
"""

from __future__ import annotations
from contextlib import contextmanager
from functools import wraps
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from .core import (
    EngineConfig, PriceFeed, CollateralAsset, DebtTokenIssuer,
    AccountInformation, AccountSnapshot, LiquidationResult,
    EngineError, ConfigurationError, BreaksHealthFactor, ReentrantCall,
    require_more_than_zero, require_allowed_asset,
)
from .collateral import CollateralLedger
from .debt import MintBurnController
from .health import HealthFactorCalculator
from .ledger import TokenLedger
from .liquidation import LiquidationEngine
from .pricing import PriceOracle


logger = logging.getLogger(__name__)


def nonreentrant(method):
    """
    Guard a mutating entry point: one operation at a time, all-or-nothing.

    The first guarded call takes the lock and opens an atomic section; a
    nested guarded call raises ReentrantCall, which unwinds the outer call.
    """
    @wraps(method)
    def wrapper(self: "Engine", *args, **kwargs):
        if self._entered:
            raise ReentrantCall(f"{method.__name__} called while another operation is in progress")
        self._entered = True
        try:
            with self._atomic(method.__name__):
                return method(self, *args, **kwargs)
        finally:
            self._entered = False
    return wrapper


class Engine:
    """
    Overcollateralized stablecoin engine.

    Users deposit approved collateral, mint the debt token against it, and
    stay above the minimum health factor. Anyone may liquidate an account
    that falls below it.

    Args:
        collateral_tokens: Approved collateral assets; each token's symbol is its asset id
        price_feeds: One feed per token, positionally matched
        debt_token: The debt-token issuer; must be owned by ``address`` before minting
        config: Protocol parameters (defaults to the canonical constants)
        address: The engine's custody address

    Raises:
        ConfigurationError: If tokens and feeds differ in length, the debt
                            token is missing, or an asset id repeats

    Example:
        chain = TokenLedger()
        weth = create_collateral_token(chain, "WETH", "Wrapped Ether")
        dsc = create_debt_token(chain, owner="deployer")
        engine = Engine([weth], [StaticPriceFeed(8, 2000 * 10**8)], dsc)
        dsc.transfer_ownership("deployer", engine.address)

        weth.mint("alice", to_wei(10))
        weth.approve("alice", engine.address, to_wei(10))
        engine.deposit_collateral_and_mint("alice", "WETH", to_wei(10), to_wei(8000))
        engine.get_health_factor("alice")     # 1.25e18
    """

    def __init__(
        self,
        collateral_tokens: Sequence[CollateralAsset],
        price_feeds: Sequence[PriceFeed],
        debt_token: Optional[DebtTokenIssuer],
        config: Optional[EngineConfig] = None,
        address: str = "dsc-engine",
    ):
        if len(collateral_tokens) != len(price_feeds):
            raise ConfigurationError(
                f"Token and price feed lists must be the same length "
                f"({len(collateral_tokens)} != {len(price_feeds)})"
            )
        if debt_token is None:
            raise ConfigurationError("Debt token is required")
        if not address:
            raise ConfigurationError("Engine address cannot be empty")

        tokens: Dict[str, CollateralAsset] = {}
        feeds: Dict[str, PriceFeed] = {}
        for token, feed in zip(collateral_tokens, price_feeds):
            if token.symbol in tokens:
                raise ConfigurationError(f"Asset {token.symbol!r} registered twice")
            tokens[token.symbol] = token
            feeds[token.symbol] = feed

        self.address = address
        self.config = config or EngineConfig()
        self._debt_token = debt_token
        self._feeds = feeds
        self._entered = False

        self.oracle = PriceOracle(feeds)
        self.collateral = CollateralLedger(tokens, address)
        self.debt = MintBurnController(debt_token, address)
        self.health = HealthFactorCalculator(
            self.oracle,
            self.collateral.assets,
            self.collateral.collateral_of,
            self.debt.debt_of,
            self.config,
        )
        self.liquidation = LiquidationEngine(self.collateral, self.debt, self.health, self.config)

        logger.info(
            "engine %s ready: assets=%s threshold=%d%% bonus=%d%%",
            address, list(tokens), self.config.liquidation_threshold, self.config.liquidation_bonus,
        )

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    def _token_ledgers(self) -> List[TokenLedger]:
        """Distinct TokenLedgers backing the registered tokens."""
        seen: Dict[int, TokenLedger] = {}
        for token in [*(self.collateral.token(a) for a in self.collateral.assets), self._debt_token]:
            ledger = getattr(token, "ledger", None)
            if isinstance(ledger, TokenLedger):
                seen.setdefault(id(ledger), ledger)
        return list(seen.values())

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        ledgers = self._token_ledgers()
        ledger_snapshots = [(ledger, ledger.snapshot()) for ledger in ledgers]
        collateral_snapshot = self.collateral.snapshot()
        debt_snapshot = self.debt.snapshot()
        try:
            yield
        except Exception as e:
            self.collateral.restore(collateral_snapshot)
            self.debt.restore(debt_snapshot)
            for ledger, snapshot in ledger_snapshots:
                ledger.restore(snapshot)
            if isinstance(e, EngineError):
                logger.warning("%s rejected: %s: %s", operation, type(e).__name__, e)
            else:
                logger.error("%s failed: %s: %s", operation, type(e).__name__, e)
            raise

    # ========================================================================
    # GUARDS
    # ========================================================================

    def _revert_if_health_factor_is_broken(self, user: str) -> None:
        health_factor = self.health.health_factor(user)
        if health_factor < self.config.min_health_factor:
            raise BreaksHealthFactor(health_factor, user)

    # ========================================================================
    # PUBLIC OPERATIONS (Mutating)
    # ========================================================================

    @nonreentrant
    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Deposit ``amount`` of ``asset`` from ``user`` into custody.

        ``user`` must have approved the engine for at least ``amount``.

        Raises:
            InvalidAmount, UnknownAsset, TransferFailed
        """
        self._deposit_collateral(user, asset, amount)
        logger.info("%s deposited %d %s", user, amount, asset)

    @nonreentrant
    def redeem_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Withdraw ``amount`` of ``asset`` back to ``user``.

        Raises:
            InvalidAmount, UnknownAsset, InsufficientCollateral,
            TransferFailed, BreaksHealthFactor
        """
        self._redeem_collateral(user, asset, amount)
        logger.info("%s redeemed %d %s", user, amount, asset)

    @nonreentrant
    def mint(self, user: str, amount: int) -> None:
        """
        Mint ``amount`` of debt token to ``user`` against their collateral.

        Raises:
            InvalidAmount, BreaksHealthFactor, MintFailed
        """
        self._mint(user, amount)
        logger.info("%s minted %d", user, amount)

    @nonreentrant
    def burn(self, user: str, amount: int) -> None:
        """
        Repay ``amount`` of ``user``'s debt with debt tokens ``user`` holds.

        ``user`` must have approved the engine to pull the tokens. Repaying
        only raises a health factor, so an account below the minimum may
        repay part of its debt without reaching it.

        Raises:
            InvalidAmount, DebtUnderflow, TransferFailed
        """
        self._burn(amount, user, user)
        logger.info("%s burned %d", user, amount)

    @nonreentrant
    def deposit_collateral_and_mint(
        self, user: str, asset: str, collateral_amount: int, amount_to_mint: int
    ) -> None:
        """
        Deposit collateral, then mint, as one atomic operation.

        Both table changes are checked before the collateral is pulled; if
        the issuer then refuses to mint, the collateral is sent back.
        """
        require_more_than_zero(collateral_amount)
        require_more_than_zero(amount_to_mint)
        require_allowed_asset(self._feeds, asset)

        self.collateral.credit(user, asset, collateral_amount)
        self.debt.increase_debt(user, amount_to_mint)
        self._revert_if_health_factor_is_broken(user)

        self.collateral.collect(user, asset, collateral_amount)
        try:
            self.debt.issue(user, amount_to_mint)
        except Exception:
            self.collateral.release(user, asset, collateral_amount)
            raise
        logger.info(
            "%s deposited %d %s and minted %d", user, collateral_amount, asset, amount_to_mint
        )

    @nonreentrant
    def redeem_collateral_for_debt(
        self, user: str, asset: str, collateral_amount: int, amount_to_burn: int
    ) -> None:
        """
        Burn debt, then redeem collateral, as one atomic operation.

        The health factor is checked on the reduced tables before any token
        moves; the debt tokens are pulled, the collateral released, and the
        pulled tokens burned last.
        """
        require_more_than_zero(amount_to_burn)
        require_more_than_zero(collateral_amount)
        require_allowed_asset(self._feeds, asset)

        self.debt.reduce_debt(user, amount_to_burn)
        self.collateral.debit(user, user, asset, collateral_amount)
        self._revert_if_health_factor_is_broken(user)

        self.debt.settle(
            user,
            amount_to_burn,
            release=lambda: self.collateral.release(user, asset, collateral_amount),
        )
        logger.info(
            "%s burned %d and redeemed %d %s", user, amount_to_burn, collateral_amount, asset
        )

    @nonreentrant
    def liquidate(self, liquidator: str, asset: str, user: str, debt_to_cover: int) -> LiquidationResult:
        """
        Repay ``debt_to_cover`` of ``user``'s debt and take ``asset`` collateral plus the bonus.

        The liquidator must hold and have approved ``debt_to_cover`` debt
        tokens, and must remain solvent afterwards.

        Raises:
            InvalidAmount, UnknownAsset, HealthFactorOk, InsufficientCollateral,
            DebtUnderflow, TransferFailed, HealthFactorNotImproved, BreaksHealthFactor
        """
        return self.liquidation.liquidate(
            liquidator, asset, user, debt_to_cover,
            solvency_check=self._revert_if_health_factor_is_broken,
        )

    # ------------------------------------------------------------------
    # Unguarded steps shared by the public operations
    # ------------------------------------------------------------------

    def _deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        require_more_than_zero(amount)
        require_allowed_asset(self._feeds, asset)
        self.collateral.deposit(user, asset, amount)

    def _redeem_collateral(self, user: str, asset: str, amount: int) -> None:
        require_more_than_zero(amount)
        require_allowed_asset(self._feeds, asset)
        self.collateral.redeem(
            user, user, asset, amount, solvency_check=self._revert_if_health_factor_is_broken
        )

    def _mint(self, user: str, amount: int) -> None:
        require_more_than_zero(amount)
        self.debt.mint(user, amount, solvency_check=self._revert_if_health_factor_is_broken)

    def _burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        require_more_than_zero(amount)
        self.debt.burn(amount, on_behalf_of, payer)

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    @property
    def events(self) -> Tuple[object, ...]:
        """Emitted CollateralDeposited / CollateralRedeemed events, oldest first."""
        return tuple(self.collateral.events)

    def get_account_information(self, user: str) -> AccountInformation:
        total_debt, collateral_value = self.health.account_information(user)
        return AccountInformation(total_debt, collateral_value)

    def get_account_collateral_value(self, user: str) -> int:
        return self.health.collateral_value_usd(user)

    def get_account_snapshot(self, user: str) -> AccountSnapshot:
        total_debt, collateral_value = self.health.account_information(user)
        return AccountSnapshot(
            user=user,
            collateral=self.collateral.collateral_of(user),
            debt_minted=total_debt,
            collateral_value_usd=collateral_value,
            health_factor=self.health.health_factor_for(total_debt, collateral_value),
        )

    def get_usd_value(self, asset: str, amount: int) -> int:
        require_allowed_asset(self._feeds, asset)
        return self.health.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        require_allowed_asset(self._feeds, asset)
        return self.health.token_amount_from_usd(asset, usd_amount)

    def get_health_factor(self, user: str) -> int:
        return self.health.health_factor(user)

    def calculate_health_factor(self, total_debt: int, collateral_value_usd: int) -> int:
        """Health factor for hypothetical totals; same formula as get_health_factor()."""
        return self.health.health_factor_for(total_debt, collateral_value_usd)

    def get_collateral_balance_of_user(self, user: str, asset: str) -> int:
        return self.collateral.balance_of(user, asset)

    def get_debt_of_user(self, user: str) -> int:
        return self.debt.debt_of(user)

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        return self.collateral.assets

    def get_collateral_token_price_feed(self, asset: str) -> PriceFeed:
        require_allowed_asset(self._feeds, asset)
        return self._feeds[asset]

    def get_debt_token(self) -> DebtTokenIssuer:
        return self._debt_token

    def get_precision(self) -> int:
        return self.config.precision

    def get_additional_feed_precision(self, asset: str) -> int:
        return self.oracle.additional_feed_precision(asset)

    def get_liquidation_threshold(self) -> int:
        return self.config.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.config.liquidation_bonus

    def get_liquidation_precision(self) -> int:
        return self.config.liquidation_precision

    def get_min_health_factor(self) -> int:
        return self.config.min_health_factor

    def __repr__(self) -> str:
        return f"Engine({self.address!r}, assets={list(self.collateral.assets)})"


__all__ = [
    'Engine', 'nonreentrant',
]
