"""
Core types and pure helpers for the stablecoin engine.

This module provides the foundational pieces shared by every component:
1. Constants: fixed-point precision, protocol parameters, unit types
2. Protocols: PriceFeed, CollateralAsset, DebtTokenIssuer (external collaborators)
3. Immutable data structures: Move, Transaction, RoundData, events, results
4. Exceptions: EngineError and its failure kinds, TokenError for the token layer
5. Guards: small validation functions invoked before any mutation
6. Amount helpers: conversion between human Decimal values and fixed-point ints

Every amount handled by the engine is an ``int`` in 18-decimal fixed point.
Divisions truncate toward zero (floor division on non-negative operands);
that is the system's single rounding policy.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, localcontext
from enum import Enum
from typing import (
    Callable, Dict, Tuple, Optional, Any, Protocol, Mapping, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale of every amount (collateral, debt, USD values, health factors).
PRECISION_DECIMALS = 18
PRECISION = 10 ** PRECISION_DECIMALS

# Percentage of collateral value that counts toward solvency.
# 50 means an account needs 200% collateral backing.
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Extra collateral (percent) awarded to a liquidator on top of the debt repaid.
LIQUIDATION_BONUS = 10

# Scaled equivalent of 1.0; below this an account is liquidatable.
MIN_HEALTH_FACTOR = PRECISION

# Health factor reported for accounts without debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Native precision of the bundled aggregator-style price feed.
FEED_DECIMALS = 8

# Reserved wallet for issuance and destruction of tokens.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

UNIT_TYPE_COLLATERAL = "COLLATERAL"
UNIT_TYPE_DEBT = "DEBT"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Asset identifier -> fixed-point quantity.
CollateralMap = Dict[str, int]

# Wallet -> quantity for a single token unit.
Positions = Dict[str, int]

# Raises if the given account would be left below the minimum health factor.
SolvencyCheck = Callable[[str], None]


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Immutable protocol parameters supplied once at engine construction.

    The defaults are the canonical protocol constants. Values are validated
    in __post_init__ so a bad configuration never reaches the engine.
    """
    precision: int = PRECISION
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_precision: int = LIQUIDATION_PRECISION
    liquidation_bonus: int = LIQUIDATION_BONUS
    min_health_factor: int = MIN_HEALTH_FACTOR

    def __post_init__(self):
        if self.precision <= 0:
            raise ConfigurationError(f"precision must be positive, got {self.precision}")
        if self.liquidation_precision <= 0:
            raise ConfigurationError(
                f"liquidation_precision must be positive, got {self.liquidation_precision}"
            )
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ConfigurationError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if not 0 <= self.liquidation_bonus < self.liquidation_precision:
            raise ConfigurationError(
                f"liquidation_bonus must be in [0, {self.liquidation_precision}), "
                f"got {self.liquidation_bonus}"
            )
        if self.min_health_factor <= 0:
            raise ConfigurationError(
                f"min_health_factor must be positive, got {self.min_health_factor}"
            )


# ============================================================================
# PROTOCOLS
# ============================================================================

@dataclass(frozen=True, slots=True)
class RoundData:
    """
    One answer reported by a price feed.

    Attributes:
        round_id: Monotonic round identifier (starts at 1).
        answer: Price in the feed's native precision (see PriceFeed.decimals).
        updated_at: When the answer was reported. Carried as metadata only;
                    the engine does not validate staleness.
    """
    round_id: int
    answer: int
    updated_at: Optional[datetime] = None


@runtime_checkable
class PriceFeed(Protocol):
    """Source of the latest USD price for a single asset."""

    decimals: int

    def latest_round_data(self) -> RoundData:
        """Return the most recent round."""
        ...


@runtime_checkable
class CollateralAsset(Protocol):
    """
    Transfer interface of an approved collateral asset.

    Transfers signal success explicitly; a False return is fatal to the
    enclosing engine operation.
    """

    symbol: str

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``to``."""
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` to ``to`` on behalf of ``spender``."""
        ...


@runtime_checkable
class DebtTokenIssuer(CollateralAsset, Protocol):
    """
    The synthetic debt token. Minting and burning are restricted to its owner.

    ``burn`` acts on the caller's own balance, so the engine first pulls tokens
    into its custody with ``transfer_from`` and then burns from itself.
    """

    def mint(self, caller: str, to: str, amount: int) -> bool:
        ...

    def burn(self, caller: str, amount: int) -> None:
        ...


# ============================================================================
# TOKEN LEDGER RECORDS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a token ledger execution attempt.

    APPLIED: All moves were validated and applied.
    REJECTED: Validation failed; nothing was applied.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a token in the token ledger.

    Attributes:
        symbol: Short identifier, also used as the asset id (e.g. "WETH").
        name: Human-readable name.
        decimals: Fixed-point decimals of balances (18 for every bundled token).
        unit_type: UNIT_TYPE_COLLATERAL or UNIT_TYPE_DEBT.
    """
    symbol: str
    name: str
    decimals: int = PRECISION_DECIMALS
    unit_type: str = UNIT_TYPE_COLLATERAL

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Unit symbol cannot be empty")
        if self.decimals < 0:
            raise ValueError(f"Unit decimals cannot be negative, got {self.decimals}")


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of a token between two wallets.

    Attributes:
        quantity: Fixed-point amount to transfer (positive int).
        unit_symbol: Token being transferred.
        source: Wallet debited.
        dest: Wallet credited.
        memo: Free-form reason ("transfer", "mint", "burn", ...).
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    memo: str = "transfer"

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record in the token ledger's audit log.

    Attributes:
        moves: Moves applied together.
        origin: Who or what requested the batch (e.g. "WETH.transfer_from").
        sequence_number: Monotonic position within the ledger.
        exec_id: Unique execution identifier (ledger + sequence).
    """
    moves: Tuple[Move, ...]
    origin: str
    sequence_number: int
    exec_id: str

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")

    def __repr__(self) -> str:
        return f"Transaction({self.exec_id}, {len(self.moves)} moves, origin={self.origin})"


# ============================================================================
# ENGINE RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """Emitted when collateral enters custody."""
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Emitted when collateral leaves custody (redeem or liquidation seizure)."""
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class AccountInformation:
    total_debt_minted: int
    collateral_value_usd: int


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    """Read-only view of one account: collateral per asset, debt and health factor."""
    user: str
    collateral: Mapping[str, int]
    debt_minted: int
    collateral_value_usd: int
    health_factor: int


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """
    Outcome of a successful liquidation.

    Attributes:
        liquidator: Account that repaid the debt and received collateral.
        user: Account that was liquidated.
        asset: Collateral asset seized.
        debt_covered: Debt burned on behalf of ``user``.
        collateral_seized: Total collateral moved to ``liquidator`` (base + bonus).
        bonus_collateral: The bonus part of ``collateral_seized``.
        starting_health_factor: Health factor of ``user`` before the call.
        ending_health_factor: Health factor of ``user`` after the call.
    """
    liquidator: str
    user: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus_collateral: int
    starting_health_factor: int
    ending_health_factor: int


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for every failure of an engine operation."""
    pass


# Validation errors: caller mistakes, always recoverable by the caller.

class ValidationError(EngineError):
    """Raised when arguments or configuration are invalid."""
    pass


class InvalidAmount(ValidationError):
    """Raised when an amount is zero, negative or not an int."""
    pass


class UnknownAsset(ValidationError):
    """Raised when an asset is not in the engine's registry."""
    pass


class ConfigurationError(ValidationError):
    """Raised at construction for mismatched registries, missing debt token or bad parameters."""
    pass


class InsufficientCollateral(ValidationError):
    """Raised when more collateral is redeemed or seized than the account holds."""
    pass


class DebtUnderflow(ValidationError):
    """Raised when more debt is burned than the account has minted."""
    pass


# Solvency errors.

class SolvencyError(EngineError):
    """Raised when an operation would leave an account undercollateralized."""
    pass


class BreaksHealthFactor(SolvencyError):
    """Raised when an account's health factor would end below the minimum."""

    def __init__(self, health_factor: int, user: Optional[str] = None):
        self.health_factor = health_factor
        self.user = user
        who = f" for {user}" if user else ""
        super().__init__(f"Health factor{who} would be {health_factor}, below the minimum")


# External-dependency errors.

class ExternalCallError(EngineError):
    """Raised when a collaborator reports failure."""
    pass


class TransferFailed(ExternalCallError):
    """Raised when a token transfer returns False."""
    pass


class MintFailed(ExternalCallError):
    """Raised when the debt-token issuer refuses to mint."""
    pass


class InvalidPrice(ExternalCallError):
    """Raised when a price feed reports a non-positive answer."""
    pass


# Liquidation errors.

class LiquidationError(EngineError):
    """Base exception for rejected liquidations."""
    pass


class HealthFactorOk(LiquidationError):
    """Raised when the target account is not below the minimum health factor."""

    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} is not below the minimum")


class HealthFactorNotImproved(LiquidationError):
    """Raised when a liquidation would not strictly raise the target's health factor."""

    def __init__(self, starting: int, ending: int):
        self.starting_health_factor = starting
        self.ending_health_factor = ending
        super().__init__(f"Health factor did not improve: {starting} -> {ending}")


class ReentrantCall(EngineError):
    """Raised when a guarded entry point is entered while another is running."""
    pass


# Token layer errors.

class TokenError(Exception):
    """Base exception for token ledger misuse."""
    pass


class UnitNotRegistered(TokenError):
    """Raised when operating on a token that has not been registered with the ledger."""
    pass


class NotOwner(TokenError):
    """Raised when a restricted token entry point is called by someone other than its owner."""
    pass


class BurnAmountExceedsBalance(TokenError):
    """Raised when a burn exceeds the caller's balance."""
    pass


# ============================================================================
# GUARDS
# ============================================================================

def require_more_than_zero(amount: Any) -> None:
    """Fail with InvalidAmount unless ``amount`` is a positive int."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an int, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be more than zero, got {amount}")


def require_allowed_asset(registry: Mapping[str, Any], asset: str) -> None:
    """Fail with UnknownAsset unless ``asset`` is registered."""
    if asset not in registry:
        raise UnknownAsset(f"Asset {asset!r} is not an approved collateral asset")


# ============================================================================
# AMOUNT HELPERS
# ============================================================================

def to_wei(value: Any, decimals: int = PRECISION_DECIMALS) -> int:
    """
    Convert a human quantity to a fixed-point int, truncating toward zero.

    Example:
        to_wei("10")      # 10 * 10**18
        to_wei("0.4")     # 4 * 10**17
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = value * (Decimal(10) ** decimals)
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_wei(amount: int, decimals: int = PRECISION_DECIMALS) -> Decimal:
    """Convert a fixed-point int back to an exact Decimal."""
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(amount) / (Decimal(10) ** decimals)
