"""
stablecoin - Overcollateralized Stablecoin Engine

An accounting engine for a stablecoin backed by volatile collateral: users
deposit approved assets, mint a USD-pegged debt token against them, and must
keep every position at least 200% collateralized. Undercollateralized
positions can be liquidated by anyone for a 10% collateral bonus.

Usage:
    from stablecoin import (
        Engine, TokenLedger, StaticPriceFeed,
        create_collateral_token, create_debt_token, to_wei,
    )

    chain = TokenLedger("chain")
    weth = create_collateral_token(chain, "WETH", "Wrapped Ether")
    wbtc = create_collateral_token(chain, "WBTC", "Wrapped Bitcoin")
    dsc = create_debt_token(chain, owner="deployer")

    engine = Engine(
        [weth, wbtc],
        [StaticPriceFeed(8, 2000 * 10**8), StaticPriceFeed(8, 1000 * 10**8)],
        dsc,
    )
    dsc.transfer_ownership("deployer", engine.address)

    weth.mint("alice", to_wei(10))
    weth.approve("alice", engine.address, to_wei(10))
    engine.deposit_collateral_and_mint("alice", "WETH", to_wei(10), to_wei(8000))
    engine.get_health_factor("alice")    # 1_250_000_000_000_000_000
"""

# Core types
from .core import (
    # Constants
    PRECISION_DECIMALS,
    PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    FEED_DECIMALS,
    SYSTEM_WALLET,
    UNIT_TYPE_COLLATERAL,
    UNIT_TYPE_DEBT,
    # Configuration
    EngineConfig,
    # Protocols
    RoundData,
    PriceFeed,
    CollateralAsset,
    DebtTokenIssuer,
    # Token ledger records
    ExecuteResult,
    Unit,
    Move,
    Transaction,
    # Engine records
    CollateralDeposited,
    CollateralRedeemed,
    AccountInformation,
    AccountSnapshot,
    LiquidationResult,
    # Exceptions
    EngineError,
    ValidationError,
    InvalidAmount,
    UnknownAsset,
    ConfigurationError,
    InsufficientCollateral,
    DebtUnderflow,
    SolvencyError,
    BreaksHealthFactor,
    ExternalCallError,
    TransferFailed,
    MintFailed,
    InvalidPrice,
    LiquidationError,
    HealthFactorOk,
    HealthFactorNotImproved,
    ReentrantCall,
    TokenError,
    UnitNotRegistered,
    NotOwner,
    BurnAmountExceedsBalance,
    # Guards and helpers
    require_more_than_zero,
    require_allowed_asset,
    to_wei,
    from_wei,
)

# Token layer
from .ledger import TokenLedger, LedgerSnapshot
from .tokens import (
    LedgerToken,
    MintableToken,
    DebtToken,
    create_collateral_token,
    create_debt_token,
)

# Prices
from .pricing import StaticPriceFeed, PriceOracle, scale_answer

# Pure calculations (no oracle, no ledger)
from .health import (
    calculate_health_factor,
    calculate_usd_value,
    calculate_token_amount_from_usd,
    calculate_collateral_value,
    calculate_seizure,
    HealthFactorCalculator,
)

# Components
from .collateral import CollateralLedger
from .debt import MintBurnController
from .liquidation import LiquidationEngine

# Engine
from .engine import Engine, nonreentrant

__version__ = "0.1.0"

__all__ = [
    # Constants
    'PRECISION_DECIMALS', 'PRECISION',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'FEED_DECIMALS',
    'SYSTEM_WALLET', 'UNIT_TYPE_COLLATERAL', 'UNIT_TYPE_DEBT',
    # Configuration and protocols
    'EngineConfig', 'RoundData', 'PriceFeed', 'CollateralAsset', 'DebtTokenIssuer',
    # Records
    'ExecuteResult', 'Unit', 'Move', 'Transaction',
    'CollateralDeposited', 'CollateralRedeemed',
    'AccountInformation', 'AccountSnapshot', 'LiquidationResult',
    # Exceptions
    'EngineError', 'ValidationError', 'InvalidAmount', 'UnknownAsset',
    'ConfigurationError', 'InsufficientCollateral', 'DebtUnderflow',
    'SolvencyError', 'BreaksHealthFactor',
    'ExternalCallError', 'TransferFailed', 'MintFailed', 'InvalidPrice',
    'LiquidationError', 'HealthFactorOk', 'HealthFactorNotImproved',
    'ReentrantCall',
    'TokenError', 'UnitNotRegistered', 'NotOwner', 'BurnAmountExceedsBalance',
    # Helpers
    'require_more_than_zero', 'require_allowed_asset', 'to_wei', 'from_wei',
    # Token layer
    'TokenLedger', 'LedgerSnapshot',
    'LedgerToken', 'MintableToken', 'DebtToken',
    'create_collateral_token', 'create_debt_token',
    # Prices
    'StaticPriceFeed', 'PriceOracle', 'scale_answer',
    # Calculations
    'calculate_health_factor', 'calculate_usd_value', 'calculate_token_amount_from_usd',
    'calculate_collateral_value', 'calculate_seizure', 'HealthFactorCalculator',
    # Components
    'CollateralLedger', 'MintBurnController', 'LiquidationEngine',
    # Engine
    'Engine', 'nonreentrant',
]
