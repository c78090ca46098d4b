"""
debt_engine - Collateralized Debt Engine

Participants lock collateral assets, draw a USD-pegged credit token against
them, repay it and withdraw; under-collateralized positions are liquidated by
third parties for a bonus.

Usage:
    from debt_engine import AssetLedger, StaticPriceFeed, CollateralDebtEngine

    chain = AssetLedger("chain", test_mode=True)
    weth = chain.register_unit("WETH", "Wrapped Ether", 18)
    credit = chain.register_credit_unit("DSC", "Stable Credit", owner="deployer")

    engine = CollateralDebtEngine([weth], [StaticPriceFeed(2000 * 10**8)], credit)
    credit.transfer_ownership("deployer", engine.address)

    # Lock 10 WETH ($20,000) and draw $5,000 of credit
    weth.mint("alice", 10 * 10**18)
    weth.approve("alice", engine.address, 10 * 10**18)
    engine.deposit_and_issue("alice", "WETH", 10 * 10**18, 5_000 * 10**18)

    engine.health_factor("alice")   # 2 * 10**18
"""

# Core types
from .core import (
    CANONICAL_DECIMALS,
    PRECISION,
    MAX_HEALTH_FACTOR,
    MIN_HEALTH_FACTOR,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    SYSTEM_WALLET,
    Quote,
    RiskParameters,
    AccountInformation,
    AccountStatus,
    PriceFeed,
    FungibleToken,
    CreditToken as CreditTokenProtocol,
    Transactional,
    CollateralDeposited,
    CollateralRedeemed,
    CreditIssued,
    CreditRetired,
    PositionLiquidated,
    Event,
    require_amount,
    scale_factor,
    mul_div,
    saturate,
    to_fixed,
    from_fixed,
    format_usd,
    format_health_factor,
)

# Exceptions
from .core import (
    EngineError,
    InputError,
    NeedsMoreThanZero,
    InvalidAmount,
    LengthMismatch,
    DuplicateAsset,
    EmptyRegistration,
    UnsupportedPrecision,
    PolicyError,
    TokenNotAllowed,
    UnknownAsset,
    HealthFactorOk,
    BreaksHealthFactor,
    ReentrantCall,
    StateError,
    InsufficientCollateral,
    InsufficientDebt,
    OracleError,
    StalePrice,
    InvalidQuote,
    CollaboratorError,
    TransferFailed,
    MintFailed,
    InsufficientFunds,
    InsufficientAllowance,
    Unauthorized,
    UnitNotRegistered,
    InvariantError,
    HealthFactorNotImproved,
)

# Collaborators
from .tokens import AssetLedger, Move, Transfer, TokenUnit, Token, CreditToken
from .price_feeds import (
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    DEFAULT_HEARTBEAT,
    DEFAULT_FEED_DECIMALS,
)

# Engine components
from .registry import AssetRegistry, AssetEntry
from .oracle import (
    PriceOracleAdapter,
    normalize_price,
    calculate_usd_value,
    calculate_native_amount,
)
from .ledgers import CollateralLedger, DebtLedger
from .health import HealthFactorCalculator, calculate_health_factor, classify_account
from .liquidation import LiquidationEngine, LiquidationPlan, calculate_liquidation_bonus
from .engine import CollateralDebtEngine, OperationRecord


__all__ = [
    # Constants
    'CANONICAL_DECIMALS',
    'PRECISION',
    'MAX_HEALTH_FACTOR',
    'MIN_HEALTH_FACTOR',
    'LIQUIDATION_THRESHOLD',
    'LIQUIDATION_BONUS',
    'LIQUIDATION_PRECISION',
    'SYSTEM_WALLET',
    'DEFAULT_HEARTBEAT',
    'DEFAULT_FEED_DECIMALS',
    # Core types
    'Quote',
    'RiskParameters',
    'AccountInformation',
    'AccountStatus',
    'PriceFeed',
    'FungibleToken',
    'CreditTokenProtocol',
    'Transactional',
    # Events
    'CollateralDeposited',
    'CollateralRedeemed',
    'CreditIssued',
    'CreditRetired',
    'PositionLiquidated',
    'Event',
    # Fixed point
    'require_amount',
    'scale_factor',
    'mul_div',
    'saturate',
    'to_fixed',
    'from_fixed',
    'format_usd',
    'format_health_factor',
    # Exceptions
    'EngineError',
    'InputError',
    'NeedsMoreThanZero',
    'InvalidAmount',
    'LengthMismatch',
    'DuplicateAsset',
    'EmptyRegistration',
    'UnsupportedPrecision',
    'PolicyError',
    'TokenNotAllowed',
    'UnknownAsset',
    'HealthFactorOk',
    'BreaksHealthFactor',
    'ReentrantCall',
    'StateError',
    'InsufficientCollateral',
    'InsufficientDebt',
    'OracleError',
    'StalePrice',
    'InvalidQuote',
    'CollaboratorError',
    'TransferFailed',
    'MintFailed',
    'InsufficientFunds',
    'InsufficientAllowance',
    'Unauthorized',
    'UnitNotRegistered',
    'InvariantError',
    'HealthFactorNotImproved',
    # Collaborators
    'AssetLedger',
    'Move',
    'Transfer',
    'TokenUnit',
    'Token',
    'CreditToken',
    'StaticPriceFeed',
    'TimeSeriesPriceFeed',
    # Engine components
    'AssetRegistry',
    'AssetEntry',
    'PriceOracleAdapter',
    'normalize_price',
    'calculate_usd_value',
    'calculate_native_amount',
    'CollateralLedger',
    'DebtLedger',
    'HealthFactorCalculator',
    'calculate_health_factor',
    'classify_account',
    'LiquidationEngine',
    'LiquidationPlan',
    'calculate_liquidation_bonus',
    'CollateralDebtEngine',
    'OperationRecord',
]

__version__ = '1.0.0'
