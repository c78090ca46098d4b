"""
Core types and pure functions for the collateralized debt engine.

This module provides the foundational data structures and protocols for the engine:
1. Constants: fixed-point scale, health-factor bounds, liquidation policy
2. Fixed-point helpers: explicit floor division, saturation, human conversions
3. Protocols: PriceFeed, FungibleToken, CreditToken, Transactional
4. Immutable data structures: Quote, AccountInformation, engine events
5. Exceptions: EngineError and the taxonomy of rejections

All functions in this module are pure. No function here can mutate engine state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, getcontext
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Decimal is only used at the human boundary (to_fixed / from_fixed).
# All engine arithmetic is integer fixed point.
#
_ENGINE_DECIMAL_CONTEXT = getcontext()
_ENGINE_DECIMAL_CONTEXT.prec = 80


# ============================================================================
# CONSTANTS
# ============================================================================

# Canonical fixed-point scale for USD values, credit amounts and health factors.
CANONICAL_DECIMALS = 18
PRECISION = 10 ** CANONICAL_DECIMALS

# Largest representable value; doubles as the "infinite" health factor
# reported for accounts without debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# A health factor of exactly 1.0 is the lowest acceptable value.
MIN_HEALTH_FACTOR = PRECISION

# Percentage of collateral value counted towards solvency (200% overcollateralization).
LIQUIDATION_THRESHOLD = 50

# Extra collateral awarded to a liquidator, as a percentage of the seized amount.
LIQUIDATION_BONUS = 10

# Denominator for the two percentages above.
LIQUIDATION_PRECISION = 100

# Reserved wallet used as the counterparty for issuance and destruction.
SYSTEM_WALLET = "system"

Amount = int
HumanAmount = Union[Decimal, str, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine-related errors."""
    pass


class InputError(EngineError, ValueError):
    """Raised when an argument is malformed, independent of any state."""
    pass


class NeedsMoreThanZero(InputError):
    """Raised when an amount that must be positive is zero or negative."""
    pass


class InvalidAmount(InputError):
    """Raised when an amount is not an integer in the smallest unit."""
    pass


class LengthMismatch(InputError):
    """Raised when collateral tokens and price feeds are not paired 1:1."""
    pass


class DuplicateAsset(InputError):
    """Raised when the same collateral asset is registered twice."""
    pass


class EmptyRegistration(InputError):
    """Raised when no collateral asset, or an asset with a blank identifier, is registered."""
    pass


class UnsupportedPrecision(InputError):
    """Raised when an asset declares more than 18 decimals."""
    pass


class PolicyError(EngineError):
    """Raised when a well-formed request is forbidden by engine policy."""
    pass


class TokenNotAllowed(PolicyError):
    """Raised when an asset is not in the accepted collateral set."""
    pass


UnknownAsset = TokenNotAllowed


class HealthFactorOk(PolicyError):
    """Raised when liquidating an account whose health factor is at or above the minimum."""
    pass


class BreaksHealthFactor(PolicyError):
    """Raised when an operation would leave the acting account below the minimum health factor."""

    def __init__(self, health_factor: int, user: str = "", minimum: int = MIN_HEALTH_FACTOR):
        self.health_factor = health_factor
        self.user = user
        who = f" for {user}" if user else ""
        super().__init__(f"Health factor{who} would be {health_factor} (< {minimum})")


class ReentrantCall(PolicyError):
    """Raised when a public engine operation is entered while another is in flight."""
    pass


class StateError(EngineError):
    """Raised when a ledger balance cannot cover the requested decrease."""
    pass


class InsufficientCollateral(StateError):
    """Raised when withdrawing or seizing more collateral than is deposited."""
    pass


class InsufficientDebt(StateError):
    """Raised when retiring more credit than is outstanding."""
    pass


class OracleError(EngineError):
    """Raised when a price quote cannot be used for valuation."""
    pass


class StalePrice(OracleError):
    """Raised when the price feed reports its latest quote as stale."""
    pass


class InvalidQuote(OracleError):
    """Raised when a quote has a non-positive price or more than 18 decimals."""
    pass


class CollaboratorError(EngineError):
    """Raised when a token collaborator signals failure."""
    pass


class TransferFailed(CollaboratorError):
    """Raised when a token transfer returns False."""
    pass


class MintFailed(CollaboratorError):
    """Raised when the credit token refuses to issue."""
    pass


class InsufficientFunds(CollaboratorError):
    """Raised when a token move would take a wallet balance below zero."""
    pass


class InsufficientAllowance(CollaboratorError):
    """Raised when transfer_from exceeds the spender's allowance."""
    pass


class Unauthorized(CollaboratorError):
    """Raised when a non-owner calls an owner-gated token capability."""
    pass


class UnitNotRegistered(CollaboratorError):
    """Raised when operating on a token symbol unknown to the asset ledger."""
    pass


class InvariantError(EngineError):
    """Raised when an operation completes without the invariant it must establish."""
    pass


class HealthFactorNotImproved(InvariantError):
    """Raised when a liquidation does not strictly raise the victim's health factor."""
    pass


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def require_amount(amount: Any) -> int:
    """
    Validate an amount that must be a positive integer.

    Raises:
        InvalidAmount: If amount is not an int (bool and float are rejected)
        NeedsMoreThanZero: If amount <= 0
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an int in the smallest unit, got {type(amount).__name__}")
    if amount <= 0:
        raise NeedsMoreThanZero(f"Amount must be more than zero, got {amount}")
    return amount


def scale_factor(decimals: int) -> int:
    """
    Return the multiplier that lifts a `decimals`-precision integer to 18 decimals.

    Raises:
        UnsupportedPrecision: If decimals is negative or above 18
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise UnsupportedPrecision(f"decimals must be an int, got {type(decimals).__name__}")
    if decimals < 0 or decimals > CANONICAL_DECIMALS:
        raise UnsupportedPrecision(
            f"decimals must be in [0, {CANONICAL_DECIMALS}], got {decimals}"
        )
    return 10 ** (CANONICAL_DECIMALS - decimals)


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    Compute floor(a * b / denominator) for non-negative integers.

    The full product is formed before dividing, so no precision is lost to an
    intermediate truncation. Rounding is always towards zero.
    """
    if a < 0 or b < 0:
        raise ValueError(f"mul_div operands must be non-negative, got {a}, {b}")
    if denominator <= 0:
        raise ZeroDivisionError("mul_div denominator must be positive")
    return (a * b) // denominator


def saturate(value: int) -> int:
    """Clamp a non-negative value to MAX_HEALTH_FACTOR."""
    return value if value < MAX_HEALTH_FACTOR else MAX_HEALTH_FACTOR


def to_fixed(amount: HumanAmount, decimals: int = CANONICAL_DECIMALS) -> int:
    """
    Convert a human quantity to a fixed-point integer, rounding down.

    Example:
        to_fixed("2000", 8)   -> 200000000000
        to_fixed("0.05")      -> 50000000000000000
    """
    if isinstance(amount, float):
        raise InvalidAmount("Use Decimal or str for human amounts, not float")
    value = Decimal(amount) if not isinstance(amount, Decimal) else amount
    if value.is_nan() or value.is_infinite():
        raise InvalidAmount(f"Amount must be finite, got {value}")
    scaled = value.scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_fixed(value: int, decimals: int = CANONICAL_DECIMALS) -> Decimal:
    """Convert a fixed-point integer back to a human Decimal (for display)."""
    return Decimal(value).scaleb(-decimals)


def format_usd(value: int) -> str:
    """Render an 18-decimal USD value as '$1,234.56'."""
    if value >= MAX_HEALTH_FACTOR:
        return "$inf"
    human = from_fixed(value).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    return f"${human:,}"


def format_health_factor(value: int) -> str:
    """Render a health factor as a plain ratio ('1.25', 'inf')."""
    if value >= MAX_HEALTH_FACTOR:
        return "inf"
    return str(from_fixed(value).quantize(Decimal("0.0001"), rounding=ROUND_DOWN))


# ============================================================================
# PROTOCOLS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Quote:
    """
    A raw price observation as reported by a feed.

    Attributes:
        price: Integer price in `decimals` precision (USD per whole unit)
        decimals: Precision of `price`
        round_id: Monotonic round counter of the feed
        is_stale: Whether the feed considers this quote unsafe to use
    """
    price: int
    decimals: int
    round_id: int
    is_stale: bool = False


@runtime_checkable
class PriceFeed(Protocol):
    """Price source for a single collateral asset."""

    def latest_quote(self) -> Quote:
        """Return the latest quote, flagged stale when its freshness has expired."""
        ...


@runtime_checkable
class FungibleToken(Protocol):
    """
    Physical asset transfer capability with standard fungible-token semantics.

    The acting wallet is passed explicitly (there is no ambient sender).
    """

    @property
    def symbol(self) -> str:
        ...

    def decimals(self) -> int:
        ...

    def balance_of(self, owner: str) -> int:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        ...


@runtime_checkable
class CreditToken(FungibleToken, Protocol):
    """The USD-pegged credit token; issue/destroy are owner-gated."""

    def total_supply(self) -> int:
        ...

    def issue(self, caller: str, to: str, amount: int) -> bool:
        ...

    def destroy(self, caller: str, amount: int) -> None:
        ...


@runtime_checkable
class Transactional(Protocol):
    """An environment that can roll back to an earlier point."""

    def savepoint(self) -> Any:
        ...

    def restore(self, savepoint: Any) -> None:
        ...


# ============================================================================
# RISK PARAMETERS
# ============================================================================

@dataclass(frozen=True, slots=True)
class RiskParameters:
    """
    Liquidation policy of an engine - set at construction, never changes.

    Attributes:
        liquidation_threshold: Percent of collateral value counted (50 = 200% overcollateralized)
        liquidation_bonus: Percent of seized collateral added for the liquidator
        min_health_factor: Lowest acceptable health factor (18-decimal ratio)
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_bonus: int = LIQUIDATION_BONUS
    min_health_factor: int = MIN_HEALTH_FACTOR

    def __post_init__(self):
        if not 0 < self.liquidation_threshold <= LIQUIDATION_PRECISION:
            raise ValueError(
                f"liquidation_threshold must be in (0, {LIQUIDATION_PRECISION}], "
                f"got {self.liquidation_threshold}"
            )
        if not 0 <= self.liquidation_bonus < LIQUIDATION_PRECISION:
            raise ValueError(
                f"liquidation_bonus must be in [0, {LIQUIDATION_PRECISION}), "
                f"got {self.liquidation_bonus}"
            )
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")


# ============================================================================
# ACCOUNTS
# ============================================================================

class AccountStatus(Enum):
    """
    Derived state of an account (never stored).

    EMPTY: no collateral, no debt
    COLLATERALIZED: collateral, no debt
    ACTIVE: debt with health factor at or above the minimum
    LIQUIDATABLE: debt with health factor below the minimum
    """
    EMPTY = "empty"
    COLLATERALIZED = "collateralized"
    ACTIVE = "active"
    LIQUIDATABLE = "liquidatable"


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Outstanding credit and total collateral value of one account (both 18-decimal USD)."""
    total_debt: int
    collateral_value_usd: int


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    user: str
    asset_id: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    redeemed_from: str
    redeemed_to: str
    asset_id: str
    amount: int


@dataclass(frozen=True, slots=True)
class CreditIssued:
    user: str
    amount: int


@dataclass(frozen=True, slots=True)
class CreditRetired:
    on_behalf_of: str
    retired_by: str
    amount: int


@dataclass(frozen=True, slots=True)
class PositionLiquidated:
    victim: str
    liquidator: str
    asset_id: str
    debt_covered: int
    collateral_seized: int
    starting_health_factor: int
    ending_health_factor: int


Event = Union[
    CollateralDeposited, CollateralRedeemed, CreditIssued, CreditRetired, PositionLiquidated
]
