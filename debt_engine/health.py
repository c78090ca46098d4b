"""
health.py - Health factor of collateralized positions

PURE CALCULATION FUNCTIONS take every input explicitly and are trivially
stress-testable; HealthFactorCalculator loads the inputs for one user from the
ledgers and the oracle, then delegates.

Key Formulas:
    collateral_value = sum(usd_value(asset, balance) for each registered asset)
    adjusted         = collateral_value * liquidation_threshold / 100
    health_factor    = adjusted * 1e18 / total_debt        (MAX_HEALTH_FACTOR if no debt)
"""

from __future__ import annotations
from typing import Optional

from .core import (
    LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD, MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR, PRECISION,
    AccountInformation, AccountStatus, RiskParameters,
    mul_div, saturate,
)
from .ledgers import CollateralLedger, DebtLedger
from .oracle import PriceOracleAdapter
from .registry import AssetRegistry


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_health_factor(
    total_debt: int,
    collateral_value_usd: int,
    liquidation_threshold: int = LIQUIDATION_THRESHOLD,
) -> int:
    """
    Health factor of a position from its debt and collateral value.

    Zero debt returns MAX_HEALTH_FACTOR without dividing. Finite results are
    saturated so they never exceed the sentinel.

    Example:
        # $20,000 collateral, $10,000 debt -> exactly 1.0
        calculate_health_factor(10_000 * 10**18, 20_000 * 10**18) == 10**18
    """
    if total_debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = mul_div(collateral_value_usd, liquidation_threshold, LIQUIDATION_PRECISION)
    return saturate(mul_div(adjusted, PRECISION, total_debt))


def classify_account(
    total_debt: int,
    has_collateral: bool,
    health_factor: int,
    min_health_factor: int = MIN_HEALTH_FACTOR,
) -> AccountStatus:
    if total_debt == 0:
        return AccountStatus.COLLATERALIZED if has_collateral else AccountStatus.EMPTY
    if health_factor < min_health_factor:
        return AccountStatus.LIQUIDATABLE
    return AccountStatus.ACTIVE


# ============================================================================
# CALCULATOR
# ============================================================================

class HealthFactorCalculator:
    """Solvency ratio of any user, read from the live ledgers and feeds."""

    def __init__(
        self,
        registry: AssetRegistry,
        oracle: PriceOracleAdapter,
        collateral: CollateralLedger,
        debt: DebtLedger,
        parameters: Optional[RiskParameters] = None,
    ):
        self.registry = registry
        self.oracle = oracle
        self.collateral = collateral
        self.debt = debt
        self.parameters = parameters or RiskParameters()

    def collateral_value_usd(self, user: str) -> int:
        """Sum of the user's deposits valued in USD, in registry order."""
        total = 0
        for asset_id, amount in self.collateral.balances(user).items():
            if amount == 0:
                continue
            total += self.oracle.usd_value(asset_id, amount)
        return total

    def account_information(self, user: str) -> AccountInformation:
        return AccountInformation(
            total_debt=self.debt.balance(user),
            collateral_value_usd=self.collateral_value_usd(user),
        )

    def health_factor(self, user: str) -> int:
        total_debt = self.debt.balance(user)
        if total_debt == 0:
            return MAX_HEALTH_FACTOR
        return calculate_health_factor(
            total_debt,
            self.collateral_value_usd(user),
            self.parameters.liquidation_threshold,
        )

    def status(self, user: str) -> AccountStatus:
        """Derived state from raw balances; the oracle is read only when there is debt."""
        has_collateral = any(self.collateral.balances(user).values())
        return classify_account(
            self.debt.balance(user), has_collateral, self.health_factor(user),
            self.parameters.min_health_factor,
        )
