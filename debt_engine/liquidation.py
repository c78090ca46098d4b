"""
liquidation.py - Forced closure of under-collateralized positions

A third party repays part or all of a victim's debt and receives the
USD-equivalent amount of one collateral asset plus a bonus.

Status transitions:
    - health factor >= minimum: liquidation forbidden (HealthFactorOk)
    - health factor <  minimum: liquidation allowed, must strictly improve it

Key Formulas:
    seized      = usd_to_native_amount(asset, debt_to_cover)          (floor)
    bonus       = seized * liquidation_bonus / 100                   (floor)
    total       = seized + bonus

The seizure is never substituted across assets: if the victim holds too little
of the chosen asset the whole liquidation fails.

Known limitation: once aggregate collateralization falls to 100% or below
there is no bonus margin left and nothing motivates a liquidator.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .core import (
    LIQUIDATION_PRECISION, RiskParameters,
    HealthFactorNotImproved, HealthFactorOk,
    mul_div, require_amount, format_health_factor,
)
from .health import HealthFactorCalculator
from .oracle import PriceOracleAdapter


@dataclass(frozen=True, slots=True)
class LiquidationPlan:
    """
    Sizing of one liquidation, computed before any state changes.

    Attributes:
        asset_id: Collateral asset seized
        victim: Account being liquidated
        liquidator: Account repaying the debt and receiving collateral
        debt_to_cover: Credit repaid on the victim's behalf (18-decimal USD)
        seized_native: Native units worth debt_to_cover
        bonus_native: Extra native units awarded to the liquidator
        total_seized: seized_native + bonus_native
        starting_health_factor: Victim's health factor before liquidation
    """
    asset_id: str
    victim: str
    liquidator: str
    debt_to_cover: int
    seized_native: int
    bonus_native: int
    total_seized: int
    starting_health_factor: int


def calculate_liquidation_bonus(seized_native: int, liquidation_bonus: int) -> int:
    """Bonus in native units, rounded down."""
    return mul_div(seized_native, liquidation_bonus, LIQUIDATION_PRECISION)


class LiquidationEngine:
    """Eligibility, sizing and the post-condition of a liquidation."""

    def __init__(
        self,
        oracle: PriceOracleAdapter,
        health: HealthFactorCalculator,
        parameters: Optional[RiskParameters] = None,
    ):
        self.oracle = oracle
        self.health = health
        self.parameters = parameters or RiskParameters()

    def plan(self, asset_id: str, victim: str, liquidator: str, debt_to_cover: int) -> LiquidationPlan:
        """
        Check eligibility and size the seizure.

        Raises:
            NeedsMoreThanZero: If debt_to_cover <= 0
            TokenNotAllowed: If the asset is not accepted
            HealthFactorOk: If the victim is not below the minimum health factor
            StalePrice: If the asset's feed is stale
        """
        require_amount(debt_to_cover)
        self.oracle.registry.get(asset_id)

        starting = self.health.health_factor(victim)
        if starting >= self.parameters.min_health_factor:
            raise HealthFactorOk(
                f"{victim} has health factor {format_health_factor(starting)}, "
                f"liquidation not allowed"
            )

        seized = self.oracle.usd_to_native_amount(asset_id, debt_to_cover)
        bonus = calculate_liquidation_bonus(seized, self.parameters.liquidation_bonus)
        return LiquidationPlan(
            asset_id=asset_id,
            victim=victim,
            liquidator=liquidator,
            debt_to_cover=debt_to_cover,
            seized_native=seized,
            bonus_native=bonus,
            total_seized=seized + bonus,
            starting_health_factor=starting,
        )

    def verify(self, plan: LiquidationPlan) -> int:
        """
        Require the victim's health factor to have strictly increased.

        Returns:
            The victim's ending health factor

        Raises:
            HealthFactorNotImproved: If it did not increase
        """
        ending = self.health.health_factor(plan.victim)
        if ending <= plan.starting_health_factor:
            raise HealthFactorNotImproved(
                f"{plan.victim} health factor went from "
                f"{format_health_factor(plan.starting_health_factor)} to "
                f"{format_health_factor(ending)}"
            )
        return ending
