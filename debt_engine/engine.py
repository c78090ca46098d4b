"""
engine.py - Collateralized Debt Engine

CollateralDebtEngine is the only public entry point that mutates positions.
Participants deposit collateral, draw credit against it, repay it and
withdraw; third parties liquidate positions whose health factor has fallen
below the minimum.

Every public operation is a single unit of work:
    1. Reentrancy guard: no other public operation may start until this one ends
    2. Effects: the collateral and debt ledgers are updated
    3. Interactions: tokens are pulled, pushed, issued or destroyed
    4. Checks: the acting account must end at or above the minimum health factor
    5. Commit, or restore ledgers and every transactional collaborator and re-raise

No partial effect of a rejected operation is ever observable.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .core import (
    PRECISION, RiskParameters,
    AccountInformation, AccountStatus, CreditToken, Event, FungibleToken, PriceFeed,
    PositionLiquidated,
    BreaksHealthFactor, MintFailed, ReentrantCall, TransferFailed,
    format_usd, require_amount,
)
from .health import HealthFactorCalculator, calculate_health_factor
from .ledgers import CollateralLedger, DebtLedger
from .liquidation import LiquidationEngine, LiquidationPlan
from .oracle import PriceOracleAdapter
from .registry import AssetRegistry
from .tokens import _unique_environments


@dataclass(frozen=True, slots=True)
class OperationRecord:
    """
    A committed engine operation - represents FACT.

    Attributes:
        sequence_number: Monotonic position in the operation log
        operation: Public operation name (e.g. "deposit_and_issue")
        caller: Acting wallet
        events: Everything the ledgers emitted, in order
    """
    sequence_number: int
    operation: str
    caller: str
    events: Tuple[Event, ...]

    def __repr__(self) -> str:
        return f"Operation(#{self.sequence_number} {self.operation} by {self.caller}, {len(self.events)} events)"


class CollateralDebtEngine:
    """
    Solvency-enforcing facade over collateral, debt and liquidation.

    Design Principles:
        - Effects, then interactions, then checks - any failure rolls back all three.
        - One operation at a time: reentry from a collaborator is rejected.
        - Always logs: every committed operation is recorded with its events.

    Thread Safety:
        Not thread-safe. Callers serialize access externally.

    Example:
        engine = CollateralDebtEngine([weth, wbtc], [eth_feed, btc_feed], credit)
        credit.transfer_ownership("deployer", engine.address)

        weth.approve("alice", engine.address, 10 * 10**18)
        engine.deposit_and_issue("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
    """

    def __init__(
        self,
        collateral_tokens: Sequence[FungibleToken],
        price_feeds: Sequence[PriceFeed],
        credit_token: CreditToken,
        address: str = "engine",
        parameters: Optional[RiskParameters] = None,
        verbose: bool = False,
    ):
        """
        Create an engine.

        Args:
            collateral_tokens: Accepted collateral assets, in valuation order
            price_feeds: One feed per collateral token, same order
            credit_token: The credit token; the engine must own it to issue
            address: Wallet id under which the engine holds custody
            parameters: Liquidation policy (defaults: 50% threshold, 10% bonus, 1.0 minimum)
            verbose: Print one line per applied or rejected operation

        Raises:
            LengthMismatch: If tokens and feeds are not paired 1:1
            DuplicateAsset, EmptyRegistration, UnsupportedPrecision: See AssetRegistry
        """
        if not address or not address.strip():
            raise ValueError("Engine address cannot be empty")
        self.address = address
        self.verbose = verbose
        self.parameters = parameters or RiskParameters()

        self.registry = AssetRegistry(collateral_tokens, price_feeds)
        self.oracle = PriceOracleAdapter(self.registry)
        self.collateral = CollateralLedger(self.registry)
        self.debt = DebtLedger()
        self.health = HealthFactorCalculator(
            self.registry, self.oracle, self.collateral, self.debt, self.parameters
        )
        self.liquidations = LiquidationEngine(self.oracle, self.health, self.parameters)

        self._credit_token = credit_token
        self._environments = _unique_environments([*collateral_tokens, credit_token])

        self.operation_log: List[OperationRecord] = []
        self._next_sequence: int = 0
        self._entered: bool = False
        self._pending_events: List[Event] = []

    # ========================================================================
    # UNIT OF WORK
    # ========================================================================

    @contextmanager
    def _operation(self, name: str, caller: str) -> Iterator[None]:
        """
        Run the body as one all-or-nothing operation under the reentrancy guard.

        Raises:
            ReentrantCall: If another operation is in flight
        """
        if self._entered:
            raise ReentrantCall(f"{name} by {caller} while another operation is in flight")
        if not caller or not caller.strip():
            raise ValueError("caller cannot be empty")

        self._entered = True
        collateral_snapshot = self.collateral.snapshot()
        debt_snapshot = self.debt.snapshot()
        savepoints = [(env, env.savepoint()) for env in self._environments]
        self._pending_events = []
        try:
            yield
        except BaseException as e:
            self.collateral.restore(collateral_snapshot)
            self.debt.restore(debt_snapshot)
            for env, savepoint in reversed(savepoints):
                env.restore(savepoint)
            if self.verbose:
                print(f"✗ REJECTED: {name} by {caller}: {type(e).__name__}: {e}")
            raise
        else:
            record = OperationRecord(
                sequence_number=self._next_sequence,
                operation=name,
                caller=caller,
                events=tuple(self._pending_events),
            )
            self._next_sequence += 1
            self.operation_log.append(record)
            if self.verbose:
                print(f"✓ APPLIED: {record!r}")
        finally:
            self._pending_events = []
            self._entered = False

    def _emit(self, event: Event) -> None:
        self._pending_events.append(event)

    def _require_healthy(self, user: str) -> None:
        health_factor = self.health.health_factor(user)
        if health_factor < self.parameters.min_health_factor:
            raise BreaksHealthFactor(health_factor, user, self.parameters.min_health_factor)

    # ========================================================================
    # BUILDING BLOCKS (no guard, no check)
    # ========================================================================

    def _deposit(self, user: str, asset_id: str, amount: int) -> None:
        require_amount(amount)
        token = self.registry.token(asset_id)
        self._emit(self.collateral.deposit(user, asset_id, amount))
        if not token.transfer_from(self.address, user, self.address, amount):
            raise TransferFailed(f"Pulling {amount} {asset_id} from {user} failed")

    def _redeem(self, asset_id: str, amount: int, from_user: str, to_user: str) -> None:
        require_amount(amount)
        token = self.registry.token(asset_id)
        self._emit(self.collateral.withdraw(from_user, asset_id, amount, to=to_user))
        if not token.transfer(self.address, to_user, amount):
            raise TransferFailed(f"Sending {amount} {asset_id} to {to_user} failed")

    def _issue(self, user: str, amount: int) -> None:
        require_amount(amount)
        self._emit(self.debt.issue(user, amount))
        self._require_healthy(user)
        if not self._credit_token.issue(self.address, user, amount):
            raise MintFailed(f"Issuing {amount} credit to {user} failed")

    def _retire(self, amount: int, on_behalf_of: str, payer: str) -> None:
        require_amount(amount)
        self._emit(self.debt.retire(on_behalf_of, amount, retired_by=payer))
        if not self._credit_token.transfer_from(self.address, payer, self.address, amount):
            raise TransferFailed(f"Pulling {amount} credit from {payer} failed")
        self._credit_token.destroy(self.address, amount)

    # ========================================================================
    # PUBLIC OPERATIONS
    # ========================================================================

    def deposit(self, caller: str, asset_id: str, amount: int) -> None:
        """
        Deposit collateral. The engine pulls `amount` via transfer_from, so
        the caller must have approved the engine beforehand.

        Raises:
            NeedsMoreThanZero: If amount <= 0
            TokenNotAllowed: If the asset is not accepted
        """
        with self._operation("deposit", caller):
            self._deposit(caller, asset_id, amount)

    def withdraw(self, caller: str, asset_id: str, amount: int) -> None:
        """
        Withdraw collateral back to the caller.

        Raises:
            InsufficientCollateral: If amount exceeds the deposit
            BreaksHealthFactor: If the remaining collateral no longer covers the debt
        """
        with self._operation("withdraw", caller):
            self._redeem(asset_id, amount, caller, caller)
            self._require_healthy(caller)

    def issue_credit(self, caller: str, amount: int) -> None:
        """
        Draw credit against deposited collateral.

        Debt is booked first so the solvency check sees the proposed level.

        Raises:
            BreaksHealthFactor: If the new debt is not covered
        """
        with self._operation("issue_credit", caller):
            self._issue(caller, amount)

    def retire_credit(self, caller: str, amount: int) -> None:
        """
        Repay the caller's own credit. The engine pulls the tokens via
        transfer_from and destroys them.

        Raises:
            InsufficientDebt: If amount exceeds the outstanding credit
        """
        with self._operation("retire_credit", caller):
            self._retire(amount, caller, caller)
            self._require_healthy(caller)

    def deposit_and_issue(
        self, caller: str, asset_id: str, collateral_amount: int, credit_amount: int
    ) -> None:
        with self._operation("deposit_and_issue", caller):
            self._deposit(caller, asset_id, collateral_amount)
            self._issue(caller, credit_amount)

    def withdraw_and_retire(
        self, caller: str, asset_id: str, collateral_amount: int, credit_amount: int
    ) -> None:
        """Repay credit, then withdraw collateral; checked against the reduced debt."""
        with self._operation("withdraw_and_retire", caller):
            self._retire(credit_amount, caller, caller)
            self._redeem(asset_id, collateral_amount, caller, caller)
            self._require_healthy(caller)

    def liquidate(self, caller: str, asset_id: str, victim: str, debt_to_cover: int) -> LiquidationPlan:
        """
        Repay `debt_to_cover` of the victim's credit and seize the equivalent
        collateral of `asset_id` plus the liquidation bonus.

        The caller must have approved the engine for `debt_to_cover` credit.

        Returns:
            The executed LiquidationPlan

        Raises:
            HealthFactorOk: If the victim is not liquidatable
            InsufficientCollateral: If the victim holds too little of the asset
            InsufficientDebt: If debt_to_cover exceeds the victim's debt
            HealthFactorNotImproved: If the victim's health factor did not increase
            BreaksHealthFactor: If the liquidator's own position ends up unhealthy
        """
        with self._operation("liquidate", caller):
            plan = self.liquidations.plan(asset_id, victim, caller, debt_to_cover)
            # Dust repayments can round the seizure down to nothing
            if plan.total_seized > 0:
                self._redeem(asset_id, plan.total_seized, victim, caller)
            self._retire(plan.debt_to_cover, victim, caller)
            ending = self.liquidations.verify(plan)
            self._require_healthy(caller)
            self._emit(PositionLiquidated(
                victim=victim,
                liquidator=caller,
                asset_id=asset_id,
                debt_covered=plan.debt_to_cover,
                collateral_seized=plan.total_seized,
                starting_health_factor=plan.starting_health_factor,
                ending_health_factor=ending,
            ))
        return plan

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    @property
    def credit_token(self) -> CreditToken:
        return self._credit_token

    @property
    def precision(self) -> int:
        return PRECISION

    @property
    def min_health_factor(self) -> int:
        return self.parameters.min_health_factor

    @property
    def liquidation_threshold(self) -> int:
        return self.parameters.liquidation_threshold

    @property
    def liquidation_bonus(self) -> int:
        return self.parameters.liquidation_bonus

    @property
    def events(self) -> List[Event]:
        """Events of all committed operations, oldest first."""
        return [event for record in self.operation_log for event in record.events]

    def list_assets(self) -> Tuple[str, ...]:
        return self.registry.list_assets()

    def price_feed(self, asset_id: str) -> PriceFeed:
        return self.registry.price_feed(asset_id)

    def collateral_balance(self, user: str, asset_id: str) -> int:
        return self.collateral.balance(user, asset_id)

    def collateral_value_usd(self, user: str) -> int:
        return self.health.collateral_value_usd(user)

    def account_information(self, user: str) -> AccountInformation:
        return self.health.account_information(user)

    def health_factor(self, user: str) -> int:
        return self.health.health_factor(user)

    def account_status(self, user: str) -> AccountStatus:
        return self.health.status(user)

    def calculate_health_factor(self, total_debt: int, collateral_value_usd: int) -> int:
        return calculate_health_factor(
            total_debt, collateral_value_usd, self.parameters.liquidation_threshold
        )

    def usd_value(self, asset_id: str, amount: int) -> int:
        return self.oracle.usd_value(asset_id, amount)

    def usd_to_native_amount(self, asset_id: str, usd_value: int) -> int:
        return self.oracle.usd_to_native_amount(asset_id, usd_value)

    def users(self) -> List[str]:
        return sorted(set(self.collateral.users()) | set(self.debt.users()))

    def total_debt(self) -> int:
        return self.debt.total()

    def total_collateral_value_usd(self) -> int:
        return sum(self.health.collateral_value_usd(user) for user in self.users())

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Verify the system-wide invariants.

        Checks:
        1. Aggregate solvency: total collateral value >= total outstanding credit
        2. Custody: for each asset, the engine holds at least what the ledger books

        Returns:
            Dict with keys:
            - 'valid': bool - True if every check holds
            - 'total_collateral_value_usd': int
            - 'total_debt': int
            - 'credit_supply': int - circulating credit token supply
            - 'liquidatable': List[str] - accounts currently below the minimum
            - 'discrepancies': List[Dict] - details of any failed check

        Example:
            result = engine.verify_solvency()
            assert result['valid'], f"Solvency violated: {result['discrepancies']}"
        """
        users = self.users()
        total_value = sum(self.health.collateral_value_usd(user) for user in users)
        total_debt = self.debt.total()
        discrepancies: List[Dict[str, Any]] = []

        if total_value < total_debt:
            discrepancies.append({
                'check': 'aggregate_solvency',
                'collateral_value_usd': total_value,
                'total_debt': total_debt,
                'shortfall': total_debt - total_value,
            })

        for entry in self.registry:
            booked = self.collateral.total(entry.asset_id)
            held = entry.token.balance_of(self.address)
            if held < booked:
                discrepancies.append({
                    'check': 'custody',
                    'asset': entry.asset_id,
                    'booked': booked,
                    'held': held,
                })

        liquidatable = [
            user for user in users
            if self.health.health_factor(user) < self.parameters.min_health_factor
        ]

        if self.verbose and discrepancies:
            print(
                f"⚠️  SOLVENCY: collateral {format_usd(total_value)} vs debt {format_usd(total_debt)}, "
                f"{len(discrepancies)} discrepancies"
            )

        return {
            'valid': len(discrepancies) == 0,
            'total_collateral_value_usd': total_value,
            'total_debt': total_debt,
            'credit_supply': self._credit_token.total_supply(),
            'liquidatable': liquidatable,
            'discrepancies': discrepancies,
        }

    def __repr__(self) -> str:
        return (
            f"CollateralDebtEngine({self.address}, assets={list(self.list_assets())}, "
            f"debt={format_usd(self.debt.total())})"
        )
