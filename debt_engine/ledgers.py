"""
ledgers.py - Collateral and debt bookkeeping

Two plain ledgers with no notion of solvency:

    CollateralLedger: user -> deposited amount per accepted asset (native units)
    DebtLedger:       user -> outstanding credit (18-decimal USD)

Each mutation validates its amount, guards against going negative and returns
the event describing what happened. Solvency is the facade's job.
"""

from __future__ import annotations
from typing import Dict, List, Optional

from .core import (
    CollateralDeposited, CollateralRedeemed, CreditIssued, CreditRetired,
    InsufficientCollateral, InsufficientDebt,
    require_amount,
)
from .registry import AssetRegistry


class CollateralLedger:
    """
    Per-(user, asset) deposited amounts.

    Balances are stored as one list per user, indexed by the registry's asset
    index. A user row is created on first deposit and never removed; a zero
    balance is a valid terminal state.
    """

    def __init__(self, registry: AssetRegistry):
        self.registry = registry
        self._balances: Dict[str, List[int]] = {}

    def balance(self, user: str, asset_id: str) -> int:
        index = self.registry.index_of(asset_id)
        row = self._balances.get(user)
        return row[index] if row is not None else 0

    def balances(self, user: str) -> Dict[str, int]:
        """All balances of a user keyed by asset id, in registry order."""
        row = self._balances.get(user)
        return {
            entry.asset_id: (row[entry.index] if row is not None else 0)
            for entry in self.registry
        }

    def total(self, asset_id: str) -> int:
        index = self.registry.index_of(asset_id)
        return sum(row[index] for row in self._balances.values())

    def users(self) -> List[str]:
        return sorted(self._balances)

    def deposit(self, user: str, asset_id: str, amount: int) -> CollateralDeposited:
        require_amount(amount)
        index = self.registry.index_of(asset_id)
        row = self._balances.setdefault(user, [0] * len(self.registry))
        row[index] += amount
        return CollateralDeposited(user=user, asset_id=asset_id, amount=amount)

    def withdraw(
        self, user: str, asset_id: str, amount: int, to: Optional[str] = None
    ) -> CollateralRedeemed:
        """
        Decrease a user's balance.

        Args:
            user: Whose collateral is decreased
            asset_id: Accepted asset
            amount: Native units
            to: Recipient recorded on the event (defaults to `user`)

        Raises:
            InsufficientCollateral: If amount exceeds the balance
        """
        require_amount(amount)
        index = self.registry.index_of(asset_id)
        current = self.balance(user, asset_id)
        if amount > current:
            raise InsufficientCollateral(
                f"{user} has {current} {asset_id} deposited, cannot remove {amount}"
            )
        self._balances[user][index] = current - amount
        return CollateralRedeemed(
            redeemed_from=user,
            redeemed_to=to if to is not None else user,
            asset_id=asset_id,
            amount=amount,
        )

    def snapshot(self) -> Dict[str, List[int]]:
        return {user: list(row) for user, row in self._balances.items()}

    def restore(self, snapshot: Dict[str, List[int]]) -> None:
        self._balances = {user: list(row) for user, row in snapshot.items()}


class DebtLedger:
    """Per-user outstanding credit."""

    def __init__(self):
        self._balances: Dict[str, int] = {}

    def balance(self, user: str) -> int:
        return self._balances.get(user, 0)

    def total(self) -> int:
        return sum(self._balances.values())

    def users(self) -> List[str]:
        return sorted(self._balances)

    def issue(self, user: str, amount: int) -> CreditIssued:
        require_amount(amount)
        self._balances[user] = self.balance(user) + amount
        return CreditIssued(user=user, amount=amount)

    def retire(self, user: str, amount: int, retired_by: Optional[str] = None) -> CreditRetired:
        """
        Decrease a user's outstanding credit.

        Raises:
            InsufficientDebt: If amount exceeds the outstanding balance
        """
        require_amount(amount)
        current = self.balance(user)
        if amount > current:
            raise InsufficientDebt(f"{user} owes {current}, cannot retire {amount}")
        self._balances[user] = current - amount
        return CreditRetired(
            on_behalf_of=user,
            retired_by=retired_by if retired_by is not None else user,
            amount=amount,
        )

    def snapshot(self) -> Dict[str, int]:
        return dict(self._balances)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._balances = dict(snapshot)
