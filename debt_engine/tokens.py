"""
tokens.py - In-memory fungible-token ledger

AssetLedger is the stateful store behind every token the engine talks to: the
collateral assets and the credit token live here as units, wallets hold integer
balances in each unit's smallest denomination.

Key responsibilities:
    - Executes moves atomically (all moves succeed or all fail)
    - Tracks allowances for transfer_from
    - Issues and destroys supply against SYSTEM_WALLET
    - Always logs - every applied move becomes a Transfer record
    - savepoint()/restore() so a caller can roll back a unit of work

Token and CreditToken are thin handles bound to one unit of an AssetLedger.
They implement the FungibleToken and CreditToken protocols from core.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .core import (
    SYSTEM_WALLET,
    InsufficientAllowance, InsufficientFunds, Unauthorized, UnitNotRegistered,
    Transactional, require_amount, scale_factor,
)


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of a token between two wallets.

    Attributes:
        quantity: Amount in the unit's smallest denomination (positive int)
        unit_symbol: Symbol of the token being moved
        source: Wallet debited
        dest: Wallet credited
        memo: Free-form reason, carried into the transaction log
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    memo: str = ""

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        require_amount(self.quantity)
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Transfer:
    """An applied move, as recorded in the transaction log."""
    sequence_number: int
    move: Move


@dataclass(frozen=True, slots=True)
class TokenUnit:
    """Definition of a token registered on the ledger."""
    symbol: str
    name: str
    decimals: int


@dataclass(frozen=True, slots=True)
class _Savepoint:
    balances: Dict[str, Dict[str, int]]
    allowances: Dict[Tuple[str, str, str], int]
    log_length: int
    next_sequence: int


class AssetLedger:
    """
    Multi-token balance store with atomic execution and an audit trail.

    Balances can never go negative, except for SYSTEM_WALLET which is the
    counterparty of every issuance (system -> holder) and destruction
    (holder -> system). Circulating supply therefore excludes SYSTEM_WALLET.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own AssetLedger instance.

    Example:
        assets = AssetLedger("chain", test_mode=True)
        weth = assets.register_unit("WETH", "Wrapped Ether", 18)
        weth.mint("alice", 10 * 10**18)
        weth.transfer("alice", "bob", 10**18)
    """

    def __init__(self, name: str, verbose: bool = False, test_mode: bool = False):
        """
        Create an asset ledger.

        Args:
            name: Ledger identifier
            verbose: Print each applied or rejected batch of moves
            test_mode: Allow faucet minting through Token.mint()
        """
        self.name = name
        self.verbose = verbose
        self._test_mode = test_mode
        self.units: Dict[str, TokenUnit] = {}
        self.balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.transaction_log: List[Transfer] = []
        self._next_sequence: int = 0

    @property
    def test_mode(self) -> bool:
        return self._test_mode

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_unit(self, symbol: str, name: str, decimals: int = 18) -> 'Token':
        """
        Register a new token and return a handle to it.

        Raises:
            ValueError: If the symbol is blank or already registered
            UnsupportedPrecision: If decimals is outside [0, 18]
        """
        if not symbol or not symbol.strip():
            raise ValueError("Unit symbol cannot be empty")
        if symbol in self.units:
            raise ValueError(f"Unit {symbol} already registered")
        scale_factor(decimals)
        self.units[symbol] = TokenUnit(symbol=symbol, name=name, decimals=decimals)
        if self.verbose:
            print(f"📝 Registered: {symbol} ({name}) [{decimals} decimals]")
        return Token(self, symbol)

    def register_credit_unit(self, symbol: str, name: str, owner: str) -> 'CreditToken':
        """Register an 18-decimal credit token whose issuance is gated to `owner`."""
        self.register_unit(symbol, name, 18)
        return CreditToken(self, symbol, owner)

    def get_unit(self, symbol: str) -> TokenUnit:
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    # ========================================================================
    # READS
    # ========================================================================

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        self.get_unit(unit_symbol)
        return self.balances.get(wallet_id, {}).get(unit_symbol, 0)

    def get_allowance(self, unit_symbol: str, owner: str, spender: str) -> int:
        self.get_unit(unit_symbol)
        return self.allowances.get((unit_symbol, owner, spender), 0)

    def total_supply(self, unit_symbol: str) -> int:
        """Circulating supply: the sum of all non-system balances."""
        self.get_unit(unit_symbol)
        return sum(
            bals.get(unit_symbol, 0)
            for wallet, bals in sorted(self.balances.items())
            if wallet != SYSTEM_WALLET
        )

    def list_wallets(self) -> List[str]:
        return sorted(w for w in self.balances if w != SYSTEM_WALLET)

    # ========================================================================
    # MUTATION
    # ========================================================================

    def set_allowance(self, unit_symbol: str, owner: str, spender: str, amount: int) -> None:
        self.get_unit(unit_symbol)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"Allowance must be a non-negative int, got {amount!r}")
        self.allowances[(unit_symbol, owner, spender)] = amount

    def spend_allowance(self, unit_symbol: str, owner: str, spender: str, amount: int) -> None:
        current = self.get_allowance(unit_symbol, owner, spender)
        if current < amount:
            raise InsufficientAllowance(
                f"{spender} may spend {current} {unit_symbol} of {owner}, needs {amount}"
            )
        self.allowances[(unit_symbol, owner, spender)] = current - amount

    def execute(self, moves: Sequence[Move]) -> None:
        """
        Apply a batch of moves atomically.

        All moves are validated against the balances they would produce before
        any of them is applied; a rejected batch changes nothing.

        Raises:
            UnitNotRegistered: If a move names an unknown token
            InsufficientFunds: If a non-system wallet would go negative
        """
        valid, reason, error = self._validate(moves)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            raise error(reason)

        for move in moves:
            self.balances[move.source][move.unit_symbol] -= move.quantity
            self.balances[move.dest][move.unit_symbol] += move.quantity
            self.transaction_log.append(Transfer(self._next_sequence, move))
            self._next_sequence += 1
            if self.verbose:
                print(f"✓ APPLIED: {move!r} [{move.memo}]")

    def _validate(self, moves: Sequence[Move]):
        for move in moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}", UnitNotRegistered

        net: Dict[Tuple[str, str], int] = {}
        for move in moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt: it is the source of every issuance
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            current = self.balances.get(wallet, {}).get(unit_sym, 0)
            if current + delta < 0:
                return False, f"{wallet} {unit_sym}: balance {current} < {-delta}", InsufficientFunds

        return True, "", None

    # ========================================================================
    # SAVEPOINTS
    # ========================================================================

    def savepoint(self) -> _Savepoint:
        """Capture balances, allowances and log position for a later restore()."""
        return _Savepoint(
            balances={w: dict(bals) for w, bals in self.balances.items()},
            allowances=dict(self.allowances),
            log_length=len(self.transaction_log),
            next_sequence=self._next_sequence,
        )

    def restore(self, savepoint: _Savepoint) -> None:
        """Roll balances, allowances and the log back to a savepoint."""
        self.balances = defaultdict(lambda: defaultdict(int))
        for wallet, bals in savepoint.balances.items():
            self.balances[wallet] = defaultdict(int, bals)
        self.allowances = dict(savepoint.allowances)
        del self.transaction_log[savepoint.log_length:]
        self._next_sequence = savepoint.next_sequence


class Token:
    """
    Fungible-token handle over one unit of an AssetLedger.

    Every method takes the acting wallet explicitly. transfer and
    transfer_from return True on success and raise on failure.
    """

    def __init__(self, ledger: AssetLedger, symbol: str):
        ledger.get_unit(symbol)
        self.ledger = ledger
        self._symbol = symbol

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def name(self) -> str:
        return self.ledger.get_unit(self._symbol).name

    def decimals(self) -> int:
        return self.ledger.get_unit(self._symbol).decimals

    def balance_of(self, owner: str) -> int:
        return self.ledger.get_balance(owner, self._symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self._symbol)

    def allowance(self, owner: str, spender: str) -> int:
        return self.ledger.get_allowance(self._symbol, owner, spender)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self.ledger.set_allowance(self._symbol, owner, spender, amount)
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self.ledger.execute([Move(amount, self._symbol, sender, to, "transfer")])
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        require_amount(amount)
        # Allowance and balance change together or not at all
        allowance_before = self.allowance(owner, spender)
        self.ledger.spend_allowance(self._symbol, owner, spender, amount)
        try:
            self.ledger.execute([Move(amount, self._symbol, owner, to, f"transfer_from:{spender}")])
        except InsufficientFunds:
            self.ledger.set_allowance(self._symbol, owner, spender, allowance_before)
            raise
        return True

    def mint(self, to: str, amount: int) -> None:
        """
        Faucet: create `amount` out of thin air for `to`.

        WARNING: Only available in test mode. Production supply changes go
        through CreditToken.issue().

        Raises:
            Unauthorized: If the ledger was not created with test_mode=True
        """
        if not self.ledger.test_mode:
            raise Unauthorized(
                "mint() is disabled in production mode. "
                "Set test_mode=True when creating AssetLedger for testing."
            )
        self.ledger.execute([Move(amount, self._symbol, SYSTEM_WALLET, to, "faucet")])

    def __repr__(self) -> str:
        return f"Token({self._symbol}, ledger={self.ledger.name})"


class CreditToken(Token):
    """
    The USD-pegged credit token.

    Issuance and destruction are restricted to the owner, which is the engine
    once ownership has been handed over. Destruction acts on tokens the owner
    already holds.
    """

    def __init__(self, ledger: AssetLedger, symbol: str, owner: str):
        super().__init__(ledger, symbol)
        if not owner or not owner.strip():
            raise ValueError("CreditToken owner cannot be empty")
        self.owner = owner

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller} is not the owner of {self.symbol}")

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        if not new_owner or not new_owner.strip():
            raise ValueError("New owner cannot be empty")
        self.owner = new_owner

    def issue(self, caller: str, to: str, amount: int) -> bool:
        self._only_owner(caller)
        if not to or not to.strip():
            raise ValueError("Cannot issue to an empty wallet")
        self.ledger.execute([Move(amount, self.symbol, SYSTEM_WALLET, to, "issue")])
        return True

    def destroy(self, caller: str, amount: int) -> None:
        self._only_owner(caller)
        require_amount(amount)
        balance = self.balance_of(caller)
        if balance < amount:
            raise InsufficientFunds(f"Burn amount {amount} exceeds balance {balance}")
        self.ledger.execute([Move(amount, self.symbol, caller, SYSTEM_WALLET, "destroy")])

    def mint(self, to: str, amount: int) -> None:
        raise Unauthorized(f"{self.symbol} supply changes only through issue()")

    def __repr__(self) -> str:
        return f"CreditToken({self.symbol}, owner={self.owner})"


def _unique_environments(collaborators: Sequence[object]) -> List[object]:
    """Distinct transactional ledgers behind a set of token handles, in first-seen order."""
    seen: Dict[int, object] = {}
    for collaborator in collaborators:
        env: Optional[object] = getattr(collaborator, "ledger", None)
        if env is None:
            env = collaborator
        if isinstance(env, Transactional):
            seen.setdefault(id(env), env)
    return list(seen.values())
