"""
ledger.py - Token Custody Ledger

The TokenLedger is the reference state machine behind every bundled token:
it holds balances and allowances for any number of token units and applies
transfers atomically.

Key responsibilities:
    - Executes batches of moves atomically (all moves succeed or none do)
    - Keeps an append-only audit log of executed transactions
    - Issues and destroys tokens through SYSTEM_WALLET, so that for every unit
      the balances across all wallets sum to zero
    - Captures and restores complete state (snapshot/restore) so that a caller
      can revert an enclosing operation
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Any
import logging

from .core import (
    Move, Transaction, Unit, ExecuteResult,
    Positions, SYSTEM_WALLET,
    UnitNotRegistered,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Opaque copy of a TokenLedger's mutable state, produced by snapshot()."""
    balances: Dict[str, Dict[str, int]]
    allowances: Dict[Tuple[str, str, str], int]
    log_length: int
    next_sequence: int


class TokenLedger:
    """
    Multi-token balance ledger with atomic execution and an audit trail.

    Wallets are implicit: any non-empty string is an address and starts with
    a zero balance. Units must be registered before they can be moved.

    Thread Safety:
        Not thread-safe. A TokenLedger is driven by one writer at a time.

    Example:
        chain = TokenLedger("chain")
        chain.register_unit(Unit("WETH", "Wrapped Ether"))
        chain.execute([Move(10 * 10**18, "WETH", SYSTEM_WALLET, "alice", "mint")])
        chain.get_balance("alice", "WETH")   # 10 * 10**18
    """

    def __init__(self, name: str = "chain"):
        self.name = name
        self.units: Dict[str, Unit] = {}
        self.balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.transaction_log: List[Transaction] = []
        self._next_sequence: int = 0

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Balance of a unit in a wallet (0 if the wallet never held it).

        Raises:
            UnitNotRegistered: If the unit is not registered
        """
        self._require_unit(unit_symbol)
        wallet = self.balances.get(wallet_id)
        if wallet is None:
            return 0
        return wallet.get(unit_symbol, 0)

    def get_positions(self, unit_symbol: str) -> Positions:
        """All non-zero balances of a unit, SYSTEM_WALLET included."""
        self._require_unit(unit_symbol)
        return {
            wallet: bals[unit_symbol]
            for wallet, bals in sorted(self.balances.items())
            if bals.get(unit_symbol, 0) != 0
        }

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        self._require_unit(symbol)
        return self.units[symbol]

    def total_supply(self, unit_symbol: str) -> int:
        """Tokens in circulation: everything issued by SYSTEM_WALLET and not yet destroyed."""
        return -self.get_balance(SYSTEM_WALLET, unit_symbol)

    def allowance(self, owner: str, spender: str, unit_symbol: str) -> int:
        self._require_unit(unit_symbol)
        return self.allowances.get((owner, spender, unit_symbol), 0)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify that no unit was created or destroyed outside SYSTEM_WALLET.

        Issuance debits SYSTEM_WALLET, so for every unit the sum of all
        balances must be exactly zero.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every unit sums to zero
            - 'supplies': Dict[str, int] - circulating supply per unit
            - 'discrepancies': List[Dict] - units whose balances do not sum to zero
        """
        supplies = {}
        discrepancies = []
        for unit_symbol in sorted(self.units):
            net = sum(
                bals.get(unit_symbol, 0)
                for _, bals in sorted(self.balances.items())
            )
            supplies[unit_symbol] = self.total_supply(unit_symbol)
            if net != 0:
                discrepancies.append({'unit': unit_symbol, 'net': net})
        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # REGISTRATION AND ALLOWANCES (Mutating)
    # ========================================================================

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new token unit.

        Raises:
            ValueError: If the symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        logger.debug("Registered unit %s (%s) [%s]", unit.symbol, unit.name, unit.unit_type)

    def approve(self, owner: str, spender: str, unit_symbol: str, amount: int) -> None:
        """Set the amount ``spender`` may move out of ``owner``'s wallet."""
        self._require_unit(unit_symbol)
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative, got {amount}")
        self.allowances[(owner, spender, unit_symbol)] = amount

    def spend_allowance(self, owner: str, spender: str, unit_symbol: str, amount: int) -> bool:
        """Decrease an allowance; returns False (and changes nothing) if it is too small."""
        current = self.allowance(owner, spender, unit_symbol)
        if current < amount:
            return False
        self.allowances[(owner, spender, unit_symbol)] = current - amount
        return True

    # ========================================================================
    # EXECUTION (Mutating)
    # ========================================================================

    def execute(self, moves: Sequence[Move], origin: str = "user") -> ExecuteResult:
        """
        Apply a batch of moves atomically.

        Every move is validated against the post-batch balances before any
        balance changes. No wallet other than SYSTEM_WALLET may end negative.

        Args:
            moves: Moves to apply together
            origin: Free-form description of the requester, kept in the audit log

        Returns:
            ExecuteResult.APPLIED if every move was applied
            ExecuteResult.REJECTED if validation failed (nothing applied)
        """
        if not moves:
            return ExecuteResult.APPLIED

        valid, reason = self._validate(moves)
        if not valid:
            logger.debug("REJECTED %s: %s", origin, reason)
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=tuple(moves),
            origin=origin,
            sequence_number=sequence,
            exec_id=f"exec:{self.name}:{sequence:012d}",
        )
        for move in tx.moves:
            self.balances[move.source][move.unit_symbol] -= move.quantity
            self.balances[move.dest][move.unit_symbol] += move.quantity

        self.transaction_log.append(tx)
        logger.debug("APPLIED %r", tx)
        return ExecuteResult.APPLIED

    def _validate(self, moves: Sequence[Move]) -> Tuple[bool, str]:
        """
        Validate a batch against registration and balance constraints.

        Returns:
            Tuple of (success, reason); reason is empty on success
        """
        for move in moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"

        net: Dict[Tuple[str, str], int] = {}
        for move in moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt: it is the issuance counterparty
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.get_balance(wallet, unit_sym) + delta
            if proposed < 0:
                return False, f"{wallet} {unit_sym}: {proposed} < 0"

        return True, ""

    def _require_unit(self, unit_symbol: str) -> None:
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")

    # ========================================================================
    # STATE CAPTURE
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Capture balances, allowances and audit log position."""
        return LedgerSnapshot(
            balances={w: dict(bals) for w, bals in self.balances.items()},
            allowances=dict(self.allowances),
            log_length=len(self.transaction_log),
            next_sequence=self._next_sequence,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """
        Reinstate the state captured by snapshot().

        Transactions executed after the snapshot are dropped from the audit
        log, as if they never happened. Unit registrations are not affected.
        """
        self.balances = defaultdict(lambda: defaultdict(int))
        for wallet, bals in snapshot.balances.items():
            self.balances[wallet] = defaultdict(int, bals)
        self.allowances = dict(snapshot.allowances)
        del self.transaction_log[snapshot.log_length:]
        self._next_sequence = snapshot.next_sequence

    def __repr__(self) -> str:
        return (
            f"TokenLedger({self.name!r}, {len(self.units)} units, "
            f"{len(self.transaction_log)} transactions)"
        )
