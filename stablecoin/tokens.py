"""
tokens.py - ERC20-style token views over a TokenLedger

LedgerToken exposes the transfer interface the engine consumes
(CollateralAsset): balance_of, transfer, transfer_from, approve, allowance.
Failures are reported by returning False and never change state.

MintableToken adds an unrestricted mint, standing in for real-world collateral
such as wrapped ether in tests and simulations.

DebtToken is the synthetic stablecoin: mint and burn are restricted to its
owner, which is the engine once ownership has been handed over.
"""

from __future__ import annotations
from typing import Optional

from .core import (
    Move, Unit, ExecuteResult,
    SYSTEM_WALLET, UNIT_TYPE_COLLATERAL, UNIT_TYPE_DEBT, PRECISION_DECIMALS,
    NotOwner, BurnAmountExceedsBalance,
)
from .ledger import TokenLedger


class LedgerToken:
    """
    A single token unit held in a TokenLedger.

    The token's symbol doubles as its asset id in the engine's registry.
    """

    def __init__(self, ledger: TokenLedger, symbol: str):
        self.ledger = ledger
        self._unit = ledger.get_unit(symbol)

    @property
    def symbol(self) -> str:
        return self._unit.symbol

    @property
    def name(self) -> str:
        return self._unit.name

    @property
    def decimals(self) -> int:
        return self._unit.decimals

    def balance_of(self, account: str) -> int:
        return self.ledger.get_balance(account, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self.symbol)

    def allowance(self, owner: str, spender: str) -> int:
        return self.ledger.allowance(owner, spender, self.symbol)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        self.ledger.approve(owner, spender, self.symbol, amount)
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``to``."""
        return self._move(sender, to, amount, "transfer")

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """
        Move ``amount`` from ``owner`` to ``to`` on behalf of ``spender``.

        Spends ``spender``'s allowance unless the spender is the owner.
        """
        if spender != owner and self.allowance(owner, spender) < amount:
            return False
        if not self._move(owner, to, amount, "transfer_from"):
            return False
        if spender != owner:
            self.ledger.spend_allowance(owner, spender, self.symbol, amount)
        return True

    def _move(self, source: str, dest: str, amount: int, memo: str) -> bool:
        if not source or not dest or amount < 0:
            return False
        # Zero and self transfers are valid no-ops when the balance covers them
        if amount == 0 or source == dest:
            return self.balance_of(source) >= amount
        result = self.ledger.execute(
            [Move(amount, self.symbol, source, dest, memo)],
            origin=f"{self.symbol}.{memo}",
        )
        return result == ExecuteResult.APPLIED

    def _issue(self, to: str, amount: int) -> bool:
        if not to or amount <= 0 or to == SYSTEM_WALLET:
            return False
        result = self.ledger.execute(
            [Move(amount, self.symbol, SYSTEM_WALLET, to, "mint")],
            origin=f"{self.symbol}.mint",
        )
        return result == ExecuteResult.APPLIED

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol!r}, supply={self.total_supply()})"


class MintableToken(LedgerToken):
    """Collateral token anyone can mint; used to fund accounts."""

    def mint(self, to: str, amount: int) -> bool:
        return self._issue(to, amount)


class DebtToken(LedgerToken):
    """
    Owner-gated synthetic debt token.

    The deployer owns the token until ownership is transferred to the engine;
    after that only the engine can mint and burn.
    """

    def __init__(self, ledger: TokenLedger, symbol: str, owner: str):
        super().__init__(ledger, symbol)
        self.owner = owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        if not new_owner:
            raise ValueError("New owner cannot be empty")
        self.owner = new_owner

    def mint(self, caller: str, to: str, amount: int) -> bool:
        """Issue ``amount`` to ``to``; returns False for an empty recipient or non-positive amount."""
        self._only_owner(caller)
        return self._issue(to, amount)

    def burn(self, caller: str, amount: int) -> None:
        """
        Destroy ``amount`` from the caller's own balance.

        Raises:
            NotOwner: If the caller does not own the token
            BurnAmountExceedsBalance: If the caller holds less than ``amount``
        """
        self._only_owner(caller)
        if amount <= 0:
            raise ValueError(f"Burn amount must be positive, got {amount}")
        balance = self.balance_of(caller)
        if balance < amount:
            raise BurnAmountExceedsBalance(
                f"Cannot burn {amount} {self.symbol}, balance is {balance}"
            )
        self.ledger.execute(
            [Move(amount, self.symbol, caller, SYSTEM_WALLET, "burn")],
            origin=f"{self.symbol}.burn",
        )

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")


# ============================================================================
# FACTORIES
# ============================================================================

def create_collateral_token(
    ledger: TokenLedger,
    symbol: str,
    name: str,
    decimals: int = PRECISION_DECIMALS,
) -> MintableToken:
    """
    Register a collateral unit in ``ledger`` and return a mintable view of it.

    Example:
        chain = TokenLedger()
        weth = create_collateral_token(chain, "WETH", "Wrapped Ether")
        weth.mint("alice", to_wei(10))
    """
    ledger.register_unit(Unit(symbol, name, decimals, UNIT_TYPE_COLLATERAL))
    return MintableToken(ledger, symbol)


def create_debt_token(
    ledger: TokenLedger,
    owner: str,
    symbol: str = "DSC",
    name: Optional[str] = None,
) -> DebtToken:
    """Register the debt unit in ``ledger`` and return a DebtToken owned by ``owner``."""
    ledger.register_unit(Unit(symbol, name or "Decentralized Stable Coin", PRECISION_DECIMALS, UNIT_TYPE_DEBT))
    return DebtToken(ledger, symbol, owner)
