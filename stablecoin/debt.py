"""
debt.py - Mint/Burn Controller

Owns every account's recorded debt and drives the external debt-token issuer.

mint():   record the debt, let the caller verify solvency, then ask the issuer
          to mint. A failed check or a refused mint undoes the debt increase.
burn():   reduce the debt, pull the tokens from the payer into custody, then
          destroy them from custody. There is no pre-emptive balance check:
          the payer's token balance is enforced by the issuer's transfer, and
          the recorded debt can never go below zero.

Both are built from table steps (increase_debt, reduce_debt) and token steps
(issue, settle), which the engine also composes directly when several
table changes must be checked together before any token moves.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, Optional

from .core import (
    DebtTokenIssuer, SolvencyCheck,
    DebtUnderflow, MintFailed, TransferFailed,
    require_more_than_zero,
)


logger = logging.getLogger(__name__)


class MintBurnController:
    """
    Debt balances plus the issuer they are backed by.

    Args:
        debt_token: The owner-gated debt token; the controller mints and
                    burns as ``custody``, which must own the token
        custody: Address of the engine
    """

    def __init__(self, debt_token: DebtTokenIssuer, custody: str):
        self.debt_token = debt_token
        self.custody = custody
        self._debt: Dict[str, int] = {}

    def debt_of(self, account: str) -> int:
        return self._debt.get(account, 0)

    def total_debt(self) -> int:
        return sum(self._debt.values())

    # ------------------------------------------------------------------
    # Table steps
    # ------------------------------------------------------------------

    def increase_debt(self, account: str, amount: int) -> None:
        require_more_than_zero(amount)
        self._set(account, self.debt_of(account) + amount)

    def reduce_debt(self, account: str, amount: int) -> None:
        """
        Raises:
            InvalidAmount: If amount is not a positive int
            DebtUnderflow: If account owes less than amount
        """
        require_more_than_zero(amount)
        previous = self.debt_of(account)
        if amount > previous:
            raise DebtUnderflow(f"{account} owes {previous}, cannot burn {amount}")
        self._set(account, previous - amount)

    # ------------------------------------------------------------------
    # Token steps
    # ------------------------------------------------------------------

    def issue(self, account: str, amount: int) -> None:
        if not self.debt_token.mint(self.custody, account, amount):
            raise MintFailed(f"Issuer refused to mint {amount} to {account}")

    def settle(self, payer: str, amount: int, release: Optional[Callable[[], None]] = None) -> None:
        """
        Pull ``amount`` debt tokens from ``payer`` and destroy them.

        Args:
            release: Run after the pull and before the burn. If it raises,
                     the pulled tokens are handed back to ``payer`` and
                     nothing is burned.

        Raises:
            TransferFailed: If the tokens cannot be pulled from payer
        """
        if not self.debt_token.transfer_from(self.custody, payer, self.custody, amount):
            raise TransferFailed(f"Could not pull {amount} debt tokens from {payer}")
        if release is not None:
            try:
                release()
            except Exception:
                self.debt_token.transfer(self.custody, payer, amount)
                raise
        self.debt_token.burn(self.custody, amount)

    # ------------------------------------------------------------------
    # Composed operations
    # ------------------------------------------------------------------

    def mint(self, account: str, amount: int, solvency_check: Optional[SolvencyCheck] = None) -> None:
        """
        Increase ``account``'s debt by ``amount`` and issue the tokens to it.

        Args:
            account: Borrower receiving the tokens
            amount: Debt to add
            solvency_check: Called with ``account`` after the debt is recorded
                            and before the issuer is invoked; raising aborts
                            the mint

        Raises:
            InvalidAmount: If amount is not a positive int
            MintFailed: If the issuer reports failure (debt unchanged)
            Whatever ``solvency_check`` raises (debt unchanged)
        """
        previous = self.debt_of(account)
        self.increase_debt(account, amount)
        try:
            if solvency_check is not None:
                solvency_check(account)
            self.issue(account, amount)
        except Exception:
            self._set(account, previous)
            raise

        logger.debug("mint %s %d", account, amount)

    def burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        """
        Repay ``amount`` of ``on_behalf_of``'s debt with tokens taken from ``payer``.

        Raises:
            InvalidAmount: If amount is not a positive int
            DebtUnderflow: If on_behalf_of owes less than amount
            TransferFailed: If the tokens cannot be pulled from payer (debt unchanged)
        """
        previous = self.debt_of(on_behalf_of)
        self.reduce_debt(on_behalf_of, amount)
        try:
            self.settle(payer, amount)
        except Exception:
            self._set(on_behalf_of, previous)
            raise

        logger.debug("burn %d for %s paid by %s", amount, on_behalf_of, payer)

    def _set(self, account: str, amount: int) -> None:
        if amount:
            self._debt[account] = amount
        else:
            self._debt.pop(account, None)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._debt)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._debt = dict(snapshot)
