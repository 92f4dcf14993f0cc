"""
collateral.py - Collateral Ledger

Tracks per-account, per-asset collateral held in the engine's custody, and
the ordered registry of approved assets.

Balances are stored under composite (account, asset) keys. Table changes
(credit, debit) and token movements (collect, release) are separate steps,
so a caller can finish every check before any token leaves or enters
custody. deposit() and redeem() compose them and are all-or-nothing on
their own: if a check or the transfer fails, the balance change and the
emitted event are undone.

redeem() takes an optional solvency check rather than choosing whose
health factor must hold, which lets liquidation debit one account on behalf
of another.
"""

from __future__ import annotations
import logging
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .core import (
    CollateralAsset, CollateralDeposited, CollateralRedeemed, SolvencyCheck,
    InsufficientCollateral, TransferFailed,
    require_more_than_zero, require_allowed_asset,
)


logger = logging.getLogger(__name__)

CollateralEvent = Union[CollateralDeposited, CollateralRedeemed]


class CollateralLedger:
    """
    Collateral balances plus the approved-asset registry.

    Args:
        tokens: Approved assets keyed by asset id, in registry order
        custody: Address that holds deposited collateral (the engine)
    """

    def __init__(self, tokens: Mapping[str, CollateralAsset], custody: str):
        self._tokens: Dict[str, CollateralAsset] = dict(tokens)
        self.custody = custody
        self._balances: Dict[Tuple[str, str], int] = {}
        self.events: List[CollateralEvent] = []

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def assets(self) -> Tuple[str, ...]:
        return tuple(self._tokens)

    def token(self, asset: str) -> CollateralAsset:
        require_allowed_asset(self._tokens, asset)
        return self._tokens[asset]

    def is_registered(self, asset: str) -> bool:
        return asset in self._tokens

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def balance_of(self, account: str, asset: str) -> int:
        return self._balances.get((account, asset), 0)

    def collateral_of(self, account: str) -> Dict[str, int]:
        """Every registered asset's balance for ``account``, in registry order."""
        return {asset: self.balance_of(account, asset) for asset in self._tokens}

    def total_deposited(self, asset: str) -> int:
        """Sum of every account's balance of ``asset``."""
        return sum(amount for (_, a), amount in self._balances.items() if a == asset)

    # ------------------------------------------------------------------
    # Mutations
    #
    # credit()/debit() change the table only; collect()/release() move the
    # tokens only. deposit() and redeem() pair them with a local undo.
    # ------------------------------------------------------------------

    def credit(self, account: str, asset: str, amount: int) -> None:
        """Record a deposit of ``amount`` of ``asset`` for ``account`` without moving tokens."""
        require_more_than_zero(amount)
        self.token(asset)
        self._set(account, asset, self.balance_of(account, asset) + amount)
        self.events.append(CollateralDeposited(account, asset, amount))

    def debit(self, from_account: str, to_account: str, asset: str, amount: int) -> None:
        """
        Record a withdrawal of ``amount`` of ``asset`` without moving tokens.

        Raises:
            InvalidAmount: If amount is not a positive int
            UnknownAsset: If asset is not registered
            InsufficientCollateral: If from_account holds less than amount
        """
        require_more_than_zero(amount)
        self.token(asset)
        previous = self.balance_of(from_account, asset)
        if previous < amount:
            raise InsufficientCollateral(
                f"{from_account} has {previous} {asset}, cannot redeem {amount}"
            )
        self._set(from_account, asset, previous - amount)
        self.events.append(CollateralRedeemed(from_account, to_account, asset, amount))

    def collect(self, account: str, asset: str, amount: int) -> None:
        """Pull ``amount`` of ``asset`` from ``account`` into custody."""
        if not self.token(asset).transfer_from(self.custody, account, self.custody, amount):
            raise TransferFailed(f"Transfer of {amount} {asset} from {account} into custody failed")

    def release(self, to_account: str, asset: str, amount: int) -> None:
        """Send ``amount`` of ``asset`` out of custody to ``to_account``."""
        if not self.token(asset).transfer(self.custody, to_account, amount):
            raise TransferFailed(f"Transfer of {amount} {asset} to {to_account} failed")

    def deposit(self, account: str, asset: str, amount: int) -> None:
        """
        Credit ``amount`` of ``asset`` to ``account`` and pull it into custody.

        Raises:
            InvalidAmount: If amount is not a positive int
            UnknownAsset: If asset is not registered
            TransferFailed: If the transfer into custody fails (balance unchanged)
        """
        previous = self.balance_of(account, asset)
        self.credit(account, asset, amount)
        try:
            self.collect(account, asset, amount)
        except Exception:
            self._set(account, asset, previous)
            self.events.pop()
            raise

        logger.debug("deposit %s %d %s", account, amount, asset)

    def redeem(
        self,
        from_account: str,
        to_account: str,
        asset: str,
        amount: int,
        solvency_check: Optional[SolvencyCheck] = None,
    ) -> None:
        """
        Debit ``amount`` of ``asset`` from ``from_account`` and send it to ``to_account``.

        Args:
            solvency_check: Called with ``from_account`` after the debit and
                            before any tokens leave custody; raising aborts
                            the redeem

        Raises:
            InvalidAmount: If amount is not a positive int
            UnknownAsset: If asset is not registered
            InsufficientCollateral: If from_account holds less than amount
            TransferFailed: If the transfer out of custody fails (balance unchanged)
            Whatever ``solvency_check`` raises (balance unchanged, nothing sent)
        """
        previous = self.balance_of(from_account, asset)
        self.debit(from_account, to_account, asset, amount)
        try:
            if solvency_check is not None:
                solvency_check(from_account)
            self.release(to_account, asset, amount)
        except Exception:
            self._set(from_account, asset, previous)
            self.events.pop()
            raise

        logger.debug("redeem %s -> %s %d %s", from_account, to_account, amount, asset)

    def _set(self, account: str, asset: str, amount: int) -> None:
        if amount:
            self._balances[(account, asset)] = amount
        else:
            self._balances.pop((account, asset), None)

    # ------------------------------------------------------------------
    # State capture
    # ------------------------------------------------------------------

    def snapshot(self) -> Tuple[Dict[Tuple[str, str], int], int]:
        return dict(self._balances), len(self.events)

    def restore(self, snapshot: Tuple[Dict[Tuple[str, str], int], int]) -> None:
        balances, event_count = snapshot
        self._balances = dict(balances)
        del self.events[event_count:]
