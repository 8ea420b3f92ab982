"""
adapter.py - Transfer capability used by the sale pool

The pool never touches ledger balances directly. It asks the adapter to move
N units of asset A from wallet X to wallet Y and gets back either the executed
Transaction or a TransferFailed carrying one TransferFailure code. Every ledger
access goes through a single re-entrant lock, so a balance check followed by a
transfer inside exclusive() cannot interleave with another caller's transfer.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from itertools import count
from typing import Iterator, Optional, Sequence
import threading

from .core import (
    Move, Transaction, TransactionOrigin, OriginType, ExecuteResult,
    LedgerError, InsufficientFunds, InsufficientAllowance,
    build_transaction, to_decimal,
)
from .ledger import Ledger


class TransferFailure(Enum):
    """Why a transfer did not apply."""
    INSUFFICIENT_BALANCE = "insufficient_balance"
    UNAUTHORIZED = "unauthorized"
    REJECTED = "rejected"


class TransferFailed(LedgerError):
    """Raised when the ledger refuses a transfer. No balance has changed."""

    def __init__(self, code: TransferFailure, reason: str):
        super().__init__(f"{code.value}: {reason}")
        self.code = code
        self.reason = reason


@dataclass(frozen=True, slots=True)
class Transfer:
    """
    One leg of a settlement.

    Attributes:
        asset: Unit symbol to move
        source: Wallet debited
        dest: Wallet credited
        amount: Positive quantity, already at the asset's precision
        spender: Wallet spending source's allowance, if not source itself
    """
    asset: str
    source: str
    dest: str
    amount: Decimal
    spender: Optional[str] = None


def _classify(error: LedgerError) -> TransferFailure:
    if isinstance(error, InsufficientFunds):
        return TransferFailure.INSUFFICIENT_BALANCE
    if isinstance(error, InsufficientAllowance):
        return TransferFailure.UNAUTHORIZED
    return TransferFailure.REJECTED


class LedgerAdapter:
    """
    Serialized, exception-raising front end over a Ledger.

    Example:
        adapter = LedgerAdapter(ledger)
        tx = adapter.transfer("USDT", "treasury", "owner", Decimal("500"))
    """

    def __init__(self, ledger: Ledger, name: str = "pool"):
        self.ledger = ledger
        self.name = name
        self._lock = threading.RLock()
        self._ids = count(1)

    @property
    def verbose(self) -> bool:
        return self.ledger.verbose

    @contextmanager
    def exclusive(self) -> Iterator[Ledger]:
        """Hold the ledger lock across several reads and transfers."""
        with self._lock:
            yield self.ledger

    def balance_of(self, wallet_id: str, asset: str) -> Decimal:
        with self._lock:
            return self.ledger.get_balance(wallet_id, asset)

    def transfer(
        self,
        asset: str,
        source: str,
        dest: str,
        amount: Decimal,
        spender: Optional[str] = None,
        origin: Optional[TransactionOrigin] = None,
    ) -> Transaction:
        """
        Move amount of asset from source to dest.

        Raises:
            TransferFailed: insufficient balance, missing allowance, or any
                other ledger rejection
        """
        return self.settle([Transfer(asset, source, dest, to_decimal(amount), spender)], origin)

    def settle(
        self,
        transfers: Sequence[Transfer],
        origin: Optional[TransactionOrigin] = None,
    ) -> Transaction:
        """
        Apply several transfers as one atomic ledger transaction.

        Either every transfer applies or none does.

        Raises:
            TransferFailed: If the ledger rejects any leg, or a leg is malformed
                (non-positive amount, source equal to dest)
            ValueError: If transfers is empty
        """
        if not transfers:
            raise ValueError("settle() needs at least one transfer")
        if origin is None:
            origin = TransactionOrigin(OriginType.SYSTEM, self.name)

        with self._lock:
            op_id = next(self._ids)
            try:
                moves = [
                    Move(
                        quantity=t.amount,
                        unit_symbol=t.asset,
                        source=t.source,
                        dest=t.dest,
                        contract_id=f"{self.name}:{op_id}:{i}",
                        spender=t.spender,
                    )
                    for i, t in enumerate(transfers)
                ]
            except ValueError as e:
                raise TransferFailed(TransferFailure.REJECTED, str(e)) from None
            pending = build_transaction(self.ledger, moves, origin)

            error = self.ledger.validate(pending)
            if error is not None:
                raise TransferFailed(_classify(error), str(error))

            result = self.ledger.execute(pending)
            if result != ExecuteResult.APPLIED:
                raise TransferFailed(TransferFailure.REJECTED, f"ledger returned {result.value}")
            return self.ledger.transaction_log[-1]
