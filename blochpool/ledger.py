"""
ledger.py - Stateful Double-Entry Token Ledger

The Ledger class holds wallet balances, allowances and the logical clock that
the sale pool transfers value through. It is the only module that mutates
balances, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves succeed or all fail)
    - Enforces balance floors and spender allowances
    - Tracks logical time (advance_time only moves forward)
    - Always validates and always logs
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from .core import (
    # Types
    Move, Transaction, Unit, PendingTransaction,
    ExecuteResult, BalanceMap, AllowanceKey,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, InsufficientFunds, InsufficientAllowance,
    UnitNotRegistered, WalletNotRegistered, TimestampViolation, PrecisionViolation,
    AmountOutOfRange, to_decimal,
)


class Ledger:
    """
    Double-entry token ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Thread Safety:
        Not thread-safe. Concurrent callers go through LedgerAdapter, which
        serializes every ledger access.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(stablecoin("USDT", "Tether USD"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        tx = build_transaction(ledger, [
            Move(Decimal("100"), "USDT", "alice", "bob", "payment_001")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print registrations and transaction results (default: True)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.allowances: Dict[AllowanceKey, Decimal] = {}
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0

        # Auto-register the system wallet (used for issuance/redemption)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_allowance(self, owner: str, spender: str, unit_symbol: str) -> Decimal:
        """Remaining amount of owner's unit that spender may move."""
        return self.allowances.get((owner, spender, unit_symbol), Decimal("0"))

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Total supply of a unit across all wallets, system wallet included.

        Wallets are summed in sorted order for deterministic accumulation.
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            (self.balances[w].get(unit_symbol, Decimal("0")) for w in sorted(self.registered_wallets)),
            Decimal("0"),
        )

    def verify_double_entry(self, expected_supplies: Optional[Dict[str, Decimal]] = None) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Without expected_supplies, returns the current total supply per unit.
        With expected_supplies, also reports every unit whose total differs.

        Returns:
            Dict with 'valid', 'supplies' and 'discrepancies' keys.
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply
            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if current_supply != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': current_supply,
                        'difference': current_supply - expected,
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit (asset type) in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}, {unit.decimal_places} dp]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: Bypasses double-entry accounting; only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        self.balances[wallet_id][unit_symbol] = to_decimal(quantity, "quantity")

    def approve(self, owner: str, spender: str, unit_symbol: str, amount: Decimal) -> None:
        """
        Let spender move up to amount of owner's unit.

        Replaces any previous allowance for the same (owner, spender, unit).
        An amount of zero revokes the allowance.

        Raises:
            WalletNotRegistered: If owner or spender is not registered
            UnitNotRegistered: If unit is not registered
            ValueError: If amount is negative
        """
        for wallet_id in (owner, spender):
            if wallet_id not in self.registered_wallets:
                raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        amount = to_decimal(amount)
        if amount < 0:
            raise ValueError(f"Allowance must be non-negative, got {amount}")
        key = (owner, spender, unit_symbol)
        if amount == 0:
            self.allowances.pop(key, None)
        else:
            self.allowances[key] = self.units[unit_symbol].round(amount)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}"""
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def validate(self, pending: PendingTransaction) -> Optional[LedgerError]:
        """
        Check a pending transaction against every ledger constraint.

        Checks performed:
        1. Timestamp (transaction must not be from the future)
        2. Unit and wallet registration
        3. Spender allowances, aggregated per (owner, spender, unit)
        4. Balance floors, aggregated per (wallet, unit)

        Returns:
            None if the transaction would apply, otherwise the LedgerError
            describing the first violation found. Nothing is raised.
        """
        if pending.timestamp > self._current_time:
            return TimestampViolation(
                f"future timestamp: {pending.timestamp} > {self._current_time}"
            )

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return UnitNotRegistered(f"unit not registered: {move.unit_symbol}")
            for wallet_id in (move.source, move.dest):
                if wallet_id not in self.registered_wallets:
                    return WalletNotRegistered(f"wallet not registered: {wallet_id}")
            if move.delegated and move.spender not in self.registered_wallets:
                return WalletNotRegistered(f"wallet not registered: {move.spender}")
            unit = self.units[move.unit_symbol]
            try:
                exact = unit.round(move.quantity) == move.quantity
            except AmountOutOfRange as e:
                return PrecisionViolation(str(e))
            if not exact:
                return PrecisionViolation(
                    f"{move.quantity} {move.unit_symbol} exceeds {unit.decimal_places} decimal places"
                )

        spent: Dict[AllowanceKey, Decimal] = {}
        for move in pending.moves:
            if move.delegated:
                key = (move.source, move.spender, move.unit_symbol)
                spent[key] = spent.get(key, Decimal("0")) + move.quantity
        for (owner, spender, unit_sym), amount in spent.items():
            allowed = self.get_allowance(owner, spender, unit_sym)
            if amount > allowed:
                return InsufficientAllowance(
                    f"{spender} may move {allowed} {unit_sym} of {owner}, needs {amount}"
                )

        net: Dict[tuple, Decimal] = {}
        for move in pending.moves:
            unit = self.units[move.unit_symbol]
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = unit.round(net.get(key_src, Decimal("0")) - move.quantity)
            net[key_dst] = unit.round(net.get(key_dst, Decimal("0")) + move.quantity)

        # SYSTEM_WALLET is exempt: it can hold any balance
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_sym]
            proposed = unit.round(self.balances[wallet].get(unit_sym, Decimal("0")) + delta)
            if proposed < unit.min_balance:
                return InsufficientFunds(
                    f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
                )

        return None

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves succeed together or all fail together. Execution is
        idempotent: a pending transaction with the same intent_id is not
        applied twice.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        error = self.validate(pending)
        if error is not None:
            if self.verbose:
                print(f"REJECTED: {error}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=pending.moves,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        self._execute_moves(tx.moves)

        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            print(f"APPLIED:\n{tx!r}")
        return ExecuteResult.APPLIED

    def _execute_moves(self, moves) -> None:
        """Apply moves to balances and consume spender allowances."""
        for move in moves:
            unit = self.units[move.unit_symbol]
            self.balances[move.source][move.unit_symbol] = unit.round(
                self.balances[move.source][move.unit_symbol] - move.quantity
            )
            self.balances[move.dest][move.unit_symbol] = unit.round(
                self.balances[move.dest][move.unit_symbol] + move.quantity
            )
            if move.delegated:
                key = (move.source, move.spender, move.unit_symbol)
                remaining = self.allowances[key] - move.quantity
                if remaining > 0:
                    self.allowances[key] = remaining
                else:
                    del self.allowances[key]
