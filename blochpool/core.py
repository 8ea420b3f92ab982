"""
Core types and pure functions for the sale ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError and ledger-level error types
4. Unit factories: token() for fungible assets with a fixed decimal precision

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext, DefaultContext, InvalidOperation
from enum import Enum
import hashlib
from typing import Dict, List, Optional, Protocol, Tuple, FrozenSet, Any, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Sale arithmetic multiplies 18-decimal token quantities by integer prices,
# so intermediate values can carry 30+ significant digits. prec=50 keeps every
# product exact before the explicit quantize() that applies the rounding rule.
#
# Worker threads start from DefaultContext, so it gets the same settings.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_POOL_DECIMAL_CONTEXT = getcontext()
_POOL_DECIMAL_CONTEXT.prec = 50
_POOL_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN
DefaultContext.prec = 50
DefaultContext.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption. Exempt from balance validation.
SYSTEM_WALLET = "system"

UNIT_TYPE_TOKEN = "TOKEN"
UNIT_TYPE_STABLECOIN = "STABLECOIN"

# Denominator for rates expressed in basis points.
BASIS_POINTS = 10000


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, Decimal]

# Key for an allowance: (owner wallet, spender wallet, unit symbol).
AllowanceKey = Tuple[str, str, str]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Functions accepting a LedgerView declare their read-only intent. The Ledger
    class implements this protocol but also provides mutation methods.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """Return the balance of a unit in a wallet (Decimal("0") if none)."""
        ...

    def get_allowance(self, owner: str, spender: str, unit_symbol: str) -> Decimal:
        """Return how much of owner's unit the spender may still move."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Transaction intent was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"      # Buyer-initiated (purchase, reward claim)
    ADMIN = "admin"                  # Owner-initiated (withdrawal, recovery)
    SYSTEM = "system"                # Issuance and initial funding


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a move would take a wallet balance below the unit's minimum."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when a spender moves more of another wallet's balance than approved."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a wallet that has not been registered with the ledger."""
    pass


class PrecisionViolation(LedgerError):
    """Raised when a move quantity is finer than the unit's decimal places."""
    pass


class TimestampViolation(LedgerError):
    """Raised when a transaction is stamped later than the ledger's clock."""
    pass


class AmountOutOfRange(LedgerError, ValueError):
    """Raised when an amount has too many digits to hold at a unit's precision."""
    pass


# ============================================================================
# AMOUNTS
# ============================================================================

def to_decimal(value: Any, name: str = "amount") -> Decimal:
    """
    Convert an int, str or Decimal to a finite Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1"), not its
    binary expansion. Booleans are rejected.
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"{name} must be numeric, got {value!r}") from None
    if result.is_nan() or result.is_infinite():
        raise ValueError(f"{name} must be finite, got {value!r}")
    return result


def truncate(value: Decimal, decimal_places: int, name: str = "amount") -> Decimal:
    """
    Truncate toward zero at decimal_places.

    Raises:
        AmountOutOfRange: the result would need more than the context's 50 digits
    """
    try:
        return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_DOWN)
    except InvalidOperation:
        raise AmountOutOfRange(
            f"{name} {value} cannot be held at {decimal_places} decimal places"
        ) from None


def quantize_amount(value: Any, decimal_places: int, name: str = "amount") -> Decimal:
    """Convert with to_decimal() and truncate toward zero at decimal_places."""
    return truncate(to_decimal(value, name), decimal_places, name)


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin (USER_ACTION, ADMIN, SYSTEM)
        source_id: Identifier of the actor (buyer wallet, owner wallet, pool name)
        event_type: Operation within the source (e.g., "PURCHASE", "CLAIM", "WITHDRAW")
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        if self.event_type:
            return f"Origin({self.origin_type.value}:{self.source_id}, event={self.event_type})"
        return f"Origin({self.origin_type.value}:{self.source_id})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (finite and strictly positive).
        unit_symbol: The symbol of the unit being transferred (e.g., "USDT", "BLOCH").
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
        spender: Wallet acting on the source's behalf. When set and different
            from source, the move consumes the source's allowance for spender.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    spender: Optional[str] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    @property
    def delegated(self) -> bool:
        """True when the move spends another wallet's balance via allowance."""
        return self.spender is not None and self.spender != self.source

    def __repr__(self) -> str:
        via = f" via {self.spender}" if self.delegated else ""
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest}{via})"


def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string.

    Decimal("1.0") and Decimal("1.00") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _compute_intent_id(moves: Tuple[Move, ...], origin: TransactionOrigin) -> str:
    """
    Deterministic content hash of a transaction's intent.

    Same moves and origin always produce the same intent_id, regardless of
    move order or Decimal representation. Used for idempotency checking.
    """
    sorted_moves = sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
    )
    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")
    for m in sorted_moves:
        qty = _normalize_decimal(m.quantity)
        content_parts.append(
            f"move:{qty}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}|{m.spender or ''}"
        )
    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Attributes:
        moves: Tuple of value transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(self, 'intent_id', _compute_intent_id(self.moves, self.origin))

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves."""
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction stamped with the view's current time.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: Moves to include in the transaction
        origin: Transaction origin (defaults to a SYSTEM origin)

    Example:
        tx = build_transaction(ledger, [
            Move(Decimal("1000"), "USDT", "alice", "treasury", "purchase:1", spender="bloch_pool")
        ])
        ledger.execute(tx)
    """
    if origin is None:
        origin = TransactionOrigin(OriginType.SYSTEM, "ledger")
    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.contract_ids is None:
            object.__setattr__(self, 'contract_ids', frozenset(m.contract_id for m in self.moves))

    def __repr__(self) -> str:
        lines = [
            f"Transaction {self.exec_id}",
            f"  intent_id      : {self.intent_id}",
            f"  execution_time : {self.execution_time}",
            f"  origin         : {self.origin}",
        ]
        for i, move in enumerate(self.moves):
            lines.append(f"  [{i}] {move!r}")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a fungible asset in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "USDT", "BLOCH").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (TOKEN, STABLECOIN).
        decimal_places: Fractional precision of the asset.
        min_balance: Minimum allowed balance in any non-system wallet.
    """
    symbol: str
    name: str
    unit_type: str
    decimal_places: int
    min_balance: Decimal = Decimal("0")

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal("0.000001") for 6 places."""
        return Decimal(1).scaleb(-self.decimal_places)

    def round(self, value: Decimal) -> Decimal:
        """
        Truncate a value toward zero at this unit's precision.

        Token amounts never round up: a fractional base unit is dropped.
        """
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return truncate(value, self.decimal_places, self.symbol)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def token(symbol: str, name: str, decimal_places: int = 18, unit_type: str = UNIT_TYPE_TOKEN) -> Unit:
    """
    Create a fungible token unit.

    Args:
        symbol: Ticker (e.g., "BLOCH").
        name: Full name of the token.
        decimal_places: Fractional precision (18 for BLOCH, 6 for USDT).
        unit_type: TOKEN or STABLECOIN.

    Returns:
        A Unit whose balances may not go negative.
    """
    if decimal_places < 0:
        raise ValueError(f"decimal_places must be non-negative, got {decimal_places}")
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=unit_type,
        decimal_places=decimal_places,
    )


def stablecoin(symbol: str, name: str, decimal_places: int = 6) -> Unit:
    """Create a stable quote-asset unit (6 decimals by default, like USDT)."""
    return token(symbol, name, decimal_places, unit_type=UNIT_TYPE_STABLECOIN)
