"""
purchase.py - Purchase Engine

Pure functions that validate a purchase against the active phase and price it.
compute_purchase() returns a PurchasePlan; the Pool settles the plan's
transfers through the LedgerAdapter and only then records the sale.

Pricing rule:
    quote_cost = sale_units * price / 10**quote_decimals

price is an integer number of quote base units per whole sale token. The sale
quantity is first truncated to the sale asset's precision, then the product is
truncated toward zero (ROUND_DOWN) at the quote asset's precision. Buyers are
never charged for a fraction of a quote base unit and the pool never rounds
in its own favour.

Example:
    1000 BLOCH at price 1_000_000 with 6 quote decimals costs exactly 1000 USDT.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Any, Tuple

from .adapter import Transfer
from .config import PoolConfig
from .core import AmountOutOfRange, quantize_amount, to_decimal
from .errors import (
    AllocationExhaustedError, BelowMinimumError, ExceedsMaximumError,
    ConfigurationError, NoActivePhaseError,
)
from .phases import Phase


@dataclass(frozen=True, slots=True)
class PurchaseLimits:
    """Per-call bounds on a purchase, in sale tokens. Apply to every phase."""
    min_amount: Decimal
    max_amount: Decimal

    def __post_init__(self):
        min_amount = to_decimal(self.min_amount, "min_amount")
        max_amount = to_decimal(self.max_amount, "max_amount")
        if min_amount < 0:
            raise ConfigurationError(f"min_amount must be non-negative, got {min_amount}")
        if min_amount > max_amount:
            raise ConfigurationError(f"min_amount {min_amount} exceeds max_amount {max_amount}")
        object.__setattr__(self, 'min_amount', min_amount)
        object.__setattr__(self, 'max_amount', max_amount)

    def check(self, sale_units: Decimal) -> None:
        if sale_units < self.min_amount:
            raise BelowMinimumError(
                f"Below minimum purchase: {sale_units} < {self.min_amount}"
            )
        if sale_units > self.max_amount:
            raise ExceedsMaximumError(
                f"Exceeds maximum purchase: {sale_units} > {self.max_amount}"
            )


@dataclass(frozen=True, slots=True)
class PurchasePlan:
    """A validated, priced purchase waiting to be settled."""
    buyer: str
    phase_index: int
    price: int
    sale_units: Decimal
    quote_cost: Decimal
    transfers: Tuple[Transfer, ...]


@dataclass(frozen=True, slots=True)
class PurchaseReceipt:
    buyer: str
    phase_index: int
    sale_units: Decimal
    quote_cost: Decimal
    timestamp: datetime
    exec_id: str


def sale_units_at_precision(sale_units: Any, sale_decimals: int) -> Decimal:
    """
    Truncate a requested quantity to the sale asset's precision.

    Raises:
        ExceedsMaximumError: the quantity is too large to represent at that precision
    """
    try:
        return quantize_amount(sale_units, sale_decimals, "sale_units")
    except AmountOutOfRange as e:
        raise ExceedsMaximumError(f"Exceeds maximum purchase: {e}") from None


def compute_quote_cost(sale_units: Decimal, price: int, quote_decimals: int) -> Decimal:
    """
    Quote-asset cost of sale_units at price, truncated toward zero.

    Args:
        sale_units: Whole-token quantity of the sale asset (may be fractional)
        price: Quote base units per whole sale token
        quote_decimals: Fractional precision of the quote asset

    Returns:
        Cost in whole quote tokens, at quote_decimals precision
    """
    quantum = Decimal(1).scaleb(-quote_decimals)
    raw = sale_units * Decimal(price) / (Decimal(10) ** quote_decimals)
    return raw.quantize(quantum, rounding=ROUND_DOWN)


def compute_purchase(
    phase: Phase,
    limits: PurchaseLimits,
    config: PoolConfig,
    buyer: str,
    sale_units: Any,
    now: datetime,
) -> PurchasePlan:
    """
    Validate and price a purchase against a phase.

    Args:
        phase: The phase active at now (None means no phase is active)
        limits: Current purchase limits
        config: Pool configuration (assets, precisions, wallets)
        buyer: Buyer's wallet
        sale_units: Requested quantity of the sale asset, in whole tokens
        now: Current clock value

    Returns:
        PurchasePlan with two transfers: the quote payment from the buyer
        (spent by the pool wallet under the buyer's allowance) to the
        collection wallet, and the sale tokens from pool inventory to the buyer.

    Raises:
        NoActivePhaseError: phase is None or not active at now
        BelowMinimumError / ExceedsMaximumError: outside the purchase limits,
            or the cost truncates to zero
        AllocationExhaustedError: the phase cannot cover the quantity
    """
    if phase is None or not phase.is_active(now):
        raise NoActivePhaseError("No active phase")

    units = sale_units_at_precision(sale_units, config.sale_decimals)
    if units <= 0:
        raise BelowMinimumError(f"Below minimum purchase: {units}")
    limits.check(units)

    if phase.sold + units > phase.allocation:
        raise AllocationExhaustedError(
            f"Phase {phase.index} allocation exhausted: {phase.remaining} remaining, {units} requested"
        )

    cost = compute_quote_cost(units, phase.price, config.quote_decimals)
    if cost <= 0:
        raise BelowMinimumError(f"Below minimum purchase: {units} costs less than one quote unit")

    transfers = (
        Transfer(config.quote_asset, buyer, config.treasury, cost, spender=config.pool_wallet),
        Transfer(config.sale_asset, config.pool_wallet, buyer, units),
    )
    return PurchasePlan(
        buyer=buyer,
        phase_index=phase.index,
        price=phase.price,
        sale_units=units,
        quote_cost=cost,
        transfers=transfers,
    )
