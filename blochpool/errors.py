"""
Exceptions raised by the sale pool.

Every failure is reported synchronously as a typed exception and leaves pool
state and ledger balances untouched. The hierarchy groups errors by cause:

    PoolError
    ├── SaleValidationError      bad caller input or timing
    │   ├── NoActivePhaseError
    │   ├── BelowMinimumError
    │   ├── ExceedsMaximumError
    │   ├── AllocationExhaustedError
    │   ├── RewardsDisabledError
    │   ├── IntervalNotMetError
    │   ├── NothingToClaimError
    │   └── PhaseActiveError
    ├── UnauthorizedError        non-owner calling an owner operation
    ├── ResourceError            ledger balance problems
    │   ├── PaymentFailedError
    │   └── InsufficientBalanceError
    └── ConfigurationError       conflicting schedule or parameters
        ├── OverlapError
        ├── InvalidWindowError
        └── UnknownPhaseError
"""

from __future__ import annotations
from typing import Optional

from .adapter import TransferFailure


class PoolError(Exception):
    """Base exception for all sale pool errors."""
    pass


class SaleValidationError(PoolError):
    pass


class NoActivePhaseError(SaleValidationError):
    """No phase window contains the current time."""
    pass


class BelowMinimumError(SaleValidationError):
    pass


class ExceedsMaximumError(SaleValidationError):
    pass


class AllocationExhaustedError(SaleValidationError):
    """The purchase would sell more than the phase's remaining allocation."""
    pass


class RewardsDisabledError(SaleValidationError):
    pass


class IntervalNotMetError(SaleValidationError):
    """The buyer claimed again before the reward interval elapsed."""
    pass


class NothingToClaimError(SaleValidationError):
    """The buyer has no purchases, or the accrued reward rounds to zero."""
    pass


class PhaseActiveError(SaleValidationError):
    """The phase has not ended (recovery) or has already started (re-timing)."""
    pass


class UnauthorizedError(PoolError):
    pass


class ResourceError(PoolError):
    pass


class PaymentFailedError(ResourceError):
    """A ledger transfer was refused; code says why."""

    def __init__(self, message: str, code: Optional[TransferFailure] = None):
        super().__init__(message)
        self.code = code


class InsufficientBalanceError(ResourceError):
    pass


class ConfigurationError(PoolError):
    pass


class OverlapError(ConfigurationError):
    """A phase window would overlap a neighbouring phase."""
    pass


class InvalidWindowError(ConfigurationError):
    pass


class UnknownPhaseError(ConfigurationError):
    pass
