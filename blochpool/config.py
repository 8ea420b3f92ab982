"""
config.py - Pool configuration

Configuration is plain data: a frozen PoolConfig passed to the Pool
constructor. default_config() reproduces the original BLOCH deployment:
240M BLOCH split over four 60M phases, paid for in 6-decimal USDT.

Prices are integers in quote base units per whole sale token, so
1_000_000 means $1.00 when the quote asset has 6 decimals.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Tuple

from .core import BASIS_POINTS, to_decimal
from .errors import ConfigurationError


SALE_ASSET = "BLOCH"
QUOTE_ASSET = "USDT"
SALE_DECIMALS = 18
QUOTE_DECIMALS = 6

POOL_WALLET = "bloch_pool"

PHASE_ALLOCATION = Decimal("60000000")


@dataclass(frozen=True, slots=True)
class PhaseTerms:
    """Price and allocation a phase is created with."""
    price: int
    allocation: Decimal

    def __post_init__(self):
        if isinstance(self.price, bool) or not isinstance(self.price, int) or self.price <= 0:
            raise ConfigurationError(f"price must be a positive integer, got {self.price!r}")
        allocation = to_decimal(self.allocation, "allocation")
        if allocation <= 0:
            raise ConfigurationError(f"allocation must be positive, got {allocation}")
        object.__setattr__(self, 'allocation', allocation)


DEFAULT_PHASES: Tuple[PhaseTerms, ...] = (
    PhaseTerms(price=1_000_000, allocation=PHASE_ALLOCATION),
    PhaseTerms(price=1_500_000, allocation=PHASE_ALLOCATION),
    PhaseTerms(price=2_000_000, allocation=PHASE_ALLOCATION),
    PhaseTerms(price=2_500_000, allocation=PHASE_ALLOCATION),
)


@dataclass(frozen=True)
class PoolConfig:
    """
    Static pool configuration.

    Attributes:
        sale_asset: Symbol of the token being sold
        quote_asset: Symbol of the token buyers pay with
        sale_decimals: Fractional precision of the sale asset
        quote_decimals: Fractional precision of the quote asset
        pool_wallet: Wallet holding unsold inventory; spends buyers' quote allowance
        collection_wallet: Wallet receiving payments and funding rewards
            (defaults to pool_wallet)
        phases: Terms of each phase, in schedule order
        min_purchase: Initial per-call minimum, in sale tokens
        max_purchase: Initial per-call maximum, in sale tokens
        rewards_enabled: Initial reward switch
        reward_rate_basis_points: Initial reward rate (500 = 5%)
        reward_interval: Initial minimum time between claims
    """
    sale_asset: str = SALE_ASSET
    quote_asset: str = QUOTE_ASSET
    sale_decimals: int = SALE_DECIMALS
    quote_decimals: int = QUOTE_DECIMALS
    pool_wallet: str = POOL_WALLET
    collection_wallet: Optional[str] = None
    phases: Tuple[PhaseTerms, ...] = DEFAULT_PHASES
    min_purchase: Decimal = Decimal("1")
    max_purchase: Decimal = Decimal("1000000")
    rewards_enabled: bool = False
    reward_rate_basis_points: int = 0
    reward_interval: timedelta = field(default=timedelta(days=1))

    def __post_init__(self):
        if self.sale_asset == self.quote_asset:
            raise ConfigurationError("sale_asset and quote_asset must differ")
        if self.sale_decimals < 0 or self.quote_decimals < 0:
            raise ConfigurationError("decimals must be non-negative")
        if not self.phases:
            raise ConfigurationError("at least one phase is required")
        if not 0 <= self.reward_rate_basis_points <= BASIS_POINTS:
            raise ConfigurationError(
                f"reward rate must be within 0..{BASIS_POINTS}, got {self.reward_rate_basis_points}"
            )
        object.__setattr__(self, 'phases', tuple(self.phases))

    @property
    def treasury(self) -> str:
        """Wallet payments are routed to."""
        return self.collection_wallet or self.pool_wallet


def default_config(**overrides) -> PoolConfig:
    """The original four-phase BLOCH/USDT sale, with optional field overrides."""
    return PoolConfig(**overrides)
