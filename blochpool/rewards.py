"""
rewards.py - Reward Engine

Each buyer has an accrual bucket: the quote amount spent since their last
claim. A claim pays rate_basis_points / 10000 of the bucket, in the quote
asset, from the collection wallet, then empties the bucket.

Claims are time-gated. A buyer may claim once interval has elapsed since
their previous claim; before the first claim the clock starts at their first
purchase.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN
from typing import Optional

from .adapter import Transfer
from .config import PoolConfig
from .core import BASIS_POINTS
from .errors import (
    ConfigurationError, IntervalNotMetError, NothingToClaimError, RewardsDisabledError,
)


@dataclass(frozen=True, slots=True)
class RewardConfig:
    enabled: bool = False
    rate_basis_points: int = 0
    interval: timedelta = timedelta(days=1)

    def __post_init__(self):
        rate = self.rate_basis_points
        if isinstance(rate, bool) or not isinstance(rate, int):
            raise ConfigurationError(f"rate must be an integer number of basis points, got {rate!r}")
        if not 0 <= rate <= BASIS_POINTS:
            raise ConfigurationError(f"rate must be within 0..{BASIS_POINTS}, got {rate}")
        if not isinstance(self.interval, timedelta) or self.interval < timedelta(0):
            raise ConfigurationError(f"interval must be a non-negative timedelta, got {self.interval!r}")


@dataclass(slots=True)
class BuyerAccount:
    """
    Per-buyer purchase and reward record. Created on first purchase, never removed.

    Attributes:
        buyer: Wallet ID
        purchased: Cumulative sale tokens bought
        accrued_quote_spend: Quote spent since the last claim (the accrual bucket)
        last_claim_time: Last claim, or the first purchase if never claimed
        first_purchase_time: Time of the purchase that created the account
        total_spent: Cumulative quote spent
        total_rewards_paid: Cumulative rewards paid
        purchase_count: Number of successful purchases
    """
    buyer: str
    first_purchase_time: datetime
    last_claim_time: datetime
    purchased: Decimal = Decimal("0")
    accrued_quote_spend: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    total_rewards_paid: Decimal = Decimal("0")
    purchase_count: int = 0

    @classmethod
    def open(cls, buyer: str, now: datetime) -> 'BuyerAccount':
        return cls(buyer=buyer, first_purchase_time=now, last_claim_time=now)

    def record_purchase(self, sale_units: Decimal, quote_cost: Decimal) -> None:
        self.purchased += sale_units
        self.accrued_quote_spend += quote_cost
        self.total_spent += quote_cost
        self.purchase_count += 1

    def record_claim(self, reward: Decimal, now: datetime) -> None:
        self.accrued_quote_spend = Decimal("0")
        self.last_claim_time = now
        self.total_rewards_paid += reward

    def next_claim_time(self, interval: timedelta) -> datetime:
        return self.last_claim_time + interval

    def snapshot(self) -> 'BuyerAccount':
        return replace(self)


@dataclass(frozen=True, slots=True)
class ClaimPlan:
    buyer: str
    reward: Decimal
    transfer: Transfer


@dataclass(frozen=True, slots=True)
class ClaimReceipt:
    buyer: str
    reward: Decimal
    timestamp: datetime
    next_claim_time: datetime
    exec_id: str


def compute_reward(accrued_quote_spend: Decimal, rate_basis_points: int, quote_decimals: int) -> Decimal:
    """accrued * rate / 10000, truncated toward zero at quote precision."""
    quantum = Decimal(1).scaleb(-quote_decimals)
    raw = accrued_quote_spend * rate_basis_points / BASIS_POINTS
    return raw.quantize(quantum, rounding=ROUND_DOWN)


def compute_claim(
    account: Optional[BuyerAccount],
    reward_config: RewardConfig,
    config: PoolConfig,
    buyer: str,
    now: datetime,
) -> ClaimPlan:
    """
    Validate a reward claim and size the payout.

    Raises:
        RewardsDisabledError: rewards are switched off
        NothingToClaimError: buyer never purchased, or the reward rounds to zero
        IntervalNotMetError: interval has not elapsed since the last claim
    """
    if not reward_config.enabled:
        raise RewardsDisabledError("Rewards are disabled")
    if account is None:
        raise NothingToClaimError(f"{buyer} has no purchases")
    if now - account.last_claim_time < reward_config.interval:
        raise IntervalNotMetError(
            f"Reward interval not met: next claim at {account.next_claim_time(reward_config.interval)}"
        )

    reward = compute_reward(account.accrued_quote_spend, reward_config.rate_basis_points, config.quote_decimals)
    if reward <= 0:
        raise NothingToClaimError(f"No reward accrued for {buyer}")

    return ClaimPlan(
        buyer=buyer,
        reward=reward,
        transfer=Transfer(config.quote_asset, config.treasury, buyer, reward),
    )
