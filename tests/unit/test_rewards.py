"""
test_rewards.py - Unit tests for the reward engine

Tests:
- compute_reward arithmetic
- compute_claim validation order
- Pool.claim_reward payout, bucket reset and interval gating
- Reward parameter administration
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from blochpool import (
    BuyerAccount, RewardConfig, compute_reward, compute_claim, default_config,
    RewardsDisabledError, IntervalNotMetError, NothingToClaimError,
    PaymentFailedError, UnauthorizedError, ConfigurationError, TransferFailure,
)

from tests.sale_setup import (
    T0, ONE_DAY, OWNER, POOL_WALLET, ALICE, BOB,
    approve_and_buy, advance,
)


CONFIG = default_config()
ENABLED = RewardConfig(enabled=True, rate_basis_points=500, interval=ONE_DAY)


def account_with(spend: str) -> BuyerAccount:
    account = BuyerAccount.open(ALICE, T0)
    account.record_purchase(Decimal(spend), Decimal(spend))
    return account


class TestComputeReward:
    """Tests for reward arithmetic."""

    def test_five_percent(self):
        assert compute_reward(Decimal("1000"), 500, 6) == Decimal("50")

    def test_truncates(self):
        """0.01% of 0.009999 USDT is below one base unit."""
        assert compute_reward(Decimal("0.009999"), 1, 6) == Decimal("0")
        assert compute_reward(Decimal("33.333333"), 500, 6) == Decimal("1.666666")

    def test_zero_rate(self):
        assert compute_reward(Decimal("1000"), 0, 6) == Decimal("0")


class TestRewardConfig:
    """Tests for RewardConfig validation."""

    def test_defaults_disabled(self):
        config = RewardConfig()
        assert not config.enabled
        assert config.interval == ONE_DAY

    @pytest.mark.parametrize("rate", [-1, 10001, 1.5, True])
    def test_invalid_rate(self, rate):
        with pytest.raises(ConfigurationError):
            RewardConfig(True, rate, ONE_DAY)

    def test_negative_interval(self):
        with pytest.raises(ConfigurationError):
            RewardConfig(True, 100, timedelta(seconds=-1))

    def test_interval_must_be_timedelta(self):
        with pytest.raises(ConfigurationError):
            RewardConfig(True, 100, 86400)


class TestBuyerAccount:
    """Tests for BuyerAccount bookkeeping."""

    def test_open(self):
        account = BuyerAccount.open(ALICE, T0)
        assert account.last_claim_time == T0
        assert account.purchase_count == 0

    def test_record_claim_resets_bucket(self):
        account = account_with("1000")
        account.record_claim(Decimal("50"), T0 + ONE_DAY)
        assert account.accrued_quote_spend == Decimal("0")
        assert account.total_spent == Decimal("1000")
        assert account.total_rewards_paid == Decimal("50")
        assert account.next_claim_time(ONE_DAY) == T0 + 2 * ONE_DAY


class TestComputeClaim:
    """Tests for compute_claim validation."""

    def test_plan(self):
        plan = compute_claim(account_with("1000"), ENABLED, CONFIG, ALICE, T0 + ONE_DAY)
        assert plan.reward == Decimal("50")
        assert (plan.transfer.asset, plan.transfer.source, plan.transfer.dest) == ("USDT", POOL_WALLET, ALICE)

    def test_disabled_checked_first(self):
        with pytest.raises(RewardsDisabledError):
            compute_claim(None, RewardConfig(), CONFIG, ALICE, T0)

    def test_no_account(self):
        with pytest.raises(NothingToClaimError):
            compute_claim(None, ENABLED, CONFIG, ALICE, T0)

    def test_interval_from_first_purchase(self):
        with pytest.raises(IntervalNotMetError, match="Reward interval not met"):
            compute_claim(account_with("1000"), ENABLED, CONFIG, ALICE, T0 + ONE_DAY - timedelta(seconds=1))

    def test_interval_boundary_inclusive(self):
        plan = compute_claim(account_with("1000"), ENABLED, CONFIG, ALICE, T0 + ONE_DAY)
        assert plan.reward > 0

    def test_zero_reward(self):
        with pytest.raises(NothingToClaimError):
            compute_claim(account_with("0.000001"), ENABLED, CONFIG, ALICE, T0 + ONE_DAY)

    def test_zero_interval(self):
        config = RewardConfig(True, 500, timedelta(0))
        plan = compute_claim(account_with("10"), config, CONFIG, ALICE, T0)
        assert plan.reward == Decimal("0.5")


class TestPoolClaim:
    """Tests for Pool.claim_reward."""

    def test_claim_after_interval(self, ledger, rewarding_pool):
        """5% of 1000 USDT spend pays 50 USDT and empties the bucket."""
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        advance(ledger, ONE_DAY)

        receipt = rewarding_pool.claim_reward(ALICE)

        assert receipt.reward == Decimal("50")
        assert receipt.timestamp == ledger.current_time
        assert receipt.next_claim_time == ledger.current_time + ONE_DAY
        assert ledger.get_balance(ALICE, "USDT") == Decimal("9050")
        assert rewarding_pool.quote_balance() == Decimal("950")
        account = rewarding_pool.get_account(ALICE)
        assert account.accrued_quote_spend == Decimal("0")
        assert account.total_rewards_paid == Decimal("50")

    def test_claim_too_early(self, ledger, rewarding_pool):
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        advance(ledger, timedelta(hours=23))
        with pytest.raises(IntervalNotMetError):
            rewarding_pool.claim_reward(ALICE)
        assert ledger.get_balance(ALICE, "USDT") == Decimal("9000")

    def test_second_claim_needs_new_interval_and_spend(self, ledger, rewarding_pool):
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        advance(ledger, ONE_DAY)
        rewarding_pool.claim_reward(ALICE)

        with pytest.raises(IntervalNotMetError):
            rewarding_pool.claim_reward(ALICE)

        advance(ledger, ONE_DAY)
        with pytest.raises(NothingToClaimError):
            rewarding_pool.claim_reward(ALICE)

        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("200"))
        receipt = rewarding_pool.claim_reward(ALICE)
        assert receipt.reward == Decimal("10")

    def test_claim_without_purchase(self, rewarding_pool):
        with pytest.raises(NothingToClaimError):
            rewarding_pool.claim_reward(BOB)

    def test_rewards_disabled(self, ledger, active_pool):
        approve_and_buy(ledger, active_pool, ALICE, Decimal("1000"))
        advance(ledger, ONE_DAY)
        with pytest.raises(RewardsDisabledError):
            active_pool.claim_reward(ALICE)

    def test_unfunded_reward(self, ledger, rewarding_pool):
        """If the owner withdrew the proceeds the claim fails and the bucket is kept."""
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        rewarding_pool.withdraw_usdt(OWNER, Decimal("1000"))
        advance(ledger, ONE_DAY)
        with pytest.raises(PaymentFailedError) as exc:
            rewarding_pool.claim_reward(ALICE)
        assert exc.value.code == TransferFailure.INSUFFICIENT_BALANCE
        assert rewarding_pool.get_account(ALICE).accrued_quote_spend == Decimal("1000")

    def test_next_claim_time(self, ledger, rewarding_pool):
        assert rewarding_pool.next_claim_time(ALICE) is None
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("10"))
        assert rewarding_pool.next_claim_time(ALICE) == ledger.current_time + ONE_DAY

    def test_claim_after_phase_ends(self, ledger, rewarding_pool):
        """Claims do not need an active phase."""
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        advance(ledger, timedelta(days=60))
        assert rewarding_pool.active_phase() is None
        assert rewarding_pool.claim_reward(ALICE).reward == Decimal("50")


class TestSetRewardParameters:
    """Tests for Pool.set_reward_parameters."""

    def test_owner_sets_parameters(self, pool):
        config = pool.set_reward_parameters(OWNER, True, 250, timedelta(hours=12))
        assert pool.reward_config == config
        assert config.rate_basis_points == 250

    def test_non_owner_rejected(self, pool):
        with pytest.raises(UnauthorizedError):
            pool.set_reward_parameters(ALICE, True, 500, ONE_DAY)
        assert not pool.reward_config.enabled

    def test_rate_change_applies_to_next_claim(self, ledger, rewarding_pool):
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        rewarding_pool.set_reward_parameters(OWNER, True, 1000, ONE_DAY)
        advance(ledger, ONE_DAY)
        assert rewarding_pool.claim_reward(ALICE).reward == Decimal("100")

    def test_interval_change_applies_to_next_claim(self, ledger, rewarding_pool):
        approve_and_buy(ledger, rewarding_pool, ALICE, Decimal("1000"))
        rewarding_pool.set_reward_parameters(OWNER, True, 500, timedelta(hours=1))
        advance(ledger, timedelta(hours=1))
        assert rewarding_pool.claim_reward(ALICE).reward == Decimal("50")
