"""
pool.py - Sale Pool

The Pool aggregate ties the phase schedule, purchase limits, reward settings
and buyer accounts to a LedgerAdapter and a clock. It is the only object that
mutates sale state.

Every operation follows the same shape:
1. Take the locks for the records it touches (phase -> buyer -> ledger)
2. Read the clock once, under those locks
3. Validate and price with a pure compute_* function
4. Settle the transfers through the adapter (atomic; raises on refusal)
5. Record the result in pool state

A failure in steps 3 or 4 raises before step 5, so an operation either applies
completely or leaves nothing behind.
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
import threading

from .adapter import LedgerAdapter, TransferFailed
from .config import PoolConfig, default_config
from .core import AmountOutOfRange, Transaction, TransactionOrigin, OriginType, quantize_amount
from .errors import (
    InsufficientBalanceError, NoActivePhaseError, PaymentFailedError,
    PhaseActiveError, SaleValidationError, UnauthorizedError, ConfigurationError,
)
from .phases import Phase, PhaseSchedule, PhaseStatus
from .purchase import (
    PurchaseLimits, PurchaseReceipt, compute_purchase, compute_quote_cost, sale_units_at_precision,
)
from .rewards import BuyerAccount, ClaimReceipt, RewardConfig, compute_claim


Clock = Callable[[], datetime]


class Pool:
    """
    Multi-phase token sale with periodic purchase rewards.

    Example:
        adapter = LedgerAdapter(ledger)
        pool = Pool(adapter, owner="owner")
        pool.set_phase_timing("owner", 0, t0, t0 + timedelta(days=30))
        ledger.advance_time(t0)
        pool.purchase("alice", Decimal("1000"))
    """

    def __init__(
        self,
        adapter: LedgerAdapter,
        owner: str,
        config: Optional[PoolConfig] = None,
        clock: Optional[Clock] = None,
        verbose: Optional[bool] = None,
    ):
        """
        Create a pool.

        Args:
            adapter: Transfer capability over the ledger holding the assets
            owner: Wallet allowed to call administrative operations
            config: Static configuration (default: default_config())
            clock: Zero-argument callable returning the current time
                (default: the ledger's logical clock)
            verbose: Print one line per applied operation (default: the ledger's setting)

        Raises:
            ConfigurationError: owner is the pool wallet or the collection wallet
        """
        if not owner or not owner.strip():
            raise ValueError("owner cannot be empty")
        self._adapter = adapter
        self._config = config or default_config()
        self._check_owner_wallet(owner)
        self._owner = owner
        self._clock: Clock = clock or (lambda: adapter.ledger.current_time)
        self.verbose = adapter.verbose if verbose is None else verbose

        self._schedule = PhaseSchedule(self._config.phases)
        self._limits = PurchaseLimits(self._config.min_purchase, self._config.max_purchase)
        self._reward_config = RewardConfig(
            enabled=self._config.rewards_enabled,
            rate_basis_points=self._config.reward_rate_basis_points,
            interval=self._config.reward_interval,
        )
        self._accounts: Dict[str, BuyerAccount] = {}

        self._config_lock = threading.RLock()
        self._phase_locks = [threading.Lock() for _ in range(len(self._schedule))]
        self._buyer_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._buyer_locks_guard = threading.Lock()

    # ========================================================================
    # READ ACCESS
    # ========================================================================

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def purchase_limits(self) -> PurchaseLimits:
        return self._limits

    @property
    def reward_config(self) -> RewardConfig:
        return self._reward_config

    @property
    def phase_count(self) -> int:
        return len(self._schedule)

    def now(self) -> datetime:
        return self._clock()

    def is_owner(self, caller: str) -> bool:
        return caller == self._owner

    def get_phase(self, index: int) -> Phase:
        """Detached copy of a phase; mutating it does not affect the pool."""
        return self._schedule[index].snapshot()

    def phases(self) -> List[Phase]:
        return [phase.snapshot() for phase in self._schedule]

    def phase_status(self, index: int) -> PhaseStatus:
        return self._schedule.status(index, self.now())

    def active_phase(self) -> Optional[Phase]:
        phase = self._schedule.active_phase(self.now())
        return phase.snapshot() if phase is not None else None

    def get_account(self, buyer: str) -> Optional[BuyerAccount]:
        account = self._accounts.get(buyer)
        return account.snapshot() if account is not None else None

    def accounts(self) -> List[BuyerAccount]:
        return [self._accounts[b].snapshot() for b in sorted(self._accounts)]

    def quote_balance(self) -> Decimal:
        """Quote asset held in the collection wallet."""
        return self._adapter.balance_of(self._config.treasury, self._config.quote_asset)

    def inventory_balance(self) -> Decimal:
        """Sale asset held by the pool wallet."""
        return self._adapter.balance_of(self._config.pool_wallet, self._config.sale_asset)

    def quote_purchase(self, sale_units: Any) -> Decimal:
        """Cost of sale_units at the active phase's price, without buying."""
        phase = self._schedule.active_phase(self.now())
        if phase is None:
            raise NoActivePhaseError("No active phase")
        units = sale_units_at_precision(sale_units, self._config.sale_decimals)
        return compute_quote_cost(units, phase.price, self._config.quote_decimals)

    def next_claim_time(self, buyer: str) -> Optional[datetime]:
        account = self._accounts.get(buyer)
        if account is None:
            return None
        return account.next_claim_time(self._reward_config.interval)

    # ========================================================================
    # BUYER OPERATIONS
    # ========================================================================

    def purchase(self, buyer: str, sale_units: Any) -> PurchaseReceipt:
        """
        Buy sale_units of the sale asset in the active phase.

        The buyer must have approved the pool wallet to spend at least the
        quote cost.

        Raises:
            NoActivePhaseError, BelowMinimumError, ExceedsMaximumError,
            AllocationExhaustedError: validation failed
            PaymentFailedError: the ledger refused the settlement
        """
        while True:
            phase = self._schedule.active_phase(self.now())
            if phase is None:
                raise NoActivePhaseError("No active phase")
            with self._phase_locks[phase.index], self._buyer_lock(buyer):
                # the phase may have closed while we waited for its lock
                now = self.now()
                if phase.is_active(now):
                    tx, plan = self._settle_purchase(phase, buyer, sale_units, now)
                    break

        if self.verbose:
            print(f"[PURCHASE] {buyer} bought {plan.sale_units} {self._config.sale_asset} "
                  f"in phase {plan.phase_index} for {plan.quote_cost} {self._config.quote_asset}")
        return PurchaseReceipt(
            buyer=buyer,
            phase_index=plan.phase_index,
            sale_units=plan.sale_units,
            quote_cost=plan.quote_cost,
            timestamp=now,
            exec_id=tx.exec_id,
        )

    def claim_reward(self, buyer: str) -> ClaimReceipt:
        """
        Pay the buyer's accrued reward and empty their accrual bucket.

        Raises:
            RewardsDisabledError, NothingToClaimError, IntervalNotMetError:
                validation failed
            PaymentFailedError: the collection wallet cannot fund the reward
        """
        with self._buyer_lock(buyer):
            now = self.now()
            account = self._accounts.get(buyer)
            reward_config = self._reward_config
            plan = compute_claim(account, reward_config, self._config, buyer, now)
            t = plan.transfer
            origin = TransactionOrigin(OriginType.USER_ACTION, buyer, "CLAIM")
            try:
                tx = self._adapter.transfer(t.asset, t.source, t.dest, t.amount, origin=origin)
            except TransferFailed as e:
                raise PaymentFailedError(f"Reward payment failed: {e.reason}", e.code) from e
            account.record_claim(plan.reward, now)
            next_claim = account.next_claim_time(reward_config.interval)

        if self.verbose:
            print(f"[CLAIM] {buyer} received {plan.reward} {self._config.quote_asset}")
        return ClaimReceipt(
            buyer=buyer,
            reward=plan.reward,
            timestamp=now,
            next_claim_time=next_claim,
            exec_id=tx.exec_id,
        )

    # ========================================================================
    # ADMINISTRATION (owner only)
    # ========================================================================

    def set_phase_timing(self, caller: str, index: int, start: datetime, end: datetime) -> Phase:
        """
        Set a phase's window. Only before the phase starts.

        Raises:
            UnauthorizedError, UnknownPhaseError, InvalidWindowError,
            PhaseActiveError, OverlapError
        """
        self._require_owner(caller)
        phase = self._schedule[index]
        with self._config_lock, self._phase_locks[phase.index]:
            self._schedule.set_phase_timing(index, start, end, self.now())
            snapshot = phase.snapshot()
        if self.verbose:
            print(f"[SCHEDULE] phase {index}: {start} -> {end}")
        return snapshot

    def set_phase_terms(self, caller: str, index: int, price: int, allocation: Any) -> Phase:
        """Change a phase's price and allocation. Only before the phase starts."""
        self._require_owner(caller)
        phase = self._schedule[index]
        with self._config_lock, self._phase_locks[phase.index]:
            self._schedule.set_phase_terms(index, price, allocation, self.now())
            return phase.snapshot()

    def set_purchase_limits(self, caller: str, min_amount: Any, max_amount: Any) -> PurchaseLimits:
        """Replace the per-call purchase bounds. Applies to future purchases."""
        self._require_owner(caller)
        limits = PurchaseLimits(min_amount, max_amount)
        with self._config_lock:
            self._limits = limits
        return limits

    def set_reward_parameters(
        self,
        caller: str,
        enabled: bool,
        rate_basis_points: int,
        interval: timedelta,
    ) -> RewardConfig:
        """Replace the reward switch, rate and claim interval. Applies to future claims."""
        self._require_owner(caller)
        reward_config = RewardConfig(bool(enabled), rate_basis_points, interval)
        with self._config_lock:
            self._reward_config = reward_config
        return reward_config

    def withdraw_usdt(self, caller: str, amount: Any) -> Transaction:
        """
        Move collected quote asset from the collection wallet to the owner.

        Raises:
            UnauthorizedError: caller is not the owner
            SaleValidationError: amount is not positive
            InsufficientBalanceError: amount exceeds the collected balance, or
                is too large to represent at the quote precision
        """
        self._require_owner(caller)
        quote = self._config.quote_asset
        try:
            amount = quantize_amount(amount, self._config.quote_decimals)
        except AmountOutOfRange as e:
            raise InsufficientBalanceError(f"Insufficient {quote} balance: {e}") from None
        if amount <= 0:
            raise SaleValidationError(f"Withdrawal amount must be positive, got {amount}")

        with self._adapter.exclusive():
            balance = self._adapter.balance_of(self._config.treasury, quote)
            if amount > balance:
                raise InsufficientBalanceError(
                    f"Insufficient {quote} balance: {balance} available, {amount} requested"
                )
            origin = TransactionOrigin(OriginType.ADMIN, caller, "WITHDRAW")
            try:
                tx = self._adapter.transfer(quote, self._config.treasury, self._owner, amount, origin=origin)
            except TransferFailed as e:
                raise PaymentFailedError(f"Withdrawal failed: {e.reason}", e.code) from e

        if self.verbose:
            print(f"[WITHDRAW] {amount} {quote} to {self._owner}")
        return tx

    def recover_unsold_bloch(self, caller: str, phase_index: int) -> Decimal:
        """
        Return a closed phase's unsold allocation to the owner.

        Transfers allocation - sold - already recovered, so a second call for
        the same phase transfers nothing and returns Decimal("0").

        Raises:
            UnauthorizedError: caller is not the owner
            UnknownPhaseError: phase_index outside the schedule
            PhaseActiveError: the phase has not ended
            PaymentFailedError: pool inventory cannot cover the amount
        """
        self._require_owner(caller)
        phase = self._schedule[phase_index]
        with self._phase_locks[phase.index]:
            if phase.status(self.now()) != PhaseStatus.ENDED:
                raise PhaseActiveError(f"Phase {phase_index} has not ended")
            amount = phase.unsold
            if amount <= 0:
                return Decimal("0")
            origin = TransactionOrigin(OriginType.ADMIN, caller, "RECOVER")
            try:
                self._adapter.transfer(
                    self._config.sale_asset, self._config.pool_wallet, self._owner, amount, origin=origin
                )
            except TransferFailed as e:
                raise PaymentFailedError(f"Recovery failed: {e.reason}", e.code) from e
            phase.recovered += amount

        if self.verbose:
            print(f"[RECOVER] phase {phase_index}: {amount} {self._config.sale_asset} to {self._owner}")
        return amount

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._require_owner(caller)
        if not new_owner or not new_owner.strip():
            raise ValueError("new_owner cannot be empty")
        self._check_owner_wallet(new_owner)
        with self._config_lock:
            self._owner = new_owner

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_owner(self, caller: str) -> None:
        if not self.is_owner(caller):
            raise UnauthorizedError(f"{caller} is not the owner")

    def _check_owner_wallet(self, owner: str) -> None:
        # withdrawals and recoveries move funds from these wallets to the owner
        if owner in (self._config.pool_wallet, self._config.treasury):
            raise ConfigurationError(
                f"owner {owner} must differ from the pool and collection wallets"
            )

    def _settle_purchase(self, phase: Phase, buyer: str, sale_units: Any, now: datetime):
        """Price, settle and record a purchase. Caller holds the phase and buyer locks."""
        plan = compute_purchase(phase, self._limits, self._config, buyer, sale_units, now)
        origin = TransactionOrigin(OriginType.USER_ACTION, buyer, "PURCHASE")
        try:
            tx = self._adapter.settle(plan.transfers, origin)
        except TransferFailed as e:
            raise PaymentFailedError(f"Purchase payment failed: {e.reason}", e.code) from e

        phase.sold += plan.sale_units
        account = self._accounts.get(buyer)
        if account is None:
            account = self._accounts[buyer] = BuyerAccount.open(buyer, now)
        account.record_purchase(plan.sale_units, plan.quote_cost)
        return tx, plan

    def _buyer_lock(self, buyer: str) -> threading.Lock:
        with self._buyer_locks_guard:
            return self._buyer_locks[buyer]
