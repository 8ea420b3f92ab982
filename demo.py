#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Run a Token Sale Step by Step

Walks through one complete BLOCH sale on a fresh ledger. Each step builds on
the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Setup           - Ledger, assets, wallets, the pool
  4-6:   Selling         - Scheduling phases, allowances, purchases
  7-8:   Rewards         - Accrual, interval gating, claims
  9-10:  Administration  - Withdrawing proceeds, recovering unsold tokens

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from blochpool import (
    Ledger, LedgerAdapter, Pool, token, stablecoin,
    PoolError, PhaseStatus,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Initial funding
    inventory: Decimal = Decimal("240000000")
    buyer_usdt: Decimal = Decimal("10000")

    # Sale parameters
    phase_days: int = 30
    min_purchase: Decimal = Decimal("100")
    max_purchase: Decimal = Decimal("10000")
    reward_rate_bps: int = 500


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(ledger: Ledger, wallets=("owner", "bloch_pool", "alice", "bob")):
    for wallet in wallets:
        bloch = ledger.get_balance(wallet, "BLOCH").normalize()
        usdt = ledger.get_balance(wallet, "USDT").normalize()
        print(f"  {wallet:<12} BLOCH {bloch:>14,f}   USDT {usdt:>12,f}")


# ============================================================================
# SETUP (Steps 1-3)
# ============================================================================

def step_01_ledger():
    step_header(1, "The Ledger",
        "Balances live in a double-entry ledger with two fixed-precision assets.")

    print("""
    BLOCH is the token for sale (18 decimals). USDT is what buyers pay with
    (6 decimals). Amounts never round up: anything finer than an asset's
    precision is truncated.
    """)
    wait_for_enter()

    ledger = Ledger("sale", initial_time=CONFIG.start_time, verbose=False, test_mode=True)
    ledger.register_unit(token("BLOCH", "Bloch Token", decimal_places=18))
    ledger.register_unit(stablecoin("USDT", "Tether USD", decimal_places=6))
    for wallet in ("owner", "bloch_pool", "alice", "bob"):
        ledger.register_wallet(wallet)

    ledger.set_balance("bloch_pool", "BLOCH", CONFIG.inventory)
    ledger.set_balance("alice", "USDT", CONFIG.buyer_usdt)
    ledger.set_balance("bob", "USDT", CONFIG.buyer_usdt)

    section_header("Opening Balances")
    show_balances(ledger)
    return ledger


def step_02_pool(ledger: Ledger) -> Pool:
    step_header(2, "The Pool",
        "The pool is the only thing that moves sale assets, and only through an adapter.")

    print("""
    LedgerAdapter turns "move N of asset A from X to Y" into an atomic ledger
    transaction and raises TransferFailed if the ledger refuses it.
    """)
    wait_for_enter()

    pool = Pool(LedgerAdapter(ledger), owner="owner", verbose=True)

    section_header("Default Phases")
    for phase in pool.phases():
        print(f"  phase {phase.index}: ${Decimal(phase.price) / 10**6} per BLOCH, "
              f"{phase.allocation:,} BLOCH, {phase.status(pool.now()).value}")
    return pool


def step_03_limits(pool: Pool):
    step_header(3, "Purchase Limits",
        "The owner bounds the size of every single purchase.")
    wait_for_enter()

    pool.set_purchase_limits("owner", CONFIG.min_purchase, CONFIG.max_purchase)
    print(f"  min {pool.purchase_limits.min_amount} BLOCH, max {pool.purchase_limits.max_amount} BLOCH")

    try:
        pool.set_purchase_limits("alice", Decimal("0"), Decimal("1"))
    except PoolError as e:
        print(f"  alice tried to change them: {type(e).__name__}: {e}")


# ============================================================================
# SELLING (Steps 4-6)
# ============================================================================

def step_04_schedule(ledger: Ledger, pool: Pool):
    step_header(4, "Scheduling Phases",
        "Phase windows are half-open [start, end) and never overlap.")
    wait_for_enter()

    start = ledger.current_time + timedelta(seconds=2)
    end = start + timedelta(days=CONFIG.phase_days)
    pool.set_phase_timing("owner", 0, start, end)

    section_header("Overlapping Window")
    try:
        pool.set_phase_timing("owner", 1, start, end)
    except PoolError as e:
        print(f"  {type(e).__name__}: {e}")

    pool.set_phase_timing("owner", 1, end, end + timedelta(days=CONFIG.phase_days))
    ledger.advance_time(ledger.current_time + timedelta(seconds=3))
    print(f"\n  now {ledger.current_time}: phase 0 is {pool.phase_status(0).value}, "
          f"phase 1 is {pool.phase_status(1).value}")


def step_05_purchase(ledger: Ledger, pool: Pool):
    step_header(5, "Buying",
        "Buyers approve the pool wallet, then purchase. Payment and delivery settle together.")

    print("""
    cost = units * price / 10**6, truncated to whole USDT base units.
    """)
    wait_for_enter()

    cost = pool.quote_purchase(Decimal("1000"))
    print(f"  1000 BLOCH costs {cost} USDT")
    ledger.approve("alice", "bloch_pool", "USDT", cost)
    receipt = pool.purchase("alice", Decimal("1000"))
    print(f"  receipt: {receipt.sale_units.normalize()} BLOCH for {receipt.quote_cost} USDT ({receipt.exec_id})")

    section_header("Balances")
    show_balances(ledger)


def step_06_refusals(ledger: Ledger, pool: Pool):
    step_header(6, "Refused Purchases",
        "Every refusal is a typed exception and changes nothing.")
    wait_for_enter()

    attempts = [
        ("50 BLOCH (below minimum)", lambda: pool.purchase("bob", Decimal("50"))),
        ("20000 BLOCH (above maximum)", lambda: pool.purchase("bob", Decimal("20000"))),
        ("500 BLOCH without approval", lambda: pool.purchase("bob", Decimal("500"))),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except PoolError as e:
            print(f"  {label:<30} -> {type(e).__name__}: {e}")

    print(f"\n  bob still holds {ledger.get_balance('bob', 'USDT')} USDT")


# ============================================================================
# REWARDS (Steps 7-8)
# ============================================================================

def step_07_enable_rewards(ledger: Ledger, pool: Pool):
    step_header(7, "Rewards",
        "Buyers earn a share of what they spend, claimable once per interval.")
    wait_for_enter()

    pool.set_reward_parameters("owner", True, CONFIG.reward_rate_bps, timedelta(days=1))
    print(f"  rate {pool.reward_config.rate_basis_points} bps, interval {pool.reward_config.interval}")

    try:
        pool.claim_reward("alice")
    except PoolError as e:
        print(f"  immediate claim -> {type(e).__name__}: {e}")


def step_08_claim(ledger: Ledger, pool: Pool):
    step_header(8, "Claiming",
        "After the interval the accrued spend pays out and the bucket resets.")
    wait_for_enter()

    ledger.advance_time(ledger.current_time + timedelta(days=1, seconds=1))
    receipt = pool.claim_reward("alice")
    print(f"  alice received {receipt.reward} USDT, next claim at {receipt.next_claim_time}")
    print(f"  accrued spend now {pool.get_account('alice').accrued_quote_spend}")


# ============================================================================
# ADMINISTRATION (Steps 9-10)
# ============================================================================

def step_09_withdraw(ledger: Ledger, pool: Pool):
    step_header(9, "Withdrawing Proceeds",
        "The owner moves collected USDT out of the pool.")
    wait_for_enter()

    pool.withdraw_usdt("owner", Decimal("500"))
    print(f"  pool keeps {pool.quote_balance()} USDT")


def step_10_recover(ledger: Ledger, pool: Pool):
    step_header(10, "Recovering Unsold Tokens",
        "After a phase ends its unsold allocation returns to the owner, exactly once.")
    wait_for_enter()

    ledger.advance_time(ledger.current_time + timedelta(days=CONFIG.phase_days))
    print(f"  phase 0 is {pool.phase_status(0).value}")
    first = pool.recover_unsold_bloch("owner", 0)
    second = pool.recover_unsold_bloch("owner", 0)
    print(f"  first recovery {first.normalize():,f} BLOCH, second {second}")

    section_header("Closing Balances")
    show_balances(ledger)

    section_header("Conservation")
    check = ledger.verify_double_entry({
        "BLOCH": CONFIG.inventory,
        "USDT": 2 * CONFIG.buyer_usdt,
    })
    print(f"  supplies conserved: {check['valid']}")


def main():
    print("=" * 70)
    print("       BLOCH POOL - INTERACTIVE TUTORIAL")
    print("=" * 70)

    ledger = step_01_ledger()
    pool = step_02_pool(ledger)
    step_03_limits(pool)
    step_04_schedule(ledger, pool)
    step_05_purchase(ledger, pool)
    step_06_refusals(ledger, pool)
    step_07_enable_rewards(ledger, pool)
    step_08_claim(ledger, pool)
    step_09_withdraw(ledger, pool)
    step_10_recover(ledger, pool)

    assert pool.phase_status(0) == PhaseStatus.ENDED
    print("\nDone.")


if __name__ == "__main__":
    main()
