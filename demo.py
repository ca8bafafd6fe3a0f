#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn Time-Lock Staking Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-2:  Foundation    - The token ledger, the stake pool, the day clock
  3-4:  Locks         - Shares, the duration bonus, interest accrual
  5-7:  Closing       - On-time close and share price rebase, early and late penalties
  8-9:  Operations    - Stale indices, the keeper, conservation proof

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
import sys

from stakeledger import (
    Ledger, StakingConfig, StakingEngine, LifecycleEngine,
    LockIdMismatch,
    token, bonus_multiplier,
    CUSTODY_WALLET, SYSTEM_WALLET, FIXED_POINT_SCALE,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    launch_time: datetime = datetime(2024, 1, 1)

    # Initial funding
    alice_initial: int = 10_000_000
    bob_initial: int = 5_000_000

    # Locks
    alice_principal: int = 1_000_000
    alice_duration: int = 365
    bob_principal: int = 2_000_000
    bob_duration: int = 100


CONFIG = DemoConfig()

# Flat interest schedule so every figure can be checked by hand
STAKING = StakingConfig(launch_time=CONFIG.launch_time, boost_start_day=100_000)

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def goto_day(engine: StakingEngine, day: int):
    print(f">>> ledger.advance_time(start_of_day({day}))")
    engine.ledger.advance_time(engine.config.start_of_day(day))


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_token_ledger() -> Ledger:
    """Create the token ledger and fund two holders."""
    step_header(1, "The Token Ledger",
        "Tokens are issued from the system wallet; balances are exact ints.")

    ledger = Ledger("staking", initial_time=CONFIG.launch_time, verbose=False)
    ledger.register_unit(token("STK", "Stake Token"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")

    print(f'>>> ledger.mint("alice", "STK", {CONFIG.alice_initial:,})')
    ledger.mint("alice", "STK", CONFIG.alice_initial)
    print(f'>>> ledger.mint("bob", "STK", {CONFIG.bob_initial:,})')
    ledger.mint("bob", "STK", CONFIG.bob_initial)

    section_header("Balances")
    for wallet in ("alice", "bob", SYSTEM_WALLET):
        print(f"  {wallet:<10} {ledger.get_balance(wallet, 'STK'):>14,}")
    print(f"\n  circulating supply: {ledger.total_supply('STK'):,}")
    return ledger


def step_02_stake_pool(ledger: Ledger) -> StakingEngine:
    """Attach a staking engine to the ledger."""
    step_header(2, "The Stake Pool",
        "Pool aggregates live in a ledger unit; principal sits in a custody wallet.")

    print('>>> engine = StakingEngine(ledger, "STK", config)')
    engine = StakingEngine(ledger, "STK", STAKING)

    section_header("Initial Pool State")
    print(f"  {engine.snapshot()}")
    print(f"  current day: {engine.current_day()}")
    print("""
    Days are counted from launch: the launch instant is day 1.
    Interest for a day is only written once that day is over.
    """)
    return engine


# ============================================================================
# PHASE 2: LOCKS
# ============================================================================

def step_03_create_locks(engine: StakingEngine):
    """Lock tokens for a duration and receive shares."""
    step_header(3, "Creating Locks",
        "Longer locks buy more shares per token.")

    section_header("Duration Bonus")
    for days in (1, 100, 365, 1825, 3650):
        multiplier = bonus_multiplier(days) / FIXED_POINT_SCALE
        print(f"  {days:>5} days -> x{multiplier:.4f}")

    print()
    alice = engine.create_lock("alice", CONFIG.alice_principal, CONFIG.alice_duration)
    bob = engine.create_lock("bob", CONFIG.bob_principal, CONFIG.bob_duration)
    print(f"  alice: {alice}")
    print(f"  bob:   {bob}")
    print(f"\n  custody holds {engine.ledger.get_balance(CUSTODY_WALLET, 'STK'):,} STK")
    return alice, bob


def step_04_accrual(engine: StakingEngine, alice_lock):
    """Interest accrues lazily; anyone can crank it."""
    step_header(4, "Interest Accrual",
        "The interest table is caught up on demand, in bounded steps if needed.")

    goto_day(engine, 31)
    print(f"  preview before crank: {engine.preview_interest('alice', 0, alice_lock.lock_id):,}")
    print(">>> engine.accrue_interest(max_days=10)")
    engine.accrue_interest(max_days=10)
    print(f"  completed days: {engine.snapshot().num_completed_days}")
    print(">>> engine.accrue_interest()")
    engine.accrue_interest()
    print(f"  completed days: {engine.snapshot().num_completed_days}")
    print(f"  preview after crank:  {engine.preview_interest('alice', 0, alice_lock.lock_id):,}")


# ============================================================================
# PHASE 3: CLOSING
# ============================================================================

def step_05_early_close(engine: StakingEngine, bob_lock):
    """Close before the end day and pay the early penalty."""
    step_header(5, "Early Close",
        "Closing early forfeits (remaining/duration)^2 of principal plus all interest.")

    goto_day(engine, 51)
    settlement = engine.close_lock("bob", 0, bob_lock.lock_id)
    print(f"  interest {settlement.interest:,}  penalty {settlement.penalty:,}  payout {settlement.payout:,}")
    print(f"  undistributed penalties: {engine.snapshot().undistributed_penalties:,}")
    print("""
    The penalty is not destroyed: it is folded into the next day's interest
    and shared among the remaining lockers.
    """)


def step_06_on_time_close(engine: StakingEngine, alice_lock):
    """Close on the end day and rebase the share price."""
    step_header(6, "On-Time Close",
        "A profitable close ratchets the share price up for future lockers.")

    goto_day(engine, alice_lock.end_day)
    settlement = engine.close_lock("alice", 0, alice_lock.lock_id)
    print(f"  interest {settlement.interest:,}  payout {settlement.payout:,}")
    print(f"  share price {settlement.share_price_before:,} -> {settlement.share_price_after:,}")


def step_07_late_close(engine: StakingEngine):
    """Leave a lock unclaimed past the late deadline."""
    step_header(7, "Late Close",
        "After end_day + 365 the interest is forfeited and anyone may close.")

    lock = engine.create_lock("alice", 500_000, 30)
    deadline = lock.end_day + engine.config.late_deadline_days
    goto_day(engine, deadline)
    settlement = engine.close_overdue_lock("bob", "alice", 0, lock.lock_id)
    print(f"  closed by {settlement.caller}, paid to {settlement.recipient}")
    print(f"  interest {settlement.interest:,}  penalty {settlement.penalty:,}  payout {settlement.payout:,}")


# ============================================================================
# PHASE 4: OPERATIONS
# ============================================================================

def step_08_stale_index(engine: StakingEngine):
    """Indices move when locks close; ids do not."""
    step_header(8, "Stale Indices",
        "Closing swaps the last lock into the freed slot; re-resolve by id.")

    locks = [engine.create_lock("alice", 1_000, 10) for _ in range(3)]
    engine.close_lock("alice", 0, locks[0].lock_id)
    try:
        engine.close_lock("alice", 2, locks[2].lock_id)
    except LockIdMismatch as exc:
        print(f"  LockIdMismatch: {exc} (current_index={exc.current_index})")
    index = engine.find_lock_index(locks[2].lock_id)
    engine.close_lock("alice", index, locks[2].lock_id)
    print(f"  closed lock {locks[2].lock_id} at index {index}")


def step_09_keeper_and_conservation(engine: StakingEngine):
    """Run a keeper and prove the books balance."""
    step_header(9, "Keeper and Conservation",
        "A keeper cranks accrual and settles overdue locks; every token is accounted for.")

    engine.create_lock("bob", 100_000, 10)
    keeper = LifecycleEngine(engine, keeper_wallet="keeper", max_days_per_step=200)
    start = engine.current_day()
    settlements = keeper.run([engine.config.start_of_day(start + n * 200) for n in range(1, 4)])
    for settlement in settlements:
        print(f"  keeper settled lock {settlement.lock.lock_id} of {settlement.recipient} on day {settlement.day}")

    section_header("Conservation")
    print(f"  share supply check: {engine.verify_share_supply()}")
    print(f"  double entry check: {engine.ledger.verify_double_entry()['valid']}")


def main():
    print("=" * 70)
    print("       TIME-LOCK STAKING TUTORIAL")
    print("=" * 70)

    ledger = step_01_token_ledger()
    wait_for_enter()
    engine = step_02_stake_pool(ledger)
    wait_for_enter()
    alice_lock, bob_lock = step_03_create_locks(engine)
    wait_for_enter()
    step_04_accrual(engine, alice_lock)
    wait_for_enter()
    step_05_early_close(engine, bob_lock)
    wait_for_enter()
    step_06_on_time_close(engine, alice_lock)
    wait_for_enter()
    step_07_late_close(engine)
    wait_for_enter()
    step_08_stale_index(engine)
    wait_for_enter()
    step_09_keeper_and_conservation(engine)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See stakeledger/engine.py for the lock lifecycle
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
