"""
lifecycle_engine.py - Keeper lifecycle engine

Drives a StakingEngine through time the way an off-chain keeper would.

Execution order each step():
1. Advance ledger time
2. Crank interest accrual (optionally bounded to max_days_per_step days)
3. If a keeper wallet is set and the interest table has caught up to
   yesterday, settle every lock past its late deadline, in lock id order

A bounded keeper works a backlog off over several steps before settling,
so no step writes more than max_days_per_step interest days.

The transaction log is the audit trail - no separate keeper status tracking needed.
"""

from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from .engine import LockSettlement, StakingEngine
from .registry import Lock


class LifecycleEngine:
    """
    Keeper for one stake pool.

    Without a keeper wallet the engine only cranks accrual; overdue locks are
    left for their owners (or another keeper) to close.
    """

    def __init__(
        self,
        staking: StakingEngine,
        keeper_wallet: Optional[str] = None,
        max_days_per_step: Optional[int] = None,
    ):
        """
        Args:
            staking: The staking engine to drive
            keeper_wallet: Caller recorded on overdue closes; None disables them
            max_days_per_step: Cap on interest days written per step (None = all)
        """
        if max_days_per_step is not None and max_days_per_step < 1:
            raise ValueError(f"max_days_per_step must be positive, got {max_days_per_step}")
        self.staking = staking
        self.keeper_wallet = keeper_wallet
        self.max_days_per_step = max_days_per_step
        self.verbose = staking.verbose

    def overdue_locks(self) -> List[Lock]:
        """Open locks anyone may close today, in lock id order."""
        day = self.staking.current_day()
        late = self.staking.config.late_deadline_days
        return [lock for lock in self.staking.registry.open_locks() if day >= lock.end_day + late]

    def caught_up(self) -> bool:
        """True when every completed day is in the interest table."""
        return self.staking.interest_table.completed_days == self.staking.current_day() - 1

    def step(self, timestamp: datetime) -> List[LockSettlement]:
        """
        Advance time, crank accrual and settle overdue locks.

        Nothing but the clock moves before launch.

        Returns:
            Settlements of the locks closed this step
        """
        self.staking.ledger.advance_time(timestamp)
        if timestamp < self.staking.config.launch_time:
            return []

        caller = self.keeper_wallet or "lifecycle"
        days = self.staking.accrue_interest(self.max_days_per_step, caller=caller)
        if self.verbose and days:
            print(f"[KEEPER] accrued {days} days through day "
                  f"{self.staking.interest_table.completed_days}")

        settlements: List[LockSettlement] = []
        if self.keeper_wallet is None or not self.caught_up():
            return settlements

        for lock in self.overdue_locks():
            index = self.staking.find_lock_index(lock.lock_id)
            settlements.append(
                self.staking.close_overdue_lock(self.keeper_wallet, lock.owner, index, lock.lock_id)
            )
        if self.verbose and settlements:
            print(f"[KEEPER] {self.keeper_wallet} settled {len(settlements)} overdue locks")
        return settlements

    def run(self, timestamps: List[datetime]) -> List[LockSettlement]:
        """
        Run the keeper through a sequence of timestamps.

        Returns:
            All settlements, in the order they happened
        """
        all_settlements: List[LockSettlement] = []
        for timestamp in timestamps:
            all_settlements.extend(self.step(timestamp))
        return all_settlements
