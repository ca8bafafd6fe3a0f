"""
accrual.py - Interest accrual engine

Maintains the cumulative interest-per-share table and computes lazy catch-ups.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. calculate_accrual() is a pure function: given the last table value, the
   completed-day cursor, the target day and the supply figures, it returns an
   AccrualResult describing the entries to append. Nothing is mutated.

2. InterestTable.extend() appends an AccrualResult once the transaction that
   carries the matching GlobalState has been applied, so a failed operation
   never leaves the table ahead of the pool state.

Key Formulas:
    daily(d)      = total_supply // interest_rate_divisor(d)
                    (+ undistributed penalties on the first day of a catch-up)
    per_share(d)  = daily(d) * INTEREST_PRECISION // total_shares   (0 if no shares)
    table[d]      = table[d - 1] + per_share(d)
    interest      = shares * (table[last] - table[first - 1]) // INTEREST_PRECISION

Today's interest is never pre-written: a catch-up to target_day writes days
strictly before target_day. Catching up in one call or in several bounded
calls gives the same table.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import StakingConfig
from .core import INTEREST_PRECISION, LedgerError


def interest_rate_divisor(day: int, config: StakingConfig) -> int:
    """
    Divisor of the total supply paid as interest on day.

    The base divisor applies outside the boost window. Inside it, each of
    the boost_periods sub-periods halves the previous divisor.
    """
    offset = day - config.boost_start_day
    if 0 <= offset < config.boost_period_days * config.boost_periods:
        return config.boost_initial_divisor // 2 ** (offset // config.boost_period_days)
    return config.base_rate_divisor


@dataclass(frozen=True, slots=True)
class AccrualResult:
    """
    Outcome of a catch-up computation, not yet applied.

    entries[i] is the cumulative value for day first_day + i.
    last_value is the table value at completed_days after the catch-up.
    """
    first_day: int
    entries: Tuple[int, ...]
    completed_days: int
    undistributed_penalties: int
    last_value: int

    @property
    def days_processed(self) -> int:
        return len(self.entries)

    def is_empty(self) -> bool:
        return not self.entries


def calculate_accrual(
    last_value: int,
    num_completed_days: int,
    target_day: int,
    total_supply: int,
    total_shares: int,
    undistributed_penalties: int,
    config: StakingConfig,
    max_days: Optional[int] = None,
) -> AccrualResult:
    """
    Compute the table entries needed to complete every day before target_day.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        last_value: Table value at num_completed_days
        num_completed_days: Last day already in the table (the resumable cursor)
        target_day: Current day; days up to target_day - 1 are completed
        total_supply: Circulating token supply used for every day of this catch-up
        total_shares: Share supply used for every day of this catch-up
        undistributed_penalties: Forfeitures folded into the first processed day
        config: Interest schedule
        max_days: Optional cap on days processed by this call

    Returns:
        AccrualResult; empty when target_day <= num_completed_days + 1.
        With no shares outstanding, penalties stay undistributed.
    """
    first_day = num_completed_days + 1
    last_day = target_day - 1
    if max_days is not None:
        if max_days < 0:
            raise ValueError(f"max_days must be non-negative, got {max_days}")
        last_day = min(last_day, num_completed_days + max_days)

    if last_day < first_day:
        return AccrualResult(
            first_day=first_day,
            entries=(),
            completed_days=num_completed_days,
            undistributed_penalties=undistributed_penalties,
            last_value=last_value,
        )

    entries: List[int] = []
    running = last_value
    pending = undistributed_penalties
    for day in range(first_day, last_day + 1):
        daily = total_supply // interest_rate_divisor(day, config)
        if total_shares:
            daily += pending
            pending = 0
            running += daily * INTEREST_PRECISION // total_shares
        entries.append(running)

    return AccrualResult(
        first_day=first_day,
        entries=tuple(entries),
        completed_days=last_day,
        undistributed_penalties=pending,
        last_value=running,
    )


class InterestTable:
    """
    Append-only cumulative interest-per-share table.

    Entry 0 is 0; entry d is the cumulative interest per share (scaled by
    INTEREST_PRECISION) through day d. Entries never decrease.
    """

    def __init__(self):
        self._prefix: List[int] = [0]

    def __len__(self) -> int:
        return len(self._prefix)

    @property
    def completed_days(self) -> int:
        return len(self._prefix) - 1

    @property
    def last_value(self) -> int:
        return self._prefix[-1]

    def entries(self) -> Tuple[int, ...]:
        return tuple(self._prefix)

    def value_at(self, day: int, pending: Optional[AccrualResult] = None) -> int:
        """
        Cumulative value through day, looking into pending entries not yet applied.

        Raises:
            LedgerError: If day has not been accrued
        """
        if day < 0:
            raise ValueError(f"day must be non-negative, got {day}")
        if day < len(self._prefix):
            return self._prefix[day]
        if pending is not None and pending.first_day <= day <= pending.completed_days:
            return pending.entries[day - pending.first_day]
        raise LedgerError(f"Interest not accrued through day {day}")

    def interest_for(
        self,
        shares: int,
        first_day: int,
        last_day: int,
        pending: Optional[AccrualResult] = None,
    ) -> int:
        """
        Interest earned by shares over days first_day..last_day inclusive.

        Returns 0 for an empty range.
        """
        if last_day < first_day:
            return 0
        earned = self.value_at(last_day, pending) - self.value_at(first_day - 1, pending)
        return shares * earned // INTEREST_PRECISION

    def extend(self, result: AccrualResult) -> None:
        """
        Append the entries of a catch-up.

        Raises:
            LedgerError: If the result was computed against a different cursor
        """
        if result.is_empty():
            return
        if result.first_day != len(self._prefix):
            raise LedgerError(
                f"Accrual starts at day {result.first_day} but table is complete "
                f"through day {self.completed_days}"
            )
        self._prefix.extend(result.entries)

    def copy(self) -> InterestTable:
        cloned = InterestTable()
        cloned._prefix = list(self._prefix)
        return cloned
