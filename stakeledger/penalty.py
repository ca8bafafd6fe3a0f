"""
penalty.py - Early and late close penalties

    early   (current_day <  end_day):
        penalty = principal * (1 - elapsed/duration)**2 + interest
    late    (current_day >= end_day + late_deadline_days):
        penalty = interest
    on time or within the grace window:
        penalty = 0

The principal part is floored. Penalties are never destroyed: the
controller hands them to the accrual engine for redistribution.
"""

from __future__ import annotations

from .registry import Lock


LATE_DEADLINE_DAYS = 365


def compute_penalty(
    current_day: int,
    end_day: int,
    lock: Lock,
    interest_accrued: int,
    late_deadline_days: int = LATE_DEADLINE_DAYS,
) -> int:
    """
    Tokens forfeited by closing lock on current_day.

    Args:
        current_day: Day of the close
        end_day: Scheduled end day of the lock
        lock: The lock being closed
        interest_accrued: Interest earned by the lock, capped at end_day

    Returns:
        Penalty in tokens, never more than principal + interest_accrued
    """
    if current_day < end_day:
        elapsed = max(current_day - lock.day_created, 0)
        remaining = lock.duration_days - elapsed
        principal_part = lock.principal * remaining * remaining // (lock.duration_days * lock.duration_days)
        return principal_part + interest_accrued
    if current_day >= end_day + late_deadline_days:
        return interest_accrued
    return 0
