"""
pool.py - Stake pool global state

The stake pool is a ledger unit whose state holds the aggregate staking
figures. Reads go through read_snapshot(); writes are expressed as a
UnitStateChange from commit_snapshot() and become visible only when the
ledger executes the transaction that carries them.

    read_snapshot(view, pool)          -> GlobalState
    commit_snapshot(view, pool, state) -> UnitStateChange

No validation happens here; the lifecycle controller owns correctness.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict

from .config import StakingConfig
from .core import (
    LedgerView, Unit, UnitStateChange,
    UNIT_TYPE_STAKE_POOL,
    _freeze_state,
)


@dataclass(frozen=True, slots=True)
class GlobalState:
    """
    Immutable snapshot of the pool's aggregate state.

    total_shares always equals the sum of shares over open locks.
    share_price never decreases.
    num_completed_days is the last day written to the interest table (0 = none).
    latest_lock_id is the last id handed out; ids are never reused.
    undistributed_penalties are forfeitures waiting for the next accrual catch-up.
    """
    total_shares: int
    share_price: int
    num_completed_days: int
    latest_lock_id: int
    undistributed_penalties: int = 0


def create_stake_pool_unit(symbol: str, token_symbol: str, config: StakingConfig) -> Unit:
    """
    Create the stake pool unit holding GlobalState for staking in token_symbol.

    The pool starts with no shares, no completed days and the configured
    initial share price.
    """
    if not symbol or not symbol.strip():
        raise ValueError("pool symbol cannot be empty")
    if not token_symbol or not token_symbol.strip():
        raise ValueError("token_symbol cannot be empty")

    initial = GlobalState(
        total_shares=0,
        share_price=config.initial_share_price,
        num_completed_days=0,
        latest_lock_id=0,
    )
    return Unit(
        symbol=symbol,
        name=f"Stake Pool for {token_symbol}",
        unit_type=UNIT_TYPE_STAKE_POOL,
        _frozen_state=_freeze_state(to_state_dict(initial, token_symbol)),
    )


def read_snapshot(view: LedgerView, pool_symbol: str) -> GlobalState:
    """Load the pool's GlobalState from the ledger."""
    raw = view.get_unit_state(pool_symbol)
    return GlobalState(
        total_shares=raw['total_shares'],
        share_price=raw['share_price'],
        num_completed_days=raw['num_completed_days'],
        latest_lock_id=raw['latest_lock_id'],
        undistributed_penalties=raw.get('undistributed_penalties', 0),
    )


def to_state_dict(state: GlobalState, token_symbol: str) -> Dict[str, Any]:
    """Inverse of read_snapshot(): the dict stored as the pool unit's state."""
    return {
        'token': token_symbol,
        'total_shares': state.total_shares,
        'share_price': state.share_price,
        'num_completed_days': state.num_completed_days,
        'latest_lock_id': state.latest_lock_id,
        'undistributed_penalties': state.undistributed_penalties,
    }


def commit_snapshot(view: LedgerView, pool_symbol: str, new_state: GlobalState) -> UnitStateChange:
    """
    Express the replacement of the pool's GlobalState as a UnitStateChange.

    The old state is captured from the view, so the ledger rejects the
    transaction if the pool changed in between.
    """
    old = view.get_unit_state(pool_symbol)
    return UnitStateChange(
        unit=pool_symbol,
        old_state=old,
        new_state=to_state_dict(new_state, old['token']),
    )
