"""
stakeledger - Time-lock staking on a double-entry token ledger

Holders lock tokens for a chosen number of days and receive shares; daily
interest is paid pro rata to shares, early or very late closes forfeit
tokens that are redistributed to the remaining lockers.

Usage:
    from datetime import datetime
    from stakeledger import Ledger, StakingEngine, token

    ledger = Ledger("main", initial_time=datetime(2024, 1, 1))
    ledger.register_unit(token("STK", "Stake Token"))
    ledger.register_wallet("alice")
    ledger.mint("alice", "STK", 10_000_000)

    engine = StakingEngine(ledger, "STK")
    lock = engine.create_lock("alice", 1_000_000, 365)

    ledger.advance_time(datetime(2025, 1, 1))
    settlement = engine.close_lock("alice", 0, lock.lock_id)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    RejectionReason,
    LedgerError,
    InsufficientFunds,
    UnitNotRegistered,
    WalletNotRegistered,
    StakingError,
    InvalidDuration,
    LockNotFound,
    LockIdMismatch,
    DeadlineNotReached,
    PhaseNotStarted,
    PhaseClosed,
    token,
    SYSTEM_WALLET,
    CUSTODY_WALLET,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_STAKE_POOL,
    FIXED_POINT_SCALE,
    INTEREST_PRECISION,
)

# Ledger
from .ledger import Ledger

# Configuration
from .config import StakingConfig, DEFAULT_CONFIG

# Pool state
from .pool import (
    GlobalState,
    create_stake_pool_unit,
    read_snapshot,
    commit_snapshot,
)

# Pricing, penalties and accrual
from .pricing import bonus_multiplier, shares_for, rebased_price, rebase_share_price
from .penalty import compute_penalty
from .accrual import AccrualResult, InterestTable, calculate_accrual, interest_rate_divisor

# Locks
from .registry import Lock, LockRegistry

# Engines
from .engine import StakingEngine, LockSettlement
from .lifecycle_engine import LifecycleEngine


__version__ = "0.1.0"

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult', 'RejectionReason', 'token',
    'SYSTEM_WALLET', 'CUSTODY_WALLET', 'UNIT_TYPE_TOKEN', 'UNIT_TYPE_STAKE_POOL',
    'FIXED_POINT_SCALE', 'INTEREST_PRECISION',
    # Exceptions
    'LedgerError', 'InsufficientFunds',
    'UnitNotRegistered', 'WalletNotRegistered',
    'StakingError', 'InvalidDuration', 'LockNotFound', 'LockIdMismatch',
    'DeadlineNotReached', 'PhaseNotStarted', 'PhaseClosed',
    # Ledger
    'Ledger',
    # Config
    'StakingConfig', 'DEFAULT_CONFIG',
    # Pool
    'GlobalState', 'create_stake_pool_unit', 'read_snapshot', 'commit_snapshot',
    # Pricing / penalty / accrual
    'bonus_multiplier', 'shares_for', 'rebased_price', 'rebase_share_price',
    'compute_penalty',
    'AccrualResult', 'InterestTable', 'calculate_accrual', 'interest_rate_divisor',
    # Locks
    'Lock', 'LockRegistry',
    # Engines
    'StakingEngine', 'LockSettlement', 'LifecycleEngine',
]
