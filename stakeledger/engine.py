"""
engine.py - Lock lifecycle controller

StakingEngine opens and closes time-locks on top of a token Ledger.

Each operation:
1. validates its inputs (nothing is mutated on failure)
2. reads the pool's GlobalState and computes the interest catch-up to today
3. computes the lifecycle effect (shares for a new lock, or interest,
   penalty, payout and share price for a closing one)
4. executes the token moves and the new GlobalState as ONE ledger transaction
5. only once that transaction is APPLIED, appends the catch-up to the
   interest table and updates the lock registry

Lock states are Open -> Closing -> Closed; a closed lock is simply removed.

Token flows:
    open:   owner  -> custody   principal
    close:  system -> custody   interest        (issued)
            custody -> owner    payout          (principal + interest - penalty)
            custody -> system   penalty         (re-issued later as interest)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from .accrual import AccrualResult, InterestTable, calculate_accrual
from .config import DEFAULT_CONFIG, StakingConfig
from .core import (
    Move, Transaction, TransactionOrigin, OriginType, ExecuteResult, RejectionReason,
    SYSTEM_WALLET, CUSTODY_WALLET,
    LedgerError, InsufficientFunds, InvalidDuration, DeadlineNotReached,
    build_transaction,
)
from .ledger import Ledger
from .penalty import compute_penalty
from .pool import GlobalState, commit_snapshot, create_stake_pool_unit, read_snapshot
from .pricing import rebase_share_price, shares_for
from .registry import Lock, LockRegistry


@dataclass(frozen=True, slots=True)
class LockSettlement:
    """
    Result of closing a lock.

    payout = lock.principal + interest - penalty, paid to recipient (always
    the lock owner). caller is whoever triggered the close.
    """
    lock: Lock
    day: int
    interest: int
    penalty: int
    payout: int
    share_price_before: int
    share_price_after: int
    recipient: str
    caller: str

    @property
    def rebased(self) -> bool:
        return self.share_price_after != self.share_price_before


class StakingEngine:
    """
    Lock lifecycle controller for one stake pool.

    Registers the pool unit and the custody wallet on the ledger. The
    ledger's logical clock is the staking clock.

    Example:
        ledger = Ledger("main", initial_time=datetime(2024, 1, 1))
        ledger.register_unit(token("STK", "Stake Token"))
        ledger.register_wallet("alice")
        ledger.mint("alice", "STK", 10_000_000)

        engine = StakingEngine(ledger, "STK")
        lock = engine.create_lock("alice", 1_000_000, 365)

        ledger.advance_time(datetime(2025, 1, 1))
        settlement = engine.close_lock("alice", 0, lock.lock_id)
    """

    def __init__(
        self,
        ledger: Ledger,
        token_symbol: str,
        config: StakingConfig = DEFAULT_CONFIG,
        pool_symbol: str = "STAKE_POOL",
        custody_wallet: str = CUSTODY_WALLET,
    ):
        """
        Args:
            ledger: Token ledger; token_symbol must already be registered
            token_symbol: Token that is locked and paid as interest
            config: Staking parameters
            pool_symbol: Symbol of the pool unit holding GlobalState
            custody_wallet: Wallet holding locked principal
        """
        ledger.get_unit(token_symbol)
        self.ledger = ledger
        self.token_symbol = token_symbol
        self.config = config
        self.pool_symbol = pool_symbol
        self.custody_wallet = custody_wallet
        self.registry = LockRegistry()
        self.interest_table = InterestTable()
        self.verbose = ledger.verbose

        ledger.register_unit(create_stake_pool_unit(pool_symbol, token_symbol, config))
        if not ledger.is_registered(custody_wallet):
            ledger.register_wallet(custody_wallet)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def current_day(self) -> int:
        """1-indexed day of the ledger's current time."""
        return self.config.day_of(self.ledger.current_time)

    def snapshot(self) -> GlobalState:
        """Current GlobalState of the pool."""
        return read_snapshot(self.ledger, self.pool_symbol)

    def preview_shares(self, principal: int, duration_days: int) -> int:
        """Shares a new lock would receive at the current share price."""
        self._validate_duration(duration_days)
        return shares_for(
            principal, duration_days, self.snapshot().share_price, self.config.max_duration_days
        )

    def preview_interest(self, owner: str, index: int, lock_id: int) -> int:
        """
        Interest accrued so far by a lock.

        Reads the interest table as it stands, without catching it up; the
        figure lags until the next operation or accrue_interest() writes the
        missing days.
        """
        lock = self.registry.lookup(owner, index, lock_id)
        last_day = min(self.current_day(), lock.end_day) - 1
        last_day = min(last_day, self.interest_table.completed_days)
        return self.interest_table.interest_for(lock.shares, lock.day_created, last_day)

    def find_lock_index(self, lock_id: int) -> int:
        """Current index of an open lock within its owner's list."""
        return self.registry.index_of(lock_id)

    def locks_of(self, owner: str) -> List[Lock]:
        """Owner's open locks in index order."""
        return self.registry.locks_of(owner)

    def verify_share_supply(self) -> Dict[str, Any]:
        """
        Recompute aggregates from the open locks and compare with the recorded ones.

        Returns:
            Dict with keys:
            - 'valid': bool - both checks hold
            - 'total_shares': recorded GlobalState.total_shares
            - 'sum_of_lock_shares': sum of shares over open locks
            - 'custody_balance': token balance of the custody wallet
            - 'sum_of_principal': sum of principal over open locks
        """
        locks = list(self.registry.open_locks())
        recorded = self.snapshot().total_shares
        actual = sum(lock.shares for lock in locks)
        custody = self.ledger.get_balance(self.custody_wallet, self.token_symbol)
        principal = sum(lock.principal for lock in locks)
        return {
            'valid': recorded == actual and custody == principal,
            'total_shares': recorded,
            'sum_of_lock_shares': actual,
            'custody_balance': custody,
            'sum_of_principal': principal,
        }

    # ========================================================================
    # LIFECYCLE OPERATIONS
    # ========================================================================

    def create_lock(self, owner: str, principal: int, duration_days: int) -> Lock:
        """
        Lock principal tokens of owner for duration_days.

        Raises:
            InvalidDuration: duration_days outside the configured range
            ValueError: principal is not a positive int
            InsufficientFunds: owner's balance is below principal
            PhaseNotStarted: the ledger clock is before launch
        """
        self._validate_duration(duration_days)
        if isinstance(principal, bool) or not isinstance(principal, int) or principal <= 0:
            raise ValueError(f"principal must be a positive int, got {principal!r}")
        day = self.current_day()
        balance = self.ledger.get_balance(owner, self.token_symbol)
        if balance < principal:
            raise InsufficientFunds(
                f"{owner} holds {balance} {self.token_symbol}, cannot lock {principal}"
            )

        snapshot = self.snapshot()
        accrual = self._catch_up(snapshot, day)

        shares = shares_for(principal, duration_days, snapshot.share_price, self.config.max_duration_days)
        lock = Lock(
            lock_id=snapshot.latest_lock_id + 1,
            owner=owner,
            principal=principal,
            shares=shares,
            day_created=day,
            duration_days=duration_days,
        )
        new_state = replace(
            snapshot,
            total_shares=snapshot.total_shares + shares,
            latest_lock_id=lock.lock_id,
            num_completed_days=accrual.completed_days,
            undistributed_penalties=accrual.undistributed_penalties,
        )
        moves = [Move(principal, self.token_symbol, owner, self.custody_wallet,
                      f"lock_{lock.lock_id}_principal")]
        self._commit(moves, new_state, self._origin(OriginType.USER_ACTION, owner, "LOCK_START"), accrual)

        index = self.registry.append(lock)
        if self.verbose:
            print(f"[STAKE] day {day}: {owner} opened lock {lock.lock_id} at index {index}: "
                  f"{principal} {self.token_symbol} for {duration_days} days -> {shares} shares")
        return lock

    def close_lock(self, owner: str, index: int, lock_id: int) -> LockSettlement:
        """
        Close owner's lock at index, paying principal + interest - penalty to owner.

        Raises:
            LockNotFound: owner has no lock at index
            LockIdMismatch: index does not hold lock_id (resolve it with find_lock_index)
        """
        lock = self.registry.lookup(owner, index, lock_id)
        day = self.current_day()
        return self._settle(lock, index, day, owner, OriginType.USER_ACTION, "LOCK_END")

    def close_overdue_lock(self, caller: str, owner: str, index: int, lock_id: int) -> LockSettlement:
        """
        Close another owner's lock once it is late_deadline_days past its end day.

        The payout always goes to the lock's owner, never to caller.

        Raises:
            LockNotFound / LockIdMismatch: as for close_lock
            DeadlineNotReached: the late deadline has not passed
        """
        lock = self.registry.lookup(owner, index, lock_id)
        day = self.current_day()
        deadline = lock.end_day + self.config.late_deadline_days
        if day < deadline:
            raise DeadlineNotReached(
                f"Lock {lock_id} can be closed by others from day {deadline}, today is day {day}"
            )
        return self._settle(lock, index, day, caller, OriginType.KEEPER, "LOCK_END_OVERDUE")

    def accrue_interest(self, max_days: Optional[int] = None, caller: str = "lifecycle") -> int:
        """
        Write missing interest table days up to yesterday, at most max_days of them.

        Resumable: repeated bounded calls reach the same table as one unbounded call.

        Returns:
            Number of days written
        """
        snapshot = self.snapshot()
        accrual = self._catch_up(snapshot, self.current_day(), max_days)
        if accrual.is_empty():
            return 0
        new_state = replace(
            snapshot,
            num_completed_days=accrual.completed_days,
            undistributed_penalties=accrual.undistributed_penalties,
        )
        self._commit([], new_state, self._origin(OriginType.LIFECYCLE, caller, "ACCRUE"), accrual)
        return accrual.days_processed

    def clone(self) -> StakingEngine:
        """Independent copy of the engine and its ledger, for what-if runs."""
        cloned = StakingEngine.__new__(StakingEngine)
        cloned.ledger = self.ledger.clone()
        cloned.token_symbol = self.token_symbol
        cloned.config = self.config
        cloned.pool_symbol = self.pool_symbol
        cloned.custody_wallet = self.custody_wallet
        cloned.registry = self.registry.copy()
        cloned.interest_table = self.interest_table.copy()
        cloned.verbose = self.verbose
        return cloned

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _validate_duration(self, duration_days: int) -> None:
        low, high = self.config.min_duration_days, self.config.max_duration_days
        if isinstance(duration_days, bool) or not isinstance(duration_days, int):
            raise InvalidDuration(f"duration_days must be an int, got {duration_days!r}")
        if not low <= duration_days <= high:
            raise InvalidDuration(f"duration_days must be in [{low}, {high}], got {duration_days}")

    def _origin(self, origin_type: OriginType, source_id: str, event: str) -> TransactionOrigin:
        return TransactionOrigin(origin_type, source_id, self.pool_symbol, event)

    def _catch_up(self, snapshot: GlobalState, day: int, max_days: Optional[int] = None) -> AccrualResult:
        if self.interest_table.completed_days != snapshot.num_completed_days:
            raise LedgerError(
                f"Interest table holds {self.interest_table.completed_days} days but pool "
                f"records {snapshot.num_completed_days}"
            )
        return calculate_accrual(
            last_value=self.interest_table.last_value,
            num_completed_days=snapshot.num_completed_days,
            target_day=day,
            total_supply=self.ledger.total_supply(self.token_symbol),
            total_shares=snapshot.total_shares,
            undistributed_penalties=snapshot.undistributed_penalties,
            config=self.config,
            max_days=max_days,
        )

    def _commit(
        self,
        moves: List[Move],
        new_state: GlobalState,
        origin: TransactionOrigin,
        accrual: AccrualResult,
    ) -> Transaction:
        change = commit_snapshot(self.ledger, self.pool_symbol, new_state)
        pending = build_transaction(self.ledger, moves, [change], origin)
        result = self.ledger.execute(pending)
        if result != ExecuteResult.APPLIED:
            if self.ledger.last_rejection_reason is RejectionReason.INSUFFICIENT_FUNDS:
                raise InsufficientFunds(self.ledger.last_rejection)
            raise LedgerError(f"{origin.event_type} {result.value}: {self.ledger.last_rejection}")
        self.interest_table.extend(accrual)
        return self.ledger.transaction_log[-1]

    def _settle(
        self,
        lock: Lock,
        index: int,
        day: int,
        caller: str,
        origin_type: OriginType,
        event: str,
    ) -> LockSettlement:
        snapshot = self.snapshot()
        accrual = self._catch_up(snapshot, day)

        # Interest stops at the scheduled end day even when closed late
        last_day = min(day, lock.end_day) - 1
        interest = self.interest_table.interest_for(lock.shares, lock.day_created, last_day, accrual)
        penalty = compute_penalty(day, lock.end_day, lock, interest, self.config.late_deadline_days)
        payout = lock.principal + interest - penalty
        new_price = rebase_share_price(
            payout, lock.duration_days, lock.shares, snapshot.share_price, self.config.max_duration_days
        )

        new_state = replace(
            snapshot,
            total_shares=snapshot.total_shares - lock.shares,
            share_price=new_price,
            num_completed_days=accrual.completed_days,
            undistributed_penalties=accrual.undistributed_penalties + penalty,
        )

        prefix = f"lock_{lock.lock_id}"
        moves = []
        if interest:
            moves.append(Move(interest, self.token_symbol, SYSTEM_WALLET, self.custody_wallet,
                              f"{prefix}_interest"))
        if payout:
            moves.append(Move(payout, self.token_symbol, self.custody_wallet, lock.owner,
                              f"{prefix}_payout"))
        if penalty:
            moves.append(Move(penalty, self.token_symbol, self.custody_wallet, SYSTEM_WALLET,
                              f"{prefix}_penalty"))
        self._commit(moves, new_state, self._origin(origin_type, caller, event), accrual)
        self.registry.remove_at(lock.owner, index)

        settlement = LockSettlement(
            lock=lock,
            day=day,
            interest=interest,
            penalty=penalty,
            payout=payout,
            share_price_before=snapshot.share_price,
            share_price_after=new_price,
            recipient=lock.owner,
            caller=caller,
        )
        if self.verbose:
            print(f"[STAKE] day {day}: lock {lock.lock_id} of {lock.owner} closed by {caller}: "
                  f"interest={interest} penalty={penalty} payout={payout} "
                  f"share_price={snapshot.share_price}->{new_price}")
        return settlement
