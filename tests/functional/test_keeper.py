"""
test_keeper.py - Keeper lifecycle engine scenarios

Tests the LifecycleEngine driving a staking pool through time:
- accrual cranking, bounded per step
- automatic settlement of overdue locks
- pre-launch steps
"""

import pytest
from datetime import datetime

from tests.helpers import FLAT_CONFIG
from stakeledger import Ledger, LifecycleEngine, StakingEngine, token, CUSTODY_WALLET


def _at(day: int) -> datetime:
    return FLAT_CONFIG.start_of_day(day)


class TestAccrualCrank:

    def test_step_accrues_to_yesterday(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 365)
        keeper = LifecycleEngine(funded_engine)
        assert keeper.step(_at(101)) == []
        assert funded_engine.snapshot().num_completed_days == 100
        assert funded_engine.preview_interest("alice", 0, 1) == 100_000

    def test_bounded_step(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 365)
        keeper = LifecycleEngine(funded_engine, max_days_per_step=100)
        keeper.step(_at(366))
        assert funded_engine.snapshot().num_completed_days == 100
        keeper.step(_at(366))
        assert funded_engine.snapshot().num_completed_days == 200

        settlement = funded_engine.close_lock("alice", 0, 1)
        assert settlement.interest == 365_000

    def test_invalid_bound_raises(self, funded_engine):
        with pytest.raises(ValueError):
            LifecycleEngine(funded_engine, max_days_per_step=0)

    def test_without_keeper_wallet_overdue_locks_stay_open(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 365)
        keeper = LifecycleEngine(funded_engine)
        assert keeper.step(_at(800)) == []
        assert [lock.lock_id for lock in keeper.overdue_locks()] == [1]
        assert funded_engine.ledger.get_balance(CUSTODY_WALLET, "STK") == 1_000_000


class TestOverdueSettlement:

    def test_run_settles_overdue_lock(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 365)
        keeper = LifecycleEngine(funded_engine, keeper_wallet="keeper")

        settlements = keeper.run([_at(100), _at(366), _at(730), _at(731)])

        assert len(settlements) == 1
        settlement = settlements[0]
        assert settlement.day == 731
        assert settlement.caller == "keeper"
        assert settlement.recipient == "alice"
        assert settlement.interest == 365_000
        assert settlement.penalty == 365_000
        assert settlement.payout == 1_000_000
        assert funded_engine.ledger.get_balance("alice", "STK") == 10_000_000
        assert funded_engine.verify_share_supply()['valid']

    def test_settles_in_lock_id_order_despite_index_moves(self, two_holder_engine):
        engine = two_holder_engine
        engine.create_lock("alice", 1_000_000, 10)
        engine.create_lock("alice", 1_000_000, 20)
        engine.create_lock("bob", 1_000_000, 10)
        engine.create_lock("alice", 1_000_000, 3650)
        keeper = LifecycleEngine(engine, keeper_wallet="keeper")

        settlements = keeper.step(_at(400))

        assert [s.lock.lock_id for s in settlements] == [1, 2, 3]
        assert [lock.lock_id for lock in engine.locks_of("alice")] == [4]
        assert engine.verify_share_supply()['valid']
        assert engine.ledger.verify_double_entry()['valid']

    def test_bounded_keeper_works_off_backlog_before_settling(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 365)
        keeper = LifecycleEngine(funded_engine, keeper_wallet="keeper", max_days_per_step=10)

        assert keeper.step(_at(800)) == []
        assert funded_engine.snapshot().num_completed_days == 10
        assert not keeper.caught_up()
        assert [lock.lock_id for lock in keeper.overdue_locks()] == [1]

        # 799 days need 80 bounded steps; the last one also settles
        assert keeper.run([_at(800)] * 78) == []
        assert funded_engine.snapshot().num_completed_days == 790

        settlements = keeper.step(_at(800))
        assert funded_engine.snapshot().num_completed_days == 799
        assert [s.lock.lock_id for s in settlements] == [1]
        assert settlements[0].interest == 365_000
        assert settlements[0].payout == 1_000_000

    def test_no_step_writes_more_than_the_bound(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 10)
        funded_engine.create_lock("alice", 1_000_000, 20)
        keeper = LifecycleEngine(funded_engine, keeper_wallet="keeper", max_days_per_step=25)

        completed = [funded_engine.snapshot().num_completed_days]
        settled = []
        for _ in range(20):
            settled.extend(keeper.step(_at(500)))
            completed.append(funded_engine.snapshot().num_completed_days)

        assert all(b - a <= 25 for a, b in zip(completed, completed[1:]))
        assert completed[-1] == 499
        assert [s.lock.lock_id for s in settled] == [1, 2]

    def test_nothing_overdue_yet(self, funded_engine):
        funded_engine.create_lock("alice", 1_000_000, 365)
        keeper = LifecycleEngine(funded_engine, keeper_wallet="keeper")
        assert keeper.step(_at(730)) == []
        assert keeper.overdue_locks() == []


class TestPreLaunch:

    def test_step_before_launch_only_moves_clock(self):
        ledger = Ledger("test", datetime(2023, 12, 1), verbose=False)
        ledger.register_unit(token("STK", "Stake Token"))
        engine = StakingEngine(ledger, "STK", FLAT_CONFIG)
        keeper = LifecycleEngine(engine, keeper_wallet="keeper")

        assert keeper.step(datetime(2023, 12, 15)) == []
        assert ledger.current_time == datetime(2023, 12, 15)
        assert engine.snapshot().num_completed_days == 0
