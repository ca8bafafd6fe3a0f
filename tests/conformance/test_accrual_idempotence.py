"""
Accrual Idempotence Conformance Tests

INVARIANT: catching up is independent of how the work is split.

    ∀ chunkings c of days [n+1, target):
        apply(c) produces the same table and the same undistributed penalties
        as a single unbounded catch-up

This is what makes the accrual crank safe to run in bounded steps.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from tests.helpers import LAUNCH, advance_to_day
from stakeledger import (
    Ledger, StakingConfig, StakingEngine, InterestTable, token,
    calculate_accrual,
)


CONFIG = StakingConfig(launch_time=LAUNCH)


class TestPureCatchUp:

    @given(
        total_supply=st.integers(min_value=0, max_value=10 ** 15),
        total_shares=st.integers(min_value=0, max_value=10 ** 9),
        penalties=st.integers(min_value=0, max_value=10 ** 12),
        target=st.integers(min_value=1, max_value=800),
        chunks=st.lists(st.integers(min_value=1, max_value=120), min_size=1, max_size=20),
    )
    @settings(max_examples=150, deadline=None)
    def test_chunked_equals_unbounded(self, total_supply, total_shares, penalties, target, chunks):
        """
        PROPERTY: any sequence of bounded catch-ups then a final unbounded one
        matches one unbounded catch-up.
        """
        whole = calculate_accrual(0, 0, target, total_supply, total_shares, penalties, CONFIG)

        table = InterestTable()
        pending = penalties
        for chunk in chunks + [None]:
            result = calculate_accrual(
                table.last_value, table.completed_days, target,
                total_supply, total_shares, pending, CONFIG, max_days=chunk,
            )
            table.extend(result)
            pending = result.undistributed_penalties

        assert table.entries()[1:] == whole.entries
        assert pending == whole.undistributed_penalties
        assert table.completed_days == max(target - 1, 0)

    @given(
        total_supply=st.integers(min_value=0, max_value=10 ** 15),
        total_shares=st.integers(min_value=1, max_value=10 ** 9),
        penalties=st.integers(min_value=0, max_value=10 ** 12),
        target=st.integers(min_value=2, max_value=800),
    )
    @settings(max_examples=100, deadline=None)
    def test_repeat_catch_up_is_noop(self, total_supply, total_shares, penalties, target):
        """
        PROPERTY: a second catch-up to the same day writes nothing.
        """
        first = calculate_accrual(0, 0, target, total_supply, total_shares, penalties, CONFIG)
        again = calculate_accrual(
            first.last_value, first.completed_days, target,
            total_supply, total_shares, first.undistributed_penalties, CONFIG,
        )
        assert again.is_empty()
        assert again.last_value == first.last_value
        assert first.undistributed_penalties == 0


class TestEngineCrank:

    @given(
        end_day=st.integers(min_value=2, max_value=900),
        step=st.integers(min_value=1, max_value=200),
    )
    @settings(max_examples=40, deadline=None)
    def test_bounded_crank_matches_lazy_close(self, end_day, step):
        """
        PROPERTY: cranking in bounded steps and closing lazily give the same settlement.
        """
        def build():
            ledger = Ledger("crank", LAUNCH, verbose=False)
            ledger.register_unit(token("STK", "Stake Token"))
            ledger.register_wallet("alice")
            ledger.mint("alice", "STK", 10_000_000)
            engine = StakingEngine(ledger, "STK", CONFIG)
            engine.create_lock("alice", 1_000_000, 365)
            advance_to_day(engine, end_day)
            return engine

        cranked, lazy = build(), build()
        while cranked.accrue_interest(max_days=step):
            pass
        assert cranked.interest_table.completed_days == end_day - 1
        assert lazy.interest_table.completed_days == 0

        assert cranked.close_lock("alice", 0, 1) == lazy.close_lock("alice", 0, 1)
        assert cranked.interest_table.entries() == lazy.interest_table.entries()
        assert cranked.snapshot() == lazy.snapshot()
