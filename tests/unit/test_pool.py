"""
test_pool.py - Unit tests for the stake pool unit and GlobalState adapters
"""

import pytest
from dataclasses import replace

from stakeledger import (
    GlobalState, StakingConfig, ExecuteResult,
    create_stake_pool_unit, read_snapshot, commit_snapshot, build_transaction,
    UNIT_TYPE_STAKE_POOL,
)


class TestCreatePoolUnit:

    def test_initial_state(self, token_ledger):
        token_ledger.register_unit(create_stake_pool_unit("POOL", "STK", StakingConfig()))
        assert token_ledger.get_unit("POOL").unit_type == UNIT_TYPE_STAKE_POOL
        assert read_snapshot(token_ledger, "POOL") == GlobalState(
            total_shares=0, share_price=10_000, num_completed_days=0,
            latest_lock_id=0, undistributed_penalties=0,
        )

    def test_initial_price_from_config(self, token_ledger):
        config = StakingConfig(initial_share_price=1)
        token_ledger.register_unit(create_stake_pool_unit("POOL", "STK", config))
        assert read_snapshot(token_ledger, "POOL").share_price == 1

    @pytest.mark.parametrize("symbol,token_symbol", [("", "STK"), ("POOL", " ")])
    def test_empty_symbols_raise(self, symbol, token_symbol):
        with pytest.raises(ValueError):
            create_stake_pool_unit(symbol, token_symbol, StakingConfig())


class TestCommitSnapshot:

    def test_commit_applies_through_execute(self, token_ledger):
        token_ledger.register_unit(create_stake_pool_unit("POOL", "STK", StakingConfig()))
        new_state = replace(read_snapshot(token_ledger, "POOL"), total_shares=200, latest_lock_id=1)

        change = commit_snapshot(token_ledger, "POOL", new_state)
        assert change.changed_fields() == {'total_shares': (0, 200), 'latest_lock_id': (0, 1)}
        assert read_snapshot(token_ledger, "POOL").total_shares == 0

        assert token_ledger.execute(build_transaction(token_ledger, [], [change])) == ExecuteResult.APPLIED
        assert read_snapshot(token_ledger, "POOL") == new_state
        assert token_ledger.get_unit_state("POOL")['token'] == "STK"

    def test_commit_on_stale_view_is_rejected(self, token_ledger):
        token_ledger.register_unit(create_stake_pool_unit("POOL", "STK", StakingConfig()))
        base = read_snapshot(token_ledger, "POOL")
        first = commit_snapshot(token_ledger, "POOL", replace(base, latest_lock_id=1))
        second = commit_snapshot(token_ledger, "POOL", replace(base, latest_lock_id=2))

        assert token_ledger.execute(build_transaction(token_ledger, [], [first])) == ExecuteResult.APPLIED
        assert token_ledger.execute(build_transaction(token_ledger, [], [second])) == ExecuteResult.REJECTED
        assert read_snapshot(token_ledger, "POOL").latest_lock_id == 1
