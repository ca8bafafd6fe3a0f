"""
helpers.py - Shared constants and helpers for staking tests

Provides the launch instant, a flat interest schedule, and functions to move
an engine's clock and capture everything an operation may mutate.
"""

from datetime import datetime

from stakeledger import StakingConfig, StakingEngine


LAUNCH = datetime(2024, 1, 1)

# No boost window inside any test horizon: every day pays total_supply // 10_000
FLAT_CONFIG = StakingConfig(launch_time=LAUNCH, boost_start_day=100_000)


def advance_to_day(engine: StakingEngine, day: int) -> None:
    """Move the engine's ledger clock to the first instant of day."""
    engine.ledger.advance_time(engine.config.start_of_day(day))


def engine_state(engine: StakingEngine) -> dict:
    """Everything an operation may mutate, for zero-mutation checks."""
    ledger = engine.ledger
    return {
        "balances": {w: dict(ledger.balances[w]) for w in ledger.registered_wallets},
        "pool": ledger.get_unit_state(engine.pool_symbol),
        "log_length": len(ledger.transaction_log),
        "table": engine.interest_table.entries(),
        "locks": list(engine.registry.open_locks()),
    }
