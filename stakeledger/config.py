"""
config.py - Staking configuration

StakingConfig is the immutable term sheet of a staking deployment: the launch
instant and day length that define the day clock, the allowed lock durations,
the late-close deadline, the starting share price and the interest schedule.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta

from .core import PhaseNotStarted


@dataclass(frozen=True, slots=True)
class StakingConfig:
    """
    Immutable staking parameters, fixed for the life of a pool.

    Interest schedule:
        Outside the boost window, day d pays total_supply // base_rate_divisor.
        The boost window starts at boost_start_day and spans boost_periods
        consecutive sub-periods of boost_period_days; sub-period k uses
        boost_initial_divisor // 2**k, so the rate doubles each sub-period.
    """
    launch_time: datetime = datetime(2024, 1, 1)
    day_seconds: int = 86_400
    min_duration_days: int = 1
    max_duration_days: int = 3650
    late_deadline_days: int = 365
    initial_share_price: int = 10_000
    base_rate_divisor: int = 10_000
    # First day after the 30-day issuance phase
    boost_start_day: int = 31
    boost_period_days: int = 73
    boost_periods: int = 5
    boost_initial_divisor: int = 5_000

    def __post_init__(self):
        if self.day_seconds <= 0:
            raise ValueError(f"day_seconds must be positive, got {self.day_seconds}")
        if self.min_duration_days < 1:
            raise ValueError(f"min_duration_days must be at least 1, got {self.min_duration_days}")
        if self.max_duration_days < self.min_duration_days:
            raise ValueError("max_duration_days must be >= min_duration_days")
        if self.max_duration_days < 10:
            raise ValueError(f"max_duration_days must be at least 10, got {self.max_duration_days}")
        if self.late_deadline_days < 0:
            raise ValueError(f"late_deadline_days must be non-negative, got {self.late_deadline_days}")
        if self.initial_share_price <= 0:
            raise ValueError(f"initial_share_price must be positive, got {self.initial_share_price}")
        if self.base_rate_divisor <= 0:
            raise ValueError(f"base_rate_divisor must be positive, got {self.base_rate_divisor}")
        if self.boost_start_day < 1 or self.boost_period_days < 1 or self.boost_periods < 0:
            raise ValueError("boost window must start on day 1 or later and have positive periods")
        if self.boost_periods and self.boost_initial_divisor // 2 ** (self.boost_periods - 1) < 1:
            raise ValueError("boost_initial_divisor is too small to halve across every boost period")

    @property
    def boost_end_day(self) -> int:
        """First day after the boost window."""
        return self.boost_start_day + self.boost_period_days * self.boost_periods

    def day_of(self, timestamp: datetime) -> int:
        """
        Return the 1-indexed day containing timestamp.

        Raises:
            PhaseNotStarted: If timestamp is before launch_time
        """
        if timestamp < self.launch_time:
            raise PhaseNotStarted(
                f"{timestamp} is before launch at {self.launch_time}"
            )
        return (timestamp - self.launch_time) // timedelta(seconds=self.day_seconds) + 1

    def start_of_day(self, day: int) -> datetime:
        """Return the first instant of a 1-indexed day."""
        if day < 1:
            raise ValueError(f"day must be at least 1, got {day}")
        return self.launch_time + timedelta(seconds=self.day_seconds * (day - 1))


DEFAULT_CONFIG = StakingConfig()
