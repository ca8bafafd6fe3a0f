"""
pricing.py - Share pricing

Pure functions converting between tokens and shares.

Key Formulas:
    multiplier   = 1 + (duration_days / (max_duration_days / 10))**2   (fixed point)
    shares       = floor(principal * multiplier / share_price)
    rebased      = ceil(payout * multiplier / shares_retired)

Shares round down and the rebased price rounds up, so neither direction can
create value out of rounding. The share price only ever increases.
"""

from __future__ import annotations

from .core import FIXED_POINT_SCALE


MAX_DURATION_DAYS = 3650


def bonus_multiplier(duration_days: int, max_duration_days: int = MAX_DURATION_DAYS) -> int:
    """
    Duration bonus multiplier scaled by FIXED_POINT_SCALE.

    A lock of max_duration_days / 10 days doubles its shares; the full
    max_duration_days earns 101x. The ratio is floored before squaring and
    the square is floored.
    """
    if duration_days < 0:
        raise ValueError(f"duration_days must be non-negative, got {duration_days}")
    step = max_duration_days // 10
    ratio = duration_days * FIXED_POINT_SCALE // step
    return FIXED_POINT_SCALE + ratio * ratio // FIXED_POINT_SCALE


def shares_for(
    principal: int,
    duration_days: int,
    share_price: int,
    max_duration_days: int = MAX_DURATION_DAYS,
) -> int:
    """
    Number of shares principal buys for a lock of duration_days at share_price.

    Example:
        >>> shares_for(1_000_000, 365, 10_000, 3650)
        200
    """
    if share_price <= 0:
        raise ValueError(f"share_price must be positive, got {share_price}")
    multiplier = bonus_multiplier(duration_days, max_duration_days)
    return principal * multiplier // (share_price * FIXED_POINT_SCALE)


def rebased_price(
    payout: int,
    duration_days: int,
    shares_retired: int,
    max_duration_days: int = MAX_DURATION_DAYS,
) -> int:
    """
    Share price at which payout would buy exactly shares_retired shares.

    Rounded up, so valuing payout at the new price never yields more than
    shares_retired shares.
    """
    if shares_retired <= 0:
        raise ValueError(f"shares_retired must be positive, got {shares_retired}")
    multiplier = bonus_multiplier(duration_days, max_duration_days)
    return -(-(payout * multiplier) // (shares_retired * FIXED_POINT_SCALE))


def rebase_share_price(
    payout: int,
    duration_days: int,
    shares_retired: int,
    share_price: int,
    max_duration_days: int = MAX_DURATION_DAYS,
) -> int:
    """
    Return the share price after a lock retiring shares_retired pays out payout.

    The price moves only when payout would buy more shares at the current
    price than the lock originally held; it is never lowered.
    """
    if shares_retired <= 0:
        return share_price
    implied = shares_for(payout, duration_days, share_price, max_duration_days)
    if implied <= shares_retired:
        return share_price
    return max(share_price, rebased_price(payout, duration_days, shares_retired, max_duration_days))
