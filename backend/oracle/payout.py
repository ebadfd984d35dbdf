"""Parimutuel payout arithmetic, integer only."""

from __future__ import annotations


def calculate_payout(
    stake: int,
    user_side: bool,
    outcome: bool,
    long_total: int,
    short_total: int,
) -> int:
    """Return what a staker receives once ``outcome`` is known.

    Losers get nothing. Winners get their stake back plus a share of the
    losing pool proportional to their stake, rounded down. An empty winning
    pool returns the stake unchanged.
    """

    for name, value in (("stake", stake), ("long_total", long_total), ("short_total", short_total)):
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")

    if user_side != outcome:
        return 0

    winning_total = long_total if outcome else short_total
    losing_total = short_total if outcome else long_total
    if winning_total == 0:
        return stake
    return stake + (stake * losing_total) // winning_total


__all__ = ["calculate_payout"]
