"""American odds conversions and payout math.

All prices handled here are American odds (e.g. +150, -110). Zero is not a
valid American price and raises ValueError.
"""
from __future__ import annotations

WON = "Won"
LOST = "Lost"
PUSH = "Push"

OUTCOMES = (WON, LOST, PUSH)


def _check_odds(odds: float) -> None:
    if odds == 0:
        raise ValueError("American odds cannot be 0")


def american_to_decimal(odds: float) -> float:
    """Convert American odds to decimal (multiplicative payout factor)."""
    _check_odds(odds)
    if odds > 0:
        return 1 + odds / 100
    return 1 + 100 / abs(odds)


def american_to_fractional(odds: float) -> str:
    _check_odds(odds)
    if odds > 0:
        return f"{odds:g}/100"
    return f"100/{abs(odds):g}"


def format_american(odds: float) -> str:
    """'+150' / '-110' display string."""
    if odds > 0:
        return f"+{odds:g}"
    return f"{odds:g}"


def implied_probability(odds: float) -> float:
    _check_odds(odds)
    if odds > 0:
        return 100 / (odds + 100)
    return abs(odds) / (abs(odds) + 100)


def payout(stake: float, odds: float) -> float:
    """Gross return (stake included) if the bet wins."""
    return stake * american_to_decimal(odds)


def profit(stake: float, odds: float, outcome: str) -> float:
    """Net P/L for a settled bet."""
    if outcome == PUSH:
        return 0.0
    if outcome == LOST:
        return -stake
    if outcome == WON:
        return payout(stake, odds) - stake
    raise ValueError(f"unknown outcome: {outcome!r}")


def bankroll_return(stake: float, odds: float, outcome: str) -> float:
    """Amount credited back to the bankroll on settlement.

    The stake is debited at placement, so a push returns the stake and a
    win returns stake + profit.
    """
    if outcome == PUSH:
        return stake
    if outcome == LOST:
        return 0.0
    if outcome == WON:
        return stake + profit(stake, odds, WON)
    raise ValueError(f"unknown outcome: {outcome!r}")
