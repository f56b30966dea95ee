"""Stake sizing: confidence tiers or fractional Kelly, with hard bounds.

Usage:
    from bet_sizing import recommend_stake
    rec = recommend_stake(bankroll=1000, confidence=72, min_stake=10,
                          max_stake=500, use_kelly=True, odds=-110)
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from models import BankrollPolicy
from odds_math import american_to_decimal


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# (min confidence, bankroll fraction), checked top-down
_CONFIDENCE_TIERS = (
    (90.0, 0.07),
    (80.0, 0.05),
    (70.0, 0.03),
    (60.0, 0.015),
)
_BASE_FRACTION = 0.01

# Quarter Kelly
_KELLY_MULTIPLIER = 0.25

# Never stake more than this fraction of bankroll under Kelly
_MAX_KELLY_FRACTION = 0.10

METHOD_CONFIDENCE = "confidence"
METHOD_KELLY = "kelly"


@dataclass(frozen=True)
class StakeRecommendation:
    stake: float
    percentage_of_bankroll: float   # the fraction the method chose, as a %
    method: str                     # "confidence" / "kelly"

    def to_dict(self) -> dict:
        return {
            "stake": self.stake,
            "percentage_of_bankroll": self.percentage_of_bankroll,
            "method": self.method,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def confidence_fraction(confidence: float) -> float:
    """Bankroll fraction for a 0-100 confidence score."""
    for threshold, fraction in _CONFIDENCE_TIERS:
        if confidence >= threshold:
            return fraction
    return _BASE_FRACTION


def kelly_fraction(odds: int, win_prob: float) -> Optional[float]:
    """Quarter-Kelly bankroll fraction for an American price.

    Kelly: f = (b*p - q) / b  where b = decimal odds - 1, q = 1 - p.
    The result is clamped to [0, _MAX_KELLY_FRACTION]. Returns None when
    b <= 0 (no defined payout), so callers can fall back to tiers.
    """
    b = american_to_decimal(odds) - 1.0
    if not math.isfinite(b) or b <= 0:
        return None
    p = min(max(win_prob, 0.0), 1.0)
    q = 1.0 - p
    f = ((b * p - q) / b) * _KELLY_MULTIPLIER
    if not math.isfinite(f):
        return None
    return max(0.0, min(f, _MAX_KELLY_FRACTION))


def _clamp_stake(stake: float, min_stake: float, max_stake: float) -> float:
    if not math.isfinite(stake):
        stake = 0.0
    return max(min_stake, min(max_stake, round(stake, 2)))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def recommend_stake(
    bankroll: float,
    confidence: float,
    min_stake: float,
    max_stake: float,
    use_kelly: bool = False,
    odds: Optional[int] = None,
) -> StakeRecommendation:
    """Recommend a stake for a pick.

    Kelly is used only when *use_kelly* is set and *odds* are known; zero
    or degenerate odds fall back to the confidence tiers. Whatever the
    method, the final stake is clamped to [min_stake, max_stake].
    """
    if min_stake > max_stake:
        raise ValueError(f"min_stake {min_stake} exceeds max_stake {max_stake}")
    if not math.isfinite(bankroll) or bankroll < 0:
        bankroll = 0.0
    confidence = min(max(confidence, 0.0), 100.0)

    if use_kelly and odds:
        fraction = kelly_fraction(odds, confidence / 100.0)
        if fraction is not None:
            return StakeRecommendation(
                stake=_clamp_stake(bankroll * fraction, min_stake, max_stake),
                percentage_of_bankroll=fraction * 100.0,
                method=METHOD_KELLY,
            )

    fraction = confidence_fraction(confidence)
    return StakeRecommendation(
        stake=_clamp_stake(bankroll * fraction, min_stake, max_stake),
        percentage_of_bankroll=fraction * 100.0,
        method=METHOD_CONFIDENCE,
    )


def recommend_for_policy(
    policy: BankrollPolicy, confidence: float, odds: Optional[int] = None,
) -> StakeRecommendation:
    return recommend_stake(
        policy.current_bankroll, confidence,
        policy.min_stake, policy.max_stake,
        use_kelly=policy.use_kelly, odds=odds,
    )
