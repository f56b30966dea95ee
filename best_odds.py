"""Line shopping: pick the best bookmaker price for a recommended bet.

Only prices for the *same* side the recommendation asked for are
compared, and spread/total lines must be at least as good as the line the
pick was made at. Highest American price wins; ties keep the first book.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from bet_sizing import StakeRecommendation, recommend_for_policy
from models import (
    MONEYLINE, SPREAD, TOTAL,
    BankrollPolicy, Matchup, Quote, Recommendation, Side,
)
from odds_math import implied_probability
from team_matcher import detect_over_under, extract_line, match_side

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BestPrice:
    bookmaker: str
    odds: int
    bet_type: str
    selection: str
    side: Side
    implied_probability: float
    line: Optional[float] = None
    stake_recommendation: Optional[StakeRecommendation] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookmaker": self.bookmaker,
            "odds": self.odds,
            "bet_type": self.bet_type,
            "selection": self.selection,
            "side": self.side.value,
            "implied_probability": self.implied_probability,
            "line": self.line,
            "stake_recommendation": (
                self.stake_recommendation.to_dict() if self.stake_recommendation else None
            ),
        }


def _fmt_point(point: float) -> str:
    return f"+{point:g}" if point > 0 else f"{point:g}"


def resolve_line(recommendation: Recommendation) -> Optional[float]:
    """The minimum acceptable line: explicit, else parsed from the selection."""
    if recommendation.line is not None:
        return float(recommendation.line)
    if recommendation.bet_type in (SPREAD, TOTAL):
        return extract_line(recommendation.selection)
    return None


def resolve_side(recommendation: Recommendation, matchup: Matchup) -> Side:
    if recommendation.bet_type == TOTAL:
        return detect_over_under(recommendation.selection)
    return match_side(
        recommendation.selection,
        matchup.home_team, matchup.away_team,
        matchup.home_short, matchup.away_short,
    )


def line_is_acceptable(bet_type: str, side: Side, book_point: float,
                       ai_line: Optional[float]) -> bool:
    """Whether a book's line is no worse than the one the pick requires.

    Spreads: never take fewer points (book >= required), either side.
    Totals: over needs book <= required, under needs book >= required.
    No required line means any line is fine.
    """
    if ai_line is None:
        return True
    if bet_type == SPREAD:
        return book_point >= ai_line
    if bet_type == TOTAL:
        if side == Side.OVER:
            return book_point <= ai_line
        if side == Side.UNDER:
            return book_point >= ai_line
    return True


def _candidate(
    quote: Quote, bet_type: str, side: Side, matchup: Matchup,
    ai_line: Optional[float],
) -> Optional[Tuple[int, Optional[float], str]]:
    """(price, line, display selection) for one quote, or None."""
    if bet_type == MONEYLINE:
        if quote.moneyline is None:
            return None
        if side == Side.HOME:
            return quote.moneyline.home, None, matchup.home_team
        if side == Side.AWAY:
            return quote.moneyline.away, None, matchup.away_team
        return None

    if bet_type == SPREAD:
        if quote.spread is None or side not in (Side.HOME, Side.AWAY):
            return None
        leg = quote.spread.home if side == Side.HOME else quote.spread.away
        team = matchup.home_team if side == Side.HOME else matchup.away_team
        if not line_is_acceptable(SPREAD, side, leg.point, ai_line):
            return None
        return leg.price, leg.point, f"{team} {_fmt_point(leg.point)}"

    if bet_type == TOTAL:
        if quote.total is None or side not in (Side.OVER, Side.UNDER):
            return None
        leg = quote.total.over if side == Side.OVER else quote.total.under
        if not line_is_acceptable(TOTAL, side, leg.point, ai_line):
            return None
        label = "Over" if side == Side.OVER else "Under"
        return leg.price, leg.point, f"{label} {leg.point:g}"

    return None


def find_best_price(
    recommendation: Recommendation,
    quotes: List[Quote],
    matchup: Matchup,
    policy: Optional[BankrollPolicy] = None,
) -> Optional[BestPrice]:
    """Best matching price across *quotes*, or None if nothing is safe to pick.

    With a *policy* holding a positive bankroll, a stake recommendation at
    the winning price is attached.
    """
    if recommendation is None or not quotes:
        return None

    bet_type = recommendation.bet_type
    side = resolve_side(recommendation, matchup)
    if side == Side.UNKNOWN:
        logger.info(f"cannot resolve side for {bet_type} pick {recommendation.selection!r}")
        return None
    ai_line = resolve_line(recommendation)

    best: Optional[Tuple[Quote, int, Optional[float], str]] = None
    for quote in quotes:
        cand = _candidate(quote, bet_type, side, matchup, ai_line)
        if cand is None:
            continue
        price, line, selection = cand
        if not price:
            continue
        if best is None or price > best[1]:
            best = (quote, price, line, selection)

    if best is None:
        logger.info(f"no quote offers {bet_type} {recommendation.selection!r} at an acceptable line")
        return None

    quote, price, line, selection = best
    stake_rec = None
    if policy is not None and policy.current_bankroll > 0:
        stake_rec = recommend_for_policy(policy, recommendation.confidence, odds=price)

    return BestPrice(
        bookmaker=quote.bookmaker,
        odds=price,
        bet_type=bet_type,
        selection=selection,
        side=side,
        implied_probability=implied_probability(price),
        line=line,
        stake_recommendation=stake_rec,
    )
