"""Settlement: grade finished games against placed bets and credit bankrolls.

A bet moves Pending -> Won / Lost / Push exactly once. Grading is pure
(``grade``); applying it (``settle_bet``) writes the bet status and the
bankroll credit in one transaction through ``Persistence.apply_settlement``.

Unresolvable picks never win: an unknown side, a missing line, an
undetectable over/under or an unknown bet type all grade as Lost.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from models import (
    MONEYLINE, SPREAD, TOTAL,
    BetAlreadySettledError, BetSelection, GameResult, Side, normalize_bet_type,
)
from odds_math import LOST, OUTCOMES, PUSH, WON, bankroll_return, profit
from persistence import Persistence
from team_matcher import detect_over_under, match_side

logger = logging.getLogger(__name__)


class ResultsProvider(Protocol):
    def fetch_result(self, sport: str, home_team: str, away_team: str,
                     game_date: str) -> Optional[GameResult]:
        ...


@dataclass(frozen=True)
class Grade:
    outcome: str
    profit: float
    bankroll_return: float


@dataclass
class SettlementRecord:
    bet_id: str
    outcome: str
    profit: float
    bankroll_return: float
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    new_bankroll: Optional[float] = None


@dataclass
class SettlementSummary:
    settled: List[SettlementRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    skipped: int = 0
    bankroll_change: float = 0.0    # net P/L of the settled bets
    total_credited: float = 0.0     # gross amount credited back to bankrolls

    def to_dict(self) -> dict:
        return {
            "settled_count": len(self.settled),
            "settled": [vars(r) for r in self.settled],
            "errors": list(self.errors),
            "skipped": self.skipped,
            "bankroll_change": self.bankroll_change,
            "total_credited": self.total_credited,
        }


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------

def determine_outcome(
    bet_type: str,
    selection: str,
    line: Optional[float],
    home_team: str,
    away_team: str,
    home_score: int,
    away_score: int,
    home_short: Optional[str] = None,
    away_short: Optional[str] = None,
) -> str:
    """Won / Lost / Push for one bet against a final score.

    Short names, when the bet carries them, resolve picks like "BOS +3".
    """
    kind = normalize_bet_type(bet_type, default=None)
    score_diff = home_score - away_score

    if kind == MONEYLINE:
        if home_score == away_score:
            return PUSH
        side = match_side(selection, home_team, away_team, home_short, away_short)
        if side == Side.HOME:
            return WON if home_score > away_score else LOST
        if side == Side.AWAY:
            return WON if away_score > home_score else LOST
        return LOST

    if kind == SPREAD:
        side = match_side(selection, home_team, away_team, home_short, away_short)
        if line is None or side not in (Side.HOME, Side.AWAY):
            return LOST
        margin = (score_diff if side == Side.HOME else -score_diff) + line
        if margin == 0:
            return PUSH
        return WON if margin > 0 else LOST

    if kind == TOTAL:
        if line is None:
            return LOST
        total_score = home_score + away_score
        if total_score == line:
            return PUSH
        pick = detect_over_under(selection)
        if pick == Side.OVER:
            return WON if total_score > line else LOST
        if pick == Side.UNDER:
            return WON if total_score < line else LOST
        return LOST

    logger.warning(f"unknown bet type {bet_type!r}; grading as Lost")
    return LOST


def money_for(outcome: str, stake: float, odds: int) -> Grade:
    """Profit and bankroll credit for *outcome*, rounded to cents."""
    pnl = round(profit(stake, odds, outcome), 2)
    if outcome == WON:
        credit = round(stake + pnl, 2)
    else:
        credit = round(bankroll_return(stake, odds, outcome), 2)
    return Grade(outcome=outcome, profit=pnl, bankroll_return=credit)


def grade(bet: BetSelection, result: GameResult) -> Grade:
    outcome = determine_outcome(
        bet.bet_type, bet.selection, bet.line,
        bet.home_team, bet.away_team,
        result.home_score, result.away_score,
        home_short=bet.home_short, away_short=bet.away_short,
    )
    return money_for(outcome, bet.stake, bet.odds)


def format_score(result: GameResult) -> str:
    """Stored as away-home."""
    return f"{result.away_score}-{result.home_score}"


# ---------------------------------------------------------------------------
# Applying grades
# ---------------------------------------------------------------------------

def settle_bet(db: Persistence, bet: BetSelection, result: GameResult) -> SettlementRecord:
    """Grade *bet* and persist the outcome with its bankroll credit.

    Raises BetAlreadySettledError if the bet is no longer Pending and
    ValueError if the game is not final.
    """
    if not bet.is_pending:
        raise BetAlreadySettledError(f"bet {bet.id} already settled ({bet.status})")
    if not result.is_final:
        raise ValueError(f"game for bet {bet.id} is not final")

    g = grade(bet, result)
    new_bankroll = db.apply_settlement(
        bet.id, g.outcome, g.profit, g.bankroll_return, format_score(result),
    )
    logger.info(
        f"Settled bet {bet.id}: {g.outcome}, net profit {g.profit:+.2f}, "
        f"bankroll return {g.bankroll_return:.2f}"
    )
    return SettlementRecord(
        bet_id=bet.id,
        outcome=g.outcome,
        profit=g.profit,
        bankroll_return=g.bankroll_return,
        home_score=result.home_score,
        away_score=result.away_score,
        new_bankroll=new_bankroll,
    )


def settle_manual(db: Persistence, bet_id: str, outcome: str) -> SettlementRecord:
    """Settle a bet with a caller-stated outcome instead of a score."""
    if outcome not in OUTCOMES:
        raise ValueError(f"outcome must be one of {OUTCOMES}, got {outcome!r}")
    bet = db.get_bet(bet_id)
    if not bet.is_pending:
        raise BetAlreadySettledError(f"bet {bet_id} already settled ({bet.status})")

    g = money_for(outcome, bet.stake, bet.odds)
    new_bankroll = db.apply_settlement(bet.id, g.outcome, g.profit, g.bankroll_return)
    logger.info(f"Manually settled bet {bet.id}: {g.outcome}, net profit {g.profit:+.2f}")
    return SettlementRecord(
        bet_id=bet.id,
        outcome=g.outcome,
        profit=g.profit,
        bankroll_return=g.bankroll_return,
        new_bankroll=new_bankroll,
    )


def settle_pending(
    db: Persistence, provider: ResultsProvider, user_id: Optional[str] = None,
) -> SettlementSummary:
    """Sweep Pending bets (optionally for one user) and settle finished games.

    Games without a result or not yet final stay Pending for the next
    sweep. A failure on one bet is recorded and the sweep moves on.
    """
    summary = SettlementSummary()
    pending = db.list_pending_bets(user_id=user_id or "")
    logger.info(f"Found {len(pending)} pending bets to settle")

    for bet in pending:
        try:
            result = provider.fetch_result(bet.sport, bet.home_team, bet.away_team, bet.game_date)
            if result is None:
                logger.info(f"No game result found for {bet.away_team} @ {bet.home_team}")
                summary.skipped += 1
                continue
            if not result.is_final:
                logger.info(f"Game not final: {bet.away_team} @ {bet.home_team} - {result.status}")
                summary.skipped += 1
                continue

            record = settle_bet(db, bet, result)
        except BetAlreadySettledError:
            # settled by a concurrent sweep since we listed it
            logger.info(f"Bet {bet.id} already settled; skipping")
            summary.skipped += 1
            continue
        except Exception as exc:
            msg = f"Error settling bet {bet.id}: {exc}"
            logger.error(msg)
            summary.errors.append(msg)
            continue

        summary.settled.append(record)
        summary.bankroll_change = round(summary.bankroll_change + record.profit, 2)
        summary.total_credited = round(summary.total_credited + record.bankroll_return, 2)

    return summary
