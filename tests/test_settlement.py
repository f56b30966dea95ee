"""Tests for settlement: grading rules, bankroll credits, sweep behaviour."""
from __future__ import annotations

import pytest

from models import BetAlreadySettledError, BetNotFoundError, GameResult
from odds_math import LOST, PUSH, WON
from settlement import (
    determine_outcome, money_for, settle_bet, settle_manual, settle_pending,
)

HOME = "Los Angeles Lakers"
AWAY = "Boston Celtics"


def _place(db, user, selection, bet_type="moneyline", odds=-110, stake=50.0,
           line=None, home=HOME, away=AWAY, **extra):
    return db.place_bet(
        user["id"], sport="nba", home_team=home, away_team=away,
        game_date="2024-01-15", bet_type=bet_type, selection=selection,
        odds=odds, stake=stake, line=line, bookmaker="FanDuel", confidence=70, **extra,
    )


# ---------------------------------------------------------------------------
# Pure grading
# ---------------------------------------------------------------------------

class TestDetermineOutcome:
    def test_moneyline(self):
        assert determine_outcome("moneyline", "Lakers ML", None, HOME, AWAY, 110, 108) == WON
        assert determine_outcome("moneyline", "Celtics", None, HOME, AWAY, 110, 108) == LOST

    def test_moneyline_tie_is_push(self):
        assert determine_outcome("moneyline", "Lakers", None, HOME, AWAY, 100, 100) == PUSH

    def test_moneyline_unknown_team_loses(self):
        assert determine_outcome("moneyline", "Knicks", None, HOME, AWAY, 110, 108) == LOST

    def test_favourite_fails_to_cover(self):
        assert determine_outcome("spread", "Lakers -4.5", -4.5, HOME, AWAY, 110, 108) == LOST

    def test_underdog_covers(self):
        assert determine_outcome("spread", "Celtics +4.5", 4.5, HOME, AWAY, 110, 108) == WON

    def test_spread_push(self):
        assert determine_outcome("spread", "Celtics +2", 2, HOME, AWAY, 110, 108) == PUSH

    def test_spread_without_line_loses(self):
        assert determine_outcome("spread", "Celtics", None, HOME, AWAY, 90, 120) == LOST

    def test_totals(self):
        assert determine_outcome("total", "Over 215.5", 215.5, HOME, AWAY, 110, 108) == WON
        assert determine_outcome("total", "Under 215.5", 215.5, HOME, AWAY, 110, 108) == LOST
        assert determine_outcome("total", "Over 218", 218, HOME, AWAY, 110, 108) == PUSH

    def test_total_direction_unknown_loses(self):
        assert determine_outcome("total", "215.5", 215.5, HOME, AWAY, 110, 108) == LOST

    def test_abbreviation_pick_is_graded(self):
        assert determine_outcome("moneyline", "LAL", None, HOME, AWAY, 110, 100) == WON
        assert determine_outcome("spread", "LAL -4.5", -4.5, HOME, AWAY, 110, 100) == WON

    def test_stored_short_names_resolve_pick(self):
        outcome = determine_outcome(
            "spread", "BKN +3", 3, "New York Knicks", "Brooklyn Nets", 100, 98,
            home_short="NYK", away_short="BKN",
        )
        assert outcome == WON

    def test_glued_over_pick(self):
        assert determine_outcome("total", "Over215.5", 215.5, HOME, AWAY, 110, 108) == WON

    def test_unknown_bet_type_loses(self):
        assert determine_outcome("parlay", "Lakers", None, HOME, AWAY, 110, 108) == LOST


class TestMoney:
    def test_win(self):
        g = money_for(WON, 100, 150)
        assert g.profit == 150.0
        assert g.bankroll_return == 250.0

    def test_push_returns_stake(self):
        g = money_for(PUSH, 100, -110)
        assert g.profit == 0.0
        assert g.bankroll_return == 100.0

    def test_loss(self):
        g = money_for(LOST, 100, -110)
        assert g.profit == -100.0
        assert g.bankroll_return == 0.0

    def test_rounded_to_cents(self):
        assert money_for(WON, 50, -110).profit == 45.45


# ---------------------------------------------------------------------------
# Applying to the store
# ---------------------------------------------------------------------------

class TestSettleBet:
    def test_lost_spread_keeps_bankroll_debited(self, db, user, final_score):
        bet = _place(db, user, "Lakers -4.5", bet_type="spread", line=-4.5)
        assert db.get_user(user["id"])["current_bankroll"] == 950.0

        record = settle_bet(db, bet, final_score(110, 108))
        assert record.outcome == LOST
        assert record.profit == -50.0
        assert record.new_bankroll == 950.0

        stored = db.get_bet(bet.id)
        assert stored.status == LOST
        assert stored.profit == -50.0
        assert stored.actual_result == "108-110"
        assert stored.settled_at

    def test_won_total_credits_stake_plus_profit(self, db, user, final_score):
        bet = _place(db, user, "Over 215.5", bet_type="total", line=215.5, odds=100, stake=100)
        record = settle_bet(db, bet, final_score(110, 108))
        assert record.outcome == WON
        assert record.bankroll_return == 200.0
        assert db.get_user(user["id"])["current_bankroll"] == 1100.0

    def test_push_refunds_stake(self, db, user, final_score):
        bet = _place(db, user, "Lakers")
        settle_bet(db, bet, final_score(99, 99))
        assert db.get_user(user["id"])["current_bankroll"] == 1000.0

    def test_short_name_pick_round_trip(self, db, user, final_score):
        bet = _place(db, user, "BKN ML", odds=100, stake=100,
                     home="New York Knicks", away="Brooklyn Nets",
                     home_short="NYK", away_short="BKN")
        assert db.get_bet(bet.id).away_short == "BKN"

        record = settle_bet(db, bet, final_score(99, 104))
        assert record.outcome == WON
        assert db.get_user(user["id"])["current_bankroll"] == 1100.0

    def test_not_final_rejected(self, db, user):
        bet = _place(db, user, "Lakers")
        live = GameResult(home_score=50, away_score=48, is_final=False, status="STATUS_IN_PROGRESS")
        with pytest.raises(ValueError):
            settle_bet(db, bet, live)
        assert db.get_bet(bet.id).is_pending

    def test_stale_copy_cannot_credit_twice(self, db, user, final_score):
        bet = _place(db, user, "Lakers", odds=100, stake=100)
        settle_bet(db, bet, final_score(110, 100))
        assert db.get_user(user["id"])["current_bankroll"] == 1100.0

        # `bet` still says Pending; the store refuses the second credit
        with pytest.raises(BetAlreadySettledError):
            settle_bet(db, bet, final_score(110, 100))
        assert db.get_user(user["id"])["current_bankroll"] == 1100.0


class TestSettleManual:
    def test_manual_win(self, db, user):
        bet = _place(db, user, "Celtics", odds=150, stake=100)
        record = settle_manual(db, bet.id, WON)
        assert record.profit == 150.0
        assert record.new_bankroll == 1150.0
        assert db.get_bet(bet.id).actual_result is None

    def test_invalid_outcome(self, db, user):
        bet = _place(db, user, "Celtics")
        with pytest.raises(ValueError):
            settle_manual(db, bet.id, "Cancelled")

    def test_twice_rejected(self, db, user):
        bet = _place(db, user, "Celtics")
        settle_manual(db, bet.id, LOST)
        with pytest.raises(BetAlreadySettledError):
            settle_manual(db, bet.id, WON)

    def test_unknown_bet(self, db, user):
        with pytest.raises(BetNotFoundError):
            settle_manual(db, "nope", WON)


class TestSettlePending:
    def test_sweep_settles_skips_and_isolates_errors(self, db, user, final_score, make_provider):
        won = _place(db, user, "Lakers ML", odds=-110, stake=50)
        live = _place(db, user, "Knicks", home="New York Knicks", away="Brooklyn Nets", stake=20)
        broken = _place(db, user, "Heat", home="Miami Heat", away="Chicago Bulls", stake=30)
        assert db.get_user(user["id"])["current_bankroll"] == 900.0

        provider = make_provider(
            results={
                (HOME, AWAY): final_score(110, 108),
                ("New York Knicks", "Brooklyn Nets"): GameResult(
                    home_score=40, away_score=38, is_final=False, status="STATUS_IN_PROGRESS",
                ),
            },
            fail_for={("Miami Heat", "Chicago Bulls")},
        )
        summary = settle_pending(db, provider)

        assert [r.bet_id for r in summary.settled] == [won.id]
        assert summary.skipped == 1
        assert len(summary.errors) == 1
        assert broken.id in summary.errors[0]
        assert summary.bankroll_change == 45.45
        assert summary.total_credited == 95.45

        assert db.get_bet(won.id).status == WON
        assert db.get_bet(live.id).is_pending
        assert db.get_bet(broken.id).is_pending
        assert db.get_user(user["id"])["current_bankroll"] == pytest.approx(995.45)

    def test_missing_result_skipped(self, db, user, make_provider):
        bet = _place(db, user, "Lakers")
        summary = settle_pending(db, make_provider())
        assert summary.skipped == 1
        assert db.get_bet(bet.id).is_pending

    def test_second_sweep_is_a_no_op(self, db, user, final_score, make_provider):
        _place(db, user, "Lakers", odds=100, stake=100)
        provider = make_provider(results={(HOME, AWAY): final_score(110, 100)})
        settle_pending(db, provider)
        again = settle_pending(db, provider)
        assert again.settled == []
        assert db.get_user(user["id"])["current_bankroll"] == 1100.0

    def test_concurrently_settled_bet_is_skipped(self, db, user, final_score):
        bet = _place(db, user, "Lakers", odds=100, stake=100)

        class RacingProvider:
            def fetch_result(self, sport, home_team, away_team, game_date):
                settle_manual(db, bet.id, LOST)
                return final_score(110, 100)

        summary = settle_pending(db, RacingProvider())
        assert summary.settled == []
        assert summary.errors == []
        assert summary.skipped == 1
        assert db.get_user(user["id"])["current_bankroll"] == 900.0

    def test_user_filter(self, db, user, final_score, make_provider):
        other = db.create_user("other@example.com", 500.0)
        mine = _place(db, user, "Lakers")
        theirs = _place(db, other, "Lakers")
        provider = make_provider(results={(HOME, AWAY): final_score(110, 100)})

        summary = settle_pending(db, provider, user_id=user["id"])
        assert [r.bet_id for r in summary.settled] == [mine.id]
        assert db.get_bet(theirs.id).is_pending

    def test_summary_dict(self, db, user, make_provider):
        d = settle_pending(db, make_provider()).to_dict()
        assert set(d) == {"settled_count", "settled", "errors", "skipped",
                          "bankroll_change", "total_credited"}
