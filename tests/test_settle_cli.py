"""Tests for the settle_bets command-line sweep."""
import json

import settle_bets


def _place(db, user_id, home="Los Angeles Lakers", away="Boston Celtics"):
    return db.place_bet(
        user_id, sport="nba", home_team=home, away_team=away,
        game_date="2024-01-15", bet_type="moneyline", selection=home,
        odds=-110, stake=110,
    )


def test_run_sweep_returns_summary(db, user, final_score, make_provider):
    bet = _place(db, user["id"])
    provider = make_provider(results={("Los Angeles Lakers", "Boston Celtics"): final_score(101, 99)})
    result = settle_bets.run_sweep(db, provider)
    assert result["settled_count"] == 1
    assert result["settled"][0]["bet_id"] == bet.id
    assert result["bankroll_change"] == 100.0


def test_run_sweep_user_filter(db, user, final_score, make_provider):
    other = db.create_user("other@example.com", 500)
    _place(db, other["id"])
    provider = make_provider(results={("Los Angeles Lakers", "Boston Celtics"): final_score(101, 99)})
    assert settle_bets.run_sweep(db, provider, user_id=user["id"])["settled_count"] == 0


def test_main_json_and_exit_code(tmp_path, monkeypatch, capsys, make_provider):
    from persistence import Persistence

    path = tmp_path / "cli.db"
    store = Persistence(path)
    u = store.create_user("cli@example.com", 300)
    _place(store, u["id"], home="Miami Heat", away="Chicago Bulls")
    store.close()

    failing = make_provider(fail_for={("Miami Heat", "Chicago Bulls")})
    monkeypatch.setattr(settle_bets, "EspnResultsProvider", lambda: failing)

    code = settle_bets.main(["--db", str(path), "--json"])
    out = json.loads(capsys.readouterr().out)
    assert code == 1
    assert out["settled_count"] == 0
    assert len(out["errors"]) == 1


def test_main_text_output(tmp_path, monkeypatch, capsys, make_provider):
    monkeypatch.setattr(settle_bets, "EspnResultsProvider", lambda: make_provider())
    code = settle_bets.main(["--db", str(tmp_path / "empty.db")])
    assert code == 0
    assert "Settled 0 bets" in capsys.readouterr().out
