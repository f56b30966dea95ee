"""Shared fixtures: a fresh SQLite store per test and a canned results provider."""
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from models import GameResult, Matchup
from persistence import Persistence


@pytest.fixture(autouse=True)
def _sqlite_only(monkeypatch):
    """Never let a developer's DATABASE_URL leak into tests."""
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def db(tmp_path):
    """Fresh DB for each test."""
    store = Persistence(tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def user(db):
    return db.create_user("tester@example.com", 1000.0)


@pytest.fixture
def lakers_celtics():
    return Matchup(
        home_team="Los Angeles Lakers",
        away_team="Boston Celtics",
        sport="nba",
        home_short="LAL",
        away_short="BOS",
    )


class FakeResultsProvider:
    """Returns canned results keyed by (home_team, away_team)."""

    def __init__(self, results=None, fail_for=()):
        self.results = dict(results or {})
        self.fail_for = set(fail_for)
        self.calls = []

    def fetch_result(self, sport, home_team, away_team, game_date):
        self.calls.append((sport, home_team, away_team, game_date))
        if (home_team, away_team) in self.fail_for:
            raise ConnectionError("scoreboard unavailable")
        return self.results.get((home_team, away_team))


@pytest.fixture
def final_score():
    def _make(home, away):
        return GameResult(home_score=home, away_score=away, is_final=True, status="STATUS_FINAL")
    return _make


@pytest.fixture
def make_provider():
    return FakeResultsProvider
