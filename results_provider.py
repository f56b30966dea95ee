"""Final-score lookups from the ESPN public scoreboard.

The scoreboard labels teams its own way ("LA Clippers"), so events are
matched to a stored bet's teams with ``team_matcher.same_team``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

import requests

import config
from models import GameResult
from team_matcher import same_team

logger = logging.getLogger(__name__)

# sport key -> (espn sport, espn league)
SPORT_PATHS: Dict[str, tuple] = {
    "nfl": ("football", "nfl"),
    "nba": ("basketball", "nba"),
    "mlb": ("baseball", "mlb"),
    "ncaaf": ("football", "college-football"),
    "ncaab": ("basketball", "mens-college-basketball"),
}

FINAL_STATUSES = ("STATUS_FINAL", "STATUS_FULL_TIME")


def _date_param(game_date: Union[str, date, datetime]) -> str:
    """YYYYMMDD for the scoreboard ``dates`` query param."""
    if isinstance(game_date, (date, datetime)):
        return game_date.strftime("%Y%m%d")
    return str(game_date)[:10].replace("-", "")


def _score(competitor: Dict[str, Any]) -> int:
    try:
        return int(competitor.get("score") or 0)
    except (TypeError, ValueError):
        return 0


def _team_label(competitor: Dict[str, Any]) -> str:
    team = competitor.get("team") or {}
    return team.get("displayName") or team.get("name") or ""


class EspnResultsProvider:
    """Results collaborator used by the settlement sweep.

    ``fetch_result`` returns None when the sport is unsupported or no event
    on that date matches the teams. HTTP failures raise.
    """

    def __init__(self, base_url: str = None, timeout: float = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or config.ESPN_BASE_URL).rstrip("/")
        self.timeout = timeout or config.RESULTS_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def scoreboard_url(self, sport: str) -> Optional[str]:
        path = SPORT_PATHS.get((sport or "").lower())
        if not path:
            return None
        return f"{self.base_url}/{path[0]}/{path[1]}/scoreboard"

    def fetch_result(
        self, sport: str, home_team: str, away_team: str,
        game_date: Union[str, date, datetime],
    ) -> Optional[GameResult]:
        url = self.scoreboard_url(sport)
        if not url:
            logger.warning(f"Unsupported sport for results lookup: {sport}")
            return None

        resp = self.session.get(
            url, params={"dates": _date_param(game_date)}, timeout=self.timeout,
        )
        resp.raise_for_status()
        return find_event_result(resp.json(), home_team, away_team)


def find_event_result(
    scoreboard: Dict[str, Any], home_team: str, away_team: str,
) -> Optional[GameResult]:
    """Pick the event for *home_team* vs *away_team* out of a scoreboard payload."""
    for event in scoreboard.get("events") or []:
        competitions = event.get("competitions") or []
        if not competitions:
            continue
        competitors = competitions[0].get("competitors") or []
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if not home or not away:
            continue

        event_home = _team_label(home)
        event_away = _team_label(away)
        if not (same_team(home_team, event_home) and same_team(away_team, event_away)):
            continue

        status = ((event.get("status") or {}).get("type") or {}).get("name", "")
        is_final = status in FINAL_STATUSES
        return GameResult(
            home_score=_score(home) if is_final else 0,
            away_score=_score(away) if is_final else 0,
            is_final=is_final,
            home_team=event_home,
            away_team=event_away,
            status=status,
        )
    return None
