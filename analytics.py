"""Performance summaries over settled bets."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from models import BetSelection
from odds_math import LOST, PUSH, WON
from persistence import Persistence

# (label, min inclusive, max exclusive); the top bucket includes 100
CONFIDENCE_RANGES = [
    ("60-70%", 60.0, 70.0),
    ("70-80%", 70.0, 80.0),
    ("80-90%", 80.0, 90.0),
    ("90-100%", 90.0, 100.01),
]

RECENT_WINDOWS = (5, 10, 25)


def _win_rate(bets: List[BetSelection]) -> float:
    if not bets:
        return 0.0
    return sum(1 for b in bets if b.status == WON) / len(bets) * 100.0


def dashboard_metrics(db: Persistence, user_id: str) -> Dict[str, Any]:
    """Headline numbers for a user's dashboard.

    ``pl_percentage`` is bankroll growth against the starting bankroll;
    ``roi`` is total P/L over total staked on settled bets.
    """
    user = db.get_user(user_id)
    settled = db.list_settled_bets(user_id)  # newest first
    current = float(user["current_bankroll"])
    starting = float(user["starting_bankroll"])

    metrics: Dict[str, Any] = {
        "current_bankroll": current,
        "total_pl": 0.0,
        "pl_percentage": 0.0,
        "win_rate": 0.0,
        "roi": 0.0,
        "total_bets": len(settled),
    }
    for n in RECENT_WINDOWS:
        metrics[f"recent_win_rate_{n}"] = 0.0
    if not settled:
        return metrics

    total_pl = sum(b.profit or 0.0 for b in settled)
    total_wagered = sum(b.stake for b in settled)
    metrics["total_pl"] = round(total_pl, 2)
    metrics["pl_percentage"] = (current - starting) / starting * 100.0 if starting > 0 else 0.0
    metrics["win_rate"] = _win_rate(settled)
    metrics["roi"] = total_pl / total_wagered * 100.0 if total_wagered > 0 else 0.0
    for n in RECENT_WINDOWS:
        metrics[f"recent_win_rate_{n}"] = _win_rate(settled[:n])
    return metrics


def win_rate_by_sport(db: Persistence, user_id: str) -> List[Dict[str, Any]]:
    """Wins / losses / pushes per sport, busiest sport first."""
    settled = db.list_settled_bets(user_id)
    if not settled:
        return []

    df = pd.DataFrame([{"sport": b.sport, "status": b.status} for b in settled])
    counts = pd.crosstab(df["sport"], df["status"])
    for col in (WON, LOST, PUSH):
        if col not in counts.columns:
            counts[col] = 0
    counts["total_bets"] = counts[[WON, LOST, PUSH]].sum(axis=1)
    counts = counts.sort_values("total_bets", ascending=False, kind="stable")

    rows = []
    for sport, r in counts.iterrows():
        total = int(r["total_bets"])
        wins = int(r[WON])
        rows.append({
            "sport": sport,
            "total_bets": total,
            "wins": wins,
            "losses": int(r[LOST]),
            "pushes": int(r[PUSH]),
            "win_rate": wins / total * 100.0 if total else 0.0,
        })
    return rows


def performance_by_confidence(db: Persistence, user_id: str) -> List[Dict[str, Any]]:
    settled = db.list_settled_bets(user_id)
    result = []
    for label, lo, hi in CONFIDENCE_RANGES:
        in_range = [b for b in settled if lo <= b.confidence < hi]
        wins = sum(1 for b in in_range if b.status == WON)
        result.append({
            "confidence_range": label,
            "total_bets": len(in_range),
            "wins": wins,
            "win_rate": wins / len(in_range) * 100.0 if in_range else 0.0,
        })
    return result


def bankroll_history(
    db: Persistence, user_id: str, days: Optional[int] = None,
) -> List[Dict[str, Any]]:
    return [
        {"timestamp": s["recorded_at"], "bankroll": float(s["bankroll"])}
        for s in db.get_bankroll_history(user_id, days=days)
    ]
