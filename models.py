"""Value objects passed through the pick -> price -> stake -> settle pipeline.

Only ``BetSelection`` has a lifecycle; everything else is built for a
single call and never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from team_matcher import Side

MONEYLINE = "moneyline"
SPREAD = "spread"
TOTAL = "total"

BET_TYPES = (MONEYLINE, SPREAD, TOTAL)

PENDING = "Pending"

_BET_TYPE_ALIASES = {
    "moneyline": MONEYLINE,
    "ml": MONEYLINE,
    "spread": SPREAD,
    "spr": SPREAD,
    "total": TOTAL,
    "totals": TOTAL,
    "o/u": TOTAL,
    "over/under": TOTAL,
}

__all__ = [
    "Side", "MONEYLINE", "SPREAD", "TOTAL", "BET_TYPES", "PENDING",
    "normalize_bet_type", "Matchup", "PointPrice", "MoneylinePrices",
    "SpreadPrices", "TotalPrices", "Quote", "Recommendation",
    "BankrollPolicy", "GameResult", "BetSelection",
    "BetNotFoundError", "UserNotFoundError", "BetAlreadySettledError",
    "InsufficientBankrollError",
]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class BetNotFoundError(LookupError):
    pass


class UserNotFoundError(LookupError):
    pass


class BetAlreadySettledError(RuntimeError):
    pass


class InsufficientBankrollError(ValueError):
    pass


def normalize_bet_type(value: Optional[str], default: Optional[str] = MONEYLINE) -> Optional[str]:
    """Map 'ML', 'Spread', 'o/u' ... to a canonical bet type.

    Unrecognized values return *default*; pass ``default=None`` to detect
    them instead.
    """
    key = (value or "").strip().lower()
    return _BET_TYPE_ALIASES.get(key, default)


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Matchup:
    home_team: str
    away_team: str
    sport: str = ""
    start_time: Optional[str] = None
    home_short: Optional[str] = None
    away_short: Optional[str] = None


@dataclass(frozen=True)
class PointPrice:
    point: float
    price: int


@dataclass(frozen=True)
class MoneylinePrices:
    home: int
    away: int


@dataclass(frozen=True)
class SpreadPrices:
    home: PointPrice
    away: PointPrice


@dataclass(frozen=True)
class TotalPrices:
    over: PointPrice
    under: PointPrice


@dataclass(frozen=True)
class Quote:
    """One bookmaker's prices for a matchup; any market may be missing."""
    bookmaker: str
    moneyline: Optional[MoneylinePrices] = None
    spread: Optional[SpreadPrices] = None
    total: Optional[TotalPrices] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Quote":
        """Build from the odds provider's JSON shape.

        Accepts ``spreads`` / ``totals`` as aliases of ``spread`` / ``total``.
        """
        ml = d.get("moneyline")
        sp = d.get("spread") or d.get("spreads")
        tot = d.get("total") or d.get("totals")
        return cls(
            bookmaker=d.get("bookmaker") or d.get("bookmaker_name") or "",
            moneyline=MoneylinePrices(int(ml["home"]), int(ml["away"])) if ml else None,
            spread=SpreadPrices(
                home=PointPrice(float(sp["home"]["point"]), int(sp["home"]["price"])),
                away=PointPrice(float(sp["away"]["point"]), int(sp["away"]["price"])),
            ) if sp else None,
            total=TotalPrices(
                over=PointPrice(float(tot["over"]["point"]), int(tot["over"]["price"])),
                under=PointPrice(float(tot["under"]["point"]), int(tot["under"]["price"])),
            ) if tot else None,
        )


@dataclass(frozen=True)
class Recommendation:
    """The model's suggested wager."""
    bet_type: str
    selection: str
    confidence: float = 50.0
    line: Optional[float] = None
    reasoning: str = ""

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "bet_type", normalize_bet_type(self.bet_type))


@dataclass(frozen=True)
class BankrollPolicy:
    current_bankroll: float
    min_stake: float
    max_stake: float
    use_kelly: bool = False

    def __post_init__(self):
        if self.current_bankroll < 0:
            raise ValueError("current_bankroll must be >= 0")
        if self.min_stake > self.max_stake:
            raise ValueError(
                f"min_stake {self.min_stake} exceeds max_stake {self.max_stake}"
            )


@dataclass(frozen=True)
class GameResult:
    home_score: int
    away_score: int
    is_final: bool
    home_team: str = ""
    away_team: str = ""
    status: str = ""


# ---------------------------------------------------------------------------
# Placed wager
# ---------------------------------------------------------------------------

@dataclass
class BetSelection:
    id: str
    user_id: str
    sport: str
    home_team: str
    away_team: str
    game_date: str
    bet_type: str
    selection: str
    odds: int
    stake: float
    potential_payout: float
    line: Optional[float] = None
    bookmaker: str = ""
    home_short: Optional[str] = None
    away_short: Optional[str] = None
    confidence: float = 0.0
    reasoning: str = ""
    status: str = PENDING
    profit: Optional[float] = None
    actual_result: Optional[str] = None
    created_at: str = ""
    settled_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == PENDING

    @classmethod
    def from_row(cls, row) -> "BetSelection":
        d = dict(row)
        return cls(
            id=d["id"],
            user_id=d["user_id"],
            sport=d.get("sport") or "",
            home_team=d["home_team"],
            away_team=d["away_team"],
            game_date=d.get("game_date") or "",
            bet_type=d["bet_type"],
            selection=d["selection"],
            odds=int(d["odds"]),
            stake=float(d["stake"]),
            potential_payout=float(d["potential_payout"]),
            line=float(d["line"]) if d.get("line") is not None else None,
            bookmaker=d.get("bookmaker") or "",
            home_short=d.get("home_short"),
            away_short=d.get("away_short"),
            confidence=float(d.get("confidence") or 0),
            reasoning=d.get("reasoning") or "",
            status=d["status"],
            profit=float(d["profit"]) if d.get("profit") is not None else None,
            actual_result=d.get("actual_result"),
            created_at=d.get("created_at") or "",
            settled_at=d.get("settled_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
