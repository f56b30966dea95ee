from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn
from typing import List, Dict, Any, Optional
import logging

import config
from analytics import (
    dashboard_metrics, win_rate_by_sport, performance_by_confidence, bankroll_history,
)
from bet_sizing import recommend_stake
from best_odds import find_best_price
from models import (
    BankrollPolicy, Matchup, Quote, Recommendation,
    BetNotFoundError, UserNotFoundError, BetAlreadySettledError, InsufficientBankrollError,
)
from persistence import Persistence
from results_provider import EspnResultsProvider
from settlement import settle_manual, settle_pending

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="EdgeLedger Betting API", version="1.0.0")

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_db: Optional[Persistence] = None
_provider: Optional[EspnResultsProvider] = None


def get_db() -> Persistence:
    global _db
    if _db is None:
        _db = Persistence()
    return _db


def get_results_provider() -> EspnResultsProvider:
    global _provider
    if _provider is None:
        _provider = EspnResultsProvider()
    return _provider


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class RecommendationIn(BaseModel):
    bet_type: str
    selection: str
    confidence: float = Field(50.0, ge=0, le=100)
    line: Optional[float] = None
    reasoning: str = ""


class MatchupIn(BaseModel):
    home_team: str
    away_team: str
    sport: str = ""
    start_time: Optional[str] = None
    home_short: Optional[str] = None
    away_short: Optional[str] = None


class PolicyIn(BaseModel):
    current_bankroll: float = Field(..., ge=0)
    min_stake: float = config.DEFAULT_MIN_STAKE
    max_stake: float = config.DEFAULT_MAX_STAKE
    use_kelly: bool = config.DEFAULT_USE_KELLY


class BestPriceRequest(BaseModel):
    recommendation: RecommendationIn
    quotes: List[Dict[str, Any]]
    matchup: MatchupIn
    policy: Optional[PolicyIn] = None


class StakeRequest(BaseModel):
    bankroll: float = Field(..., ge=0)
    confidence: float = Field(..., ge=0, le=100)
    min_stake: float = config.DEFAULT_MIN_STAKE
    max_stake: float = config.DEFAULT_MAX_STAKE
    use_kelly: bool = config.DEFAULT_USE_KELLY
    odds: Optional[int] = None


class PlaceBetRequest(BaseModel):
    sport: str
    home_team: str
    away_team: str
    game_date: str
    bet_type: str
    selection: str
    odds: int
    amount: float = Field(..., gt=0)
    line: Optional[float] = None
    bookmaker: str = "Unknown"
    confidence: float = Field(60.0, ge=0, le=100)
    reasoning: str = "User placed bet"
    potential_payout: Optional[float] = None
    home_short: Optional[str] = None
    away_short: Optional[str] = None


class ManualSettleRequest(BaseModel):
    result: str


class SweepRequest(BaseModel):
    user_id: Optional[str] = None


class AddFundsRequest(BaseModel):
    amount: float = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "edgeledger"}


@app.get("/user")
def get_user(db: Persistence = Depends(get_db)):
    return db.get_or_create_default_user()


@app.post("/user/add-funds")
def add_funds(req: AddFundsRequest, db: Persistence = Depends(get_db)):
    user = db.get_or_create_default_user()
    balance = db.add_funds(user["id"], req.amount)
    return {
        "success": True,
        "current_bankroll": balance,
        "message": f"Added ${req.amount:.2f} to bankroll",
    }


@app.post("/odds/best")
def best_price(req: BestPriceRequest):
    """Line-shop a recommendation across bookmaker quotes."""
    try:
        quotes = [Quote.from_dict(q) for q in req.quotes]
        policy = BankrollPolicy(**req.policy.model_dump()) if req.policy else None
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid request: {e}")

    best = find_best_price(
        Recommendation(**req.recommendation.model_dump()), quotes, Matchup(**req.matchup.model_dump()),
        policy=policy,
    )
    return {"best": best.to_dict() if best else None}


@app.post("/stake")
def stake(req: StakeRequest):
    try:
        rec = recommend_stake(
            req.bankroll, req.confidence, req.min_stake, req.max_stake,
            use_kelly=req.use_kelly, odds=req.odds,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return rec.to_dict()


@app.get("/bets")
def list_bets(status: str = "", limit: int = 50, db: Persistence = Depends(get_db)):
    user = db.get_or_create_default_user()
    bets = db.list_bets(user_id=user["id"], status=status, limit=limit)
    return {"bets": [b.to_dict() for b in bets], "total_count": len(bets)}


@app.post("/bets", status_code=201)
def place_bet(req: PlaceBetRequest, db: Persistence = Depends(get_db)):
    user = db.get_or_create_default_user()
    try:
        bet = db.place_bet(
            user["id"],
            sport=req.sport, home_team=req.home_team, away_team=req.away_team,
            game_date=req.game_date, bet_type=req.bet_type, selection=req.selection,
            odds=req.odds, stake=req.amount, line=req.line, bookmaker=req.bookmaker,
            confidence=req.confidence, reasoning=req.reasoning,
            potential_payout=req.potential_payout,
            home_short=req.home_short, away_short=req.away_short,
        )
    except InsufficientBankrollError:
        raise HTTPException(status_code=400, detail="Insufficient bankroll")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return bet.to_dict()


@app.post("/bets/settle")
def settle_all(
    req: SweepRequest,
    db: Persistence = Depends(get_db),
    provider: EspnResultsProvider = Depends(get_results_provider),
):
    logger.info(f"Settlement requested for user: {req.user_id or 'all users'}")
    summary = settle_pending(db, provider, user_id=req.user_id)
    return {"success": True, **summary.to_dict()}


@app.post("/bets/{bet_id}/settle")
def settle_one(bet_id: str, req: ManualSettleRequest, db: Persistence = Depends(get_db)):
    try:
        record = settle_manual(db, bet_id, req.result)
    except BetNotFoundError:
        raise HTTPException(status_code=404, detail="Bet not found")
    except BetAlreadySettledError:
        raise HTTPException(status_code=409, detail="Bet already settled")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return vars(record)


@app.get("/analytics")
def analytics(days: Optional[int] = None, db: Persistence = Depends(get_db)):
    user = db.get_or_create_default_user()
    try:
        return {
            "metrics": dashboard_metrics(db, user["id"]),
            "by_sport": win_rate_by_sport(db, user["id"]),
            "by_confidence": performance_by_confidence(db, user["id"]),
            "bankroll_history": bankroll_history(db, user["id"], days=days),
        }
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")


if __name__ == "__main__":
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
