"""Runtime configuration, read from the environment (and a local .env)."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


BASE_DIR = Path(__file__).resolve().parent

# Storage (DATABASE_URL, when set, is picked up by Persistence directly)
DB_PATH = Path(os.environ.get("EDGELEDGER_DB_PATH", str(BASE_DIR / "edgeledger.db")))

# Local single-user defaults
DEFAULT_USER_EMAIL = os.environ.get("DEFAULT_USER_EMAIL", "default@edgeledger.app")
DEFAULT_STARTING_BANKROLL = float(os.environ.get("DEFAULT_STARTING_BANKROLL", "1000"))

# Bankroll policy defaults
DEFAULT_MIN_STAKE = float(os.environ.get("DEFAULT_MIN_STAKE", "10"))
DEFAULT_MAX_STAKE = float(os.environ.get("DEFAULT_MAX_STAKE", "500"))
DEFAULT_USE_KELLY = _env_bool("DEFAULT_USE_KELLY", False)

# Results provider
ESPN_BASE_URL = os.environ.get(
    "ESPN_BASE_URL", "https://site.api.espn.com/apis/site/v2/sports"
)
RESULTS_TIMEOUT_SECONDS = float(os.environ.get("RESULTS_TIMEOUT_SECONDS", "10"))

# API server
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
