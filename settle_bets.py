"""CLI for running a settlement sweep over Pending bets.

Usage:
    python settle_bets.py                      (all users)
    python settle_bets.py --user-id <id>
    python settle_bets.py --db other.db --json

Bets whose games are not final stay Pending and are retried next run.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from persistence import Persistence
from results_provider import EspnResultsProvider
from settlement import settle_pending


def run_sweep(db: Persistence, provider, user_id: str = "") -> dict:
    """Settle what can be settled and return the summary dict."""
    summary = settle_pending(db, provider, user_id=user_id or None)
    return summary.to_dict()


def _print_summary(result: dict) -> None:
    print(f"Settled {result['settled_count']} bets "
          f"(skipped {result['skipped']}, errors {len(result['errors'])})")
    for rec in result["settled"]:
        print(f"  {rec['bet_id']}: {rec['outcome']:<4}  P/L {rec['profit']:+.2f}")
    print(f"Net bankroll change: {result['bankroll_change']:+.2f}")
    for err in result["errors"]:
        print(f"  ! {err}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Settle pending bets against final scores")
    parser.add_argument("--user-id", default="", help="Only settle this user's bets")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--json", action="store_true", help="Print the summary as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    db = Persistence(args.db)
    try:
        result = run_sweep(db, EspnResultsProvider(), args.user_id)
    finally:
        db.close()

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        _print_summary(result)
    return 1 if result["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
