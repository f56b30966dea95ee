"""Persistence for users, placed bets and bankroll history.

Supports SQLite (default, local dev) and PostgreSQL (production).
Set DATABASE_URL env var to use Postgres; otherwise falls back to SQLite.

Every write that touches both a bet and a bankroll runs as one
transaction: either both land or neither does.
"""
from __future__ import annotations

import logging
import math
import os
import re
import sqlite3
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import config
from models import (
    PENDING, BetSelection, BetNotFoundError, BetAlreadySettledError,
    InsufficientBankrollError, UserNotFoundError, normalize_bet_type,
)
from odds_math import OUTCOMES, payout

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Postgres compatibility layer
# ---------------------------------------------------------------------------

def _translate_sql(sql: str) -> str:
    """Translate SQLite SQL dialect to Postgres."""
    # Parameter placeholders: ? -> %s
    sql = sql.replace("?", "%s")
    # AUTOINCREMENT -> Postgres SERIAL
    sql = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "SERIAL PRIMARY KEY",
        sql,
        flags=re.IGNORECASE,
    )
    return sql


class _PgCursorResult:
    """Wraps a psycopg2 cursor to provide sqlite3-compatible attributes."""

    def __init__(self, cursor):
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self):
        return self._cursor.fetchall()

    def __iter__(self):
        return iter(self._cursor)


class _PgConnectionWrapper:
    """Wraps a psycopg2 connection so Persistence can use the same API as sqlite3."""

    def __init__(self, pg_conn, cursor_factory):
        self._conn = pg_conn
        self._cursor_factory = cursor_factory

    def execute(self, sql, params=None):
        cur = self._conn.cursor(cursor_factory=self._cursor_factory)
        cur.execute(_translate_sql(sql), params or ())
        return _PgCursorResult(cur)

    def executescript(self, sql):
        """Execute multiple SQL statements separated by semicolons."""
        cur = self._conn.cursor(cursor_factory=self._cursor_factory)
        for stmt in sql.split(";"):
            stmt = stmt.strip()
            if stmt:
                cur.execute(_translate_sql(stmt))
        self._conn.commit()
        return cur

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Persistence:
    def __init__(self, db_path: Path = None):
        database_url = os.environ.get("DATABASE_URL")
        if database_url:
            import psycopg2
            import psycopg2.extras
            # Some hosts hand out postgres:// but psycopg2 requires postgresql://
            if database_url.startswith("postgres://"):
                database_url = database_url.replace("postgres://", "postgresql://", 1)
            try:
                pg_conn = psycopg2.connect(database_url, connect_timeout=5)
            except Exception as exc:
                logger.error(f"Cannot connect to Postgres (timeout 5s): {exc}")
                raise
            pg_conn.autocommit = False
            self.conn = _PgConnectionWrapper(pg_conn, psycopg2.extras.DictCursor)
            self.db_backend = "postgres"
            self.db_path = None
        else:
            self.db_path = Path(db_path or config.DB_PATH)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.db_backend = "sqlite"
        # one shared connection; serialize multi-statement transactions
        self._lock = threading.RLock()
        self._init_db()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL,
                starting_bankroll REAL NOT NULL,
                current_bankroll REAL NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS bets (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES users(id),
                sport TEXT,
                home_team TEXT NOT NULL,
                away_team TEXT NOT NULL,
                game_date TEXT,
                bet_type TEXT NOT NULL,
                selection TEXT NOT NULL,
                confidence REAL,
                reasoning TEXT,
                odds INTEGER NOT NULL,
                line REAL,
                bookmaker TEXT,
                home_short TEXT,
                away_short TEXT,
                stake REAL NOT NULL,
                potential_payout REAL NOT NULL,
                status TEXT NOT NULL DEFAULT 'Pending',
                profit REAL,
                actual_result TEXT,
                created_at TEXT NOT NULL,
                settled_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_bets_status_user ON bets(status, user_id);

            CREATE TABLE IF NOT EXISTS bankroll_snapshots (
                snapshot_id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL REFERENCES users(id),
                bankroll REAL NOT NULL,
                reason TEXT,
                recorded_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_snapshots_user ON bankroll_snapshots(user_id, recorded_at)
            """
        )
        if self.db_backend == "sqlite":
            self.conn.commit()
        self._ensure_columns()

    def _get_table_columns(self, table_name: str) -> set:
        """Return set of column names for a table (works on both backends)."""
        if self.db_backend == "postgres":
            cur = self.conn.execute(
                "SELECT column_name FROM information_schema.columns WHERE table_name = ?",
                (table_name,),
            )
            return {row[0] for row in cur.fetchall()}
        cur = self.conn.execute(f"PRAGMA table_info({table_name})")
        return {row[1] for row in cur.fetchall()}

    def _ensure_columns(self) -> None:
        # bets created before short names were stored
        existing = self._get_table_columns("bets")
        for column in ("home_short", "away_short"):
            if column not in existing:
                self.conn.execute(f"ALTER TABLE bets ADD COLUMN {column} TEXT")
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, email: str, starting_bankroll: float) -> Dict[str, Any]:
        if not math.isfinite(starting_bankroll) or starting_bankroll < 0:
            raise ValueError("starting bankroll must be a non-negative number")
        user_id = uuid.uuid4().hex
        now = _now()
        with self._lock:
            try:
                self.conn.execute(
                    """INSERT INTO users(id, email, starting_bankroll, current_bankroll, created_at)
                       VALUES(?,?,?,?,?)""",
                    (user_id, email, starting_bankroll, starting_bankroll, now),
                )
                self._record_snapshot(user_id, starting_bankroll, "Initial bankroll")
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        logger.info(f"Created user {email} with bankroll {starting_bankroll:.2f}")
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> Dict[str, Any]:
        row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if not row:
            raise UserNotFoundError(f"user {user_id} not found")
        return dict(row)

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return dict(row) if row else None

    def get_or_create_default_user(self) -> Dict[str, Any]:
        user = self.get_user_by_email(config.DEFAULT_USER_EMAIL)
        if user:
            return user
        return self.create_user(config.DEFAULT_USER_EMAIL, config.DEFAULT_STARTING_BANKROLL)

    def list_user_ids(self) -> List[str]:
        rows = self.conn.execute("SELECT id FROM users ORDER BY created_at").fetchall()
        return [r["id"] for r in rows]

    def add_funds(self, user_id: str, amount: float) -> float:
        """Credit *amount* to the bankroll. Returns the new balance."""
        if not math.isfinite(amount) or amount <= 0:
            raise ValueError("amount must be a positive number")
        with self._lock:
            try:
                cur = self.conn.execute(
                    "UPDATE users SET current_bankroll = current_bankroll + ? WHERE id = ?",
                    (amount, user_id),
                )
                if cur.rowcount == 0:
                    raise UserNotFoundError(f"user {user_id} not found")
                balance = self._balance(user_id)
                self._record_snapshot(user_id, balance, f"Added funds {amount:.2f}")
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        return balance

    def _balance(self, user_id: str) -> float:
        row = self.conn.execute(
            "SELECT current_bankroll FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if not row:
            raise UserNotFoundError(f"user {user_id} not found")
        return float(row["current_bankroll"])

    # ------------------------------------------------------------------
    # Bankroll history
    # ------------------------------------------------------------------

    def _record_snapshot(self, user_id: str, bankroll: float, reason: str) -> None:
        """Insert a history point inside the caller's transaction (no commit)."""
        self.conn.execute(
            """INSERT INTO bankroll_snapshots(user_id, bankroll, reason, recorded_at)
               VALUES(?,?,?,?)""",
            (user_id, bankroll, reason, _now()),
        )

    def get_bankroll_history(
        self, user_id: str, days: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        where = "user_id = ?"
        params: list = [user_id]
        if days:
            since = datetime.now(timezone.utc) - timedelta(days=days)
            where += " AND recorded_at >= ?"
            params.append(since.isoformat())
        rows = self.conn.execute(
            f"""SELECT bankroll, reason, recorded_at FROM bankroll_snapshots
                WHERE {where} ORDER BY recorded_at, snapshot_id""",
            params,
        ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    def place_bet(
        self,
        user_id: str,
        *,
        sport: str,
        home_team: str,
        away_team: str,
        game_date: str,
        bet_type: str,
        selection: str,
        odds: int,
        stake: float,
        line: Optional[float] = None,
        bookmaker: str = "",
        confidence: float = 60.0,
        reasoning: str = "",
        potential_payout: Optional[float] = None,
        home_short: Optional[str] = None,
        away_short: Optional[str] = None,
    ) -> BetSelection:
        """Debit *stake* from the bankroll and record a Pending bet.

        *home_short* / *away_short* are kept so the pick can be re-resolved
        at settlement the same way it was priced ("LAL -4.5").
        """
        canonical = normalize_bet_type(bet_type, default=None)
        if canonical is None:
            raise ValueError(f"unknown bet type: {bet_type!r}")
        if not odds:
            raise ValueError("American odds cannot be 0")
        if not math.isfinite(stake) or stake <= 0:
            raise ValueError("stake must be a positive number")
        if potential_payout is None:
            potential_payout = round(payout(stake, odds), 2)

        bet_id = uuid.uuid4().hex
        now = _now()
        with self._lock:
            try:
                cur = self.conn.execute(
                    """UPDATE users SET current_bankroll = current_bankroll - ?
                       WHERE id = ? AND current_bankroll >= ?""",
                    (stake, user_id, stake),
                )
                if cur.rowcount == 0:
                    balance = self._balance(user_id)
                    raise InsufficientBankrollError(
                        f"stake {stake:.2f} exceeds bankroll {balance:.2f}"
                    )
                self.conn.execute(
                    """INSERT INTO bets(
                        id, user_id, sport, home_team, away_team, game_date,
                        bet_type, selection, confidence, reasoning, odds, line,
                        bookmaker, home_short, away_short, stake, potential_payout,
                        status, created_at
                    ) VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)""",
                    (
                        bet_id, user_id, (sport or "").upper(), home_team, away_team,
                        game_date, canonical, selection, confidence, reasoning,
                        int(odds), line, bookmaker, home_short or None, away_short or None,
                        stake, potential_payout,
                        PENDING, now,
                    ),
                )
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        logger.info(f"Placed bet {bet_id}: {canonical} {selection!r} @ {odds} for {stake:.2f}")
        return self.get_bet(bet_id)

    def get_bet(self, bet_id: str) -> BetSelection:
        row = self.conn.execute("SELECT * FROM bets WHERE id = ?", (bet_id,)).fetchone()
        if not row:
            raise BetNotFoundError(f"bet {bet_id} not found")
        return BetSelection.from_row(row)

    def list_bets(
        self, user_id: str = "", status: str = "", limit: Optional[int] = None,
    ) -> List[BetSelection]:
        """Bets newest first, with optional filters."""
        where_parts = ["1=1"]
        params: list = []
        if user_id:
            where_parts.append("user_id = ?")
            params.append(user_id)
        if status:
            where_parts.append("status = ?")
            params.append(status)
        where = " AND ".join(where_parts)
        sql = f"SELECT * FROM bets WHERE {where} ORDER BY created_at DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(int(limit))
        rows = self.conn.execute(sql, params).fetchall()
        return [BetSelection.from_row(r) for r in rows]

    def list_pending_bets(self, user_id: str = "") -> List[BetSelection]:
        return self.list_bets(user_id=user_id, status=PENDING)

    def list_settled_bets(self, user_id: str) -> List[BetSelection]:
        rows = self.conn.execute(
            """SELECT * FROM bets WHERE user_id = ? AND status IN ('Won', 'Lost', 'Push')
               ORDER BY settled_at DESC, created_at DESC""",
            (user_id,),
        ).fetchall()
        return [BetSelection.from_row(r) for r in rows]

    def apply_settlement(
        self,
        bet_id: str,
        outcome: str,
        profit: float,
        bankroll_return: float,
        actual_result: Optional[str] = None,
    ) -> float:
        """Move a Pending bet to *outcome* and credit the owner's bankroll.

        The status write, the bankroll increment and the history point are
        one transaction. The status update is guarded on ``status =
        'Pending'``, so a bet can only ever be credited once; a second
        attempt raises BetAlreadySettledError. Returns the new bankroll.
        """
        if outcome not in OUTCOMES:
            raise ValueError(f"unknown outcome: {outcome!r}")
        for name, value in (("profit", profit), ("bankroll_return", bankroll_return)):
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value!r}")
        if bankroll_return < 0:
            raise ValueError(f"bankroll_return must be >= 0, got {bankroll_return}")

        with self._lock:
            try:
                row = self.conn.execute(
                    "SELECT user_id FROM bets WHERE id = ?", (bet_id,)
                ).fetchone()
                if not row:
                    raise BetNotFoundError(f"bet {bet_id} not found")
                user_id = row["user_id"]

                cur = self.conn.execute(
                    """UPDATE bets SET status = ?, profit = ?, actual_result = ?, settled_at = ?
                       WHERE id = ? AND status = ?""",
                    (outcome, profit, actual_result, _now(), bet_id, PENDING),
                )
                if cur.rowcount == 0:
                    raise BetAlreadySettledError(f"bet {bet_id} already settled")

                self.conn.execute(
                    "UPDATE users SET current_bankroll = current_bankroll + ? WHERE id = ?",
                    (bankroll_return, user_id),
                )
                balance = self._balance(user_id)
                self._record_snapshot(user_id, balance, f"Bet {bet_id} settled: {outcome}")
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        return balance
