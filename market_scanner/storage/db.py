"""SQLite schema and connection factory."""

from __future__ import annotations
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

SCHEMA = """
CREATE TABLE IF NOT EXISTS signals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    direction TEXT NOT NULL,
    entry_min REAL,
    entry_max REAL,
    stop_loss REAL,
    take_profit REAL,
    max_risk_percent REAL,
    rationale TEXT NOT NULL,
    advisory_confidence REAL,
    advisory_comment TEXT,
    risk_reason TEXT,
    generated_at TEXT NOT NULL,
    executed INTEGER NOT NULL DEFAULT 0,
    executed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_signals_generated ON signals(generated_at);
CREATE INDEX IF NOT EXISTS idx_signals_symbol ON signals(symbol);

CREATE TABLE IF NOT EXISTS trades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    signal_id INTEGER REFERENCES signals(id) ON DELETE SET NULL,
    symbol TEXT NOT NULL,
    side TEXT NOT NULL,
    entry_price REAL NOT NULL,
    quantity REAL NOT NULL,
    stop_loss REAL NOT NULL,
    take_profit REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'OPEN',
    exit_price REAL,
    realized_pnl REAL,
    realized_pnl_percent REAL,
    exit_reason TEXT,
    opened_at TEXT NOT NULL,
    closed_at TEXT,
    is_paper INTEGER NOT NULL DEFAULT 1,
    order_id TEXT,
    stop_order_id TEXT,
    advisory_analysis TEXT
);
CREATE INDEX IF NOT EXISTS idx_trades_status ON trades(status);
CREATE INDEX IF NOT EXISTS idx_trades_symbol ON trades(symbol);
CREATE INDEX IF NOT EXISTS idx_trades_closed ON trades(closed_at);

CREATE TABLE IF NOT EXISTS account_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    total_equity REAL NOT NULL,
    available_balance REAL NOT NULL,
    daily_pnl REAL NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_snapshots_timestamp ON account_snapshots(timestamp);
"""


def init_db(db_path: str) -> None:
    """Create tables if missing. Parent directory is created for file paths."""
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA)
        _add_stop_order_column(conn)
        conn.commit()
    finally:
        conn.close()


def _add_stop_order_column(conn: sqlite3.Connection) -> None:
    """Databases created before protective stops were tracked lack `stop_order_id`."""
    columns = [row[1] for row in conn.execute("PRAGMA table_info(trades)").fetchall()]
    if "stop_order_id" not in columns:
        conn.execute("ALTER TABLE trades ADD COLUMN stop_order_id TEXT")


def get_connection(db_path: str) -> sqlite3.Connection:
    """New connection with row factory. Callers close it."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def to_db_time(value: datetime) -> str:
    """UTC ISO-8601 with fixed precision so stored strings sort chronologically."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
