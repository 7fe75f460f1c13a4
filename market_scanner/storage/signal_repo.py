"""Signal repository: SQLite CRUD for the signals table."""

from __future__ import annotations
import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from market_scanner.core.types import Direction, Signal, utc_now
from market_scanner.storage.db import from_db_time, get_connection, to_db_time


def _row_to_signal(row: sqlite3.Row) -> Signal:
    return Signal(
        symbol=row["symbol"],
        direction=Direction(row["direction"]),
        rationale=tuple(json.loads(row["rationale"])),
        entry_min=row["entry_min"],
        entry_max=row["entry_max"],
        stop_loss=row["stop_loss"],
        take_profit=row["take_profit"],
        max_risk_percent=row["max_risk_percent"],
        advisory_confidence=row["advisory_confidence"],
        advisory_comment=row["advisory_comment"],
        generated_at=from_db_time(row["generated_at"]),
    )


class SignalRepo:
    """Audit trail of every evaluated signal, traded or not."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert(self, signal: Signal, risk_reason: Optional[str] = None) -> int:
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO signals
                    (symbol, direction, entry_min, entry_max, stop_loss, take_profit,
                     max_risk_percent, rationale, advisory_confidence, advisory_comment,
                     risk_reason, generated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.symbol, signal.direction.value, signal.entry_min, signal.entry_max,
                    signal.stop_loss, signal.take_profit, signal.max_risk_percent,
                    json.dumps(list(signal.rationale)), signal.advisory_confidence,
                    signal.advisory_comment, risk_reason, to_db_time(signal.generated_at),
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def mark_executed(self, signal_id: int, executed_at: Optional[datetime] = None) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE signals SET executed = 1, executed_at = ? WHERE id = ?",
                (to_db_time(executed_at or utc_now()), signal_id),
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, signal_id: int) -> Optional[Signal]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute("SELECT * FROM signals WHERE id = ?", (signal_id,)).fetchone()
            return _row_to_signal(row) if row else None
        finally:
            conn.close()

    def list_recent(self, limit: int = 50, symbol: Optional[str] = None) -> List[Signal]:
        conn = get_connection(self._db_path)
        try:
            if symbol:
                rows = conn.execute(
                    "SELECT * FROM signals WHERE symbol = ? ORDER BY id DESC LIMIT ?", (symbol, limit)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM signals ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [_row_to_signal(r) for r in rows]
        finally:
            conn.close()
