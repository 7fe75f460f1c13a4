"""Account snapshot repository: append-only equity history."""

from __future__ import annotations
import sqlite3
from datetime import datetime
from typing import List, Optional

from market_scanner.core.types import AccountSnapshot
from market_scanner.storage.db import from_db_time, get_connection, to_db_time


def _row_to_snapshot(row: sqlite3.Row) -> AccountSnapshot:
    return AccountSnapshot(
        id=row["id"],
        timestamp=from_db_time(row["timestamp"]),
        total_equity=row["total_equity"],
        available_balance=row["available_balance"],
        daily_pnl=row["daily_pnl"],
    )


class SnapshotRepo:

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert(self, snapshot: AccountSnapshot) -> int:
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO account_snapshots (timestamp, total_equity, available_balance, daily_pnl)
                VALUES (?, ?, ?, ?)
                """,
                (
                    to_db_time(snapshot.timestamp), snapshot.total_equity,
                    snapshot.available_balance, snapshot.daily_pnl,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def latest(self) -> Optional[AccountSnapshot]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute("SELECT * FROM account_snapshots ORDER BY id DESC LIMIT 1").fetchone()
            return _row_to_snapshot(row) if row else None
        finally:
            conn.close()

    def list_since(self, since: Optional[datetime] = None) -> List[AccountSnapshot]:
        """Chronological snapshots, optionally from `since` onwards."""
        conn = get_connection(self._db_path)
        try:
            if since is None:
                rows = conn.execute("SELECT * FROM account_snapshots ORDER BY id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM account_snapshots WHERE timestamp >= ? ORDER BY id",
                    (to_db_time(since),),
                ).fetchall()
            return [_row_to_snapshot(r) for r in rows]
        finally:
            conn.close()
