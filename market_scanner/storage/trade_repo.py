"""Trade repository: SQLite CRUD for the trades table (positions)."""

from __future__ import annotations
import sqlite3
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from market_scanner.core.results import InvalidTransitionError
from market_scanner.core.types import OrderSide, Position, PositionStatus
from market_scanner.storage.db import from_db_time, get_connection, to_db_time


def _row_to_position(row: sqlite3.Row) -> Position:
    return Position(
        id=row["id"],
        signal_id=row["signal_id"],
        symbol=row["symbol"],
        side=OrderSide(row["side"]),
        entry_price=row["entry_price"],
        quantity=row["quantity"],
        stop_loss=row["stop_loss"],
        take_profit=row["take_profit"],
        status=PositionStatus(row["status"]),
        exit_price=row["exit_price"],
        realized_pnl=row["realized_pnl"],
        realized_pnl_percent=row["realized_pnl_percent"],
        exit_reason=row["exit_reason"],
        opened_at=from_db_time(row["opened_at"]),
        closed_at=from_db_time(row["closed_at"]),
        is_paper=bool(row["is_paper"]),
        order_id=row["order_id"],
        stop_order_id=row["stop_order_id"],
        advisory_analysis=row["advisory_analysis"],
    )


class TradeRepo:
    """Data access layer for positions. Open-position queries are the source of truth."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # -- write ----------------------------------------------------------

    def insert_open(self, position: Position) -> Position:
        """Insert an OPEN position and return it with its id."""
        if position.status != PositionStatus.OPEN:
            raise InvalidTransitionError(f"cannot insert a {position.status.value} position")
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO trades
                    (signal_id, symbol, side, entry_price, quantity, stop_loss,
                     take_profit, status, opened_at, is_paper, order_id, stop_order_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, 'OPEN', ?, ?, ?, ?)
                """,
                (
                    position.signal_id, position.symbol, position.side.value,
                    position.entry_price, position.quantity, position.stop_loss,
                    position.take_profit, to_db_time(position.opened_at),
                    int(position.is_paper), position.order_id, position.stop_order_id,
                ),
            )
            conn.commit()
            return replace(position, id=cur.lastrowid)
        finally:
            conn.close()

    def close_trade(self, position: Position) -> None:
        """Persist a terminal position. Only rows still OPEN are updated."""
        if position.id is None or position.is_open:
            raise InvalidTransitionError("close_trade needs a stored, terminal position")
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                UPDATE trades
                SET status = ?, exit_price = ?, realized_pnl = ?, realized_pnl_percent = ?,
                    exit_reason = ?, closed_at = ?
                WHERE id = ? AND status = 'OPEN'
                """,
                (
                    position.status.value, position.exit_price, position.realized_pnl,
                    position.realized_pnl_percent, position.exit_reason,
                    to_db_time(position.closed_at) if position.closed_at else None,
                    position.id,
                ),
            )
            conn.commit()
            if cur.rowcount == 0:
                raise InvalidTransitionError(f"trade {position.id} is not OPEN")
        finally:
            conn.close()

    def set_stop_order(self, trade_id: int, stop_order_id: Optional[str]) -> None:
        """Record (or clear) the exchange id of the protective stop of an OPEN trade."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE trades SET stop_order_id = ? WHERE id = ? AND status = 'OPEN'",
                (stop_order_id, trade_id),
            )
            conn.commit()
        finally:
            conn.close()

    def annotate(self, trade_id: int, analysis: str) -> None:
        """Attach an advisory note to a finished trade."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE trades SET advisory_analysis = ? WHERE id = ? AND status != 'OPEN'",
                (analysis, trade_id),
            )
            conn.commit()
        finally:
            conn.close()

    # -- read -----------------------------------------------------------

    def get(self, trade_id: int) -> Optional[Position]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute("SELECT * FROM trades WHERE id = ?", (trade_id,)).fetchone()
            return _row_to_position(row) if row else None
        finally:
            conn.close()

    def list_trades(self, status: Optional[PositionStatus] = None, limit: int = 50) -> List[Position]:
        conn = get_connection(self._db_path)
        try:
            if status is not None:
                rows = conn.execute(
                    "SELECT * FROM trades WHERE status = ? ORDER BY id DESC LIMIT ?", (status.value, limit)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM trades ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [_row_to_position(r) for r in rows]
        finally:
            conn.close()

    def list_open(self) -> List[Position]:
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute("SELECT * FROM trades WHERE status = 'OPEN' ORDER BY id").fetchall()
            return [_row_to_position(r) for r in rows]
        finally:
            conn.close()

    def has_open_position(self, symbol: str) -> bool:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT 1 FROM trades WHERE symbol = ? AND status = 'OPEN' LIMIT 1", (symbol,)
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def count_open(self) -> int:
        conn = get_connection(self._db_path)
        try:
            return conn.execute("SELECT COUNT(*) FROM trades WHERE status = 'OPEN'").fetchone()[0]
        finally:
            conn.close()

    def closed_since(self, since: datetime) -> List[Position]:
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM trades WHERE status = 'CLOSED' AND closed_at >= ? ORDER BY closed_at",
                (to_db_time(since),),
            ).fetchall()
            return [_row_to_position(r) for r in rows]
        finally:
            conn.close()

    def total_realized_pnl(self) -> float:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT COALESCE(SUM(realized_pnl), 0) FROM trades WHERE status = 'CLOSED'"
            ).fetchone()
            return float(row[0])
        finally:
            conn.close()
