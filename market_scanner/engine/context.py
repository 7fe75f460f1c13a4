"""
Per-account state carried from one cycle to the next: last known equity and
the positions closed since local midnight. Rebuilt from the trade store on
start-up and at every day boundary.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from market_scanner.core.types import Position

if TYPE_CHECKING:
    from market_scanner.storage.trade_repo import TradeRepo

logger = logging.getLogger("market_scanner.engine.context")


def local_now() -> datetime:
    return datetime.now().astimezone()


def local_day_start(now: datetime) -> datetime:
    """Local midnight of the calendar day containing `now`."""
    return now.astimezone().replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass
class CycleContext:
    trading_day: date
    last_equity: float
    closed_today: List[Position] = field(default_factory=list)
    cycles_run: int = 0
    trading_halted: bool = False

    @classmethod
    def load(cls, trades: "TradeRepo", initial_equity: float, now: Optional[datetime] = None) -> "CycleContext":
        now = now or local_now()
        closed = trades.closed_since(local_day_start(now))
        logger.info("Context loaded: %d trade(s) closed today, equity %.2f", len(closed), initial_equity)
        return cls(trading_day=now.astimezone().date(), last_equity=initial_equity, closed_today=closed)

    @property
    def daily_realized_pnl(self) -> float:
        return sum(p.realized_pnl or 0.0 for p in self.closed_today)

    def roll_day(self, trades: "TradeRepo", now: Optional[datetime] = None) -> bool:
        """Reload today's closed trades if the local date changed. Returns True on rollover."""
        now = now or local_now()
        today = now.astimezone().date()
        if today == self.trading_day:
            return False
        self.trading_day = today
        self.trading_halted = False
        self.closed_today = trades.closed_since(local_day_start(now))
        logger.info("New trading day %s: daily P&L reset (%d trade(s) closed so far)", today, len(self.closed_today))
        return True

    def record_close(self, position: Position) -> None:
        if position.closed_at is not None and position.closed_at.astimezone().date() == self.trading_day:
            self.closed_today.append(position)

    def update_equity(self, equity: float) -> None:
        self.last_equity = equity
