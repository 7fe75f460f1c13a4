"""
Core data types: price bars, signals, positions, account snapshots.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

import pandas as pd


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    NO_TRADE = "NO_TRADE"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def for_direction(cls, direction: Direction) -> "OrderSide":
        if direction == Direction.LONG:
            return cls.BUY
        if direction == Direction.SHORT:
            return cls.SELL
        raise ValueError(f"No order side for {direction.value}")

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self == OrderSide.BUY else OrderSide.BUY


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PriceBar:
    """OHLCV candle."""
    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


def close_series(bars: Sequence[PriceBar]) -> pd.Series:
    """Close prices indexed by bar open time."""
    return pd.Series(
        [b.close for b in bars],
        index=pd.DatetimeIndex([b.open_time for b in bars], name="open_time"),
        dtype=float,
        name="close",
    )


@dataclass(frozen=True)
class Signal:
    """Directional trade idea with levels and the rationale that produced it."""
    symbol: str
    direction: Direction
    rationale: tuple = ()
    entry_min: Optional[float] = None
    entry_max: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    max_risk_percent: Optional[float] = None
    advisory_confidence: Optional[float] = None
    advisory_comment: Optional[str] = None
    generated_at: datetime = field(default_factory=utc_now)

    @property
    def is_actionable(self) -> bool:
        return self.direction != Direction.NO_TRADE

    @property
    def reference_price(self) -> Optional[float]:
        """Entry price used for sizing (upper edge of the LONG band, mirrored for SHORT)."""
        return self.entry_max

    def with_advisory(self, confidence: Optional[float], comment: Optional[str]) -> "Signal":
        return replace(self, advisory_confidence=confidence, advisory_comment=comment)


@dataclass(frozen=True)
class Position:
    """A trade record. Exit fields are only set by the OPEN -> CLOSED transition."""
    symbol: str
    side: OrderSide
    entry_price: float
    quantity: float
    stop_loss: float
    take_profit: float
    opened_at: datetime
    status: PositionStatus = PositionStatus.OPEN
    id: Optional[int] = None
    signal_id: Optional[int] = None
    exit_price: Optional[float] = None
    realized_pnl: Optional[float] = None
    realized_pnl_percent: Optional[float] = None
    closed_at: Optional[datetime] = None
    exit_reason: Optional[str] = None
    is_paper: bool = True
    order_id: Optional[str] = None
    stop_order_id: Optional[str] = None
    advisory_analysis: Optional[str] = None

    @property
    def direction(self) -> Direction:
        return Direction.LONG if self.side == OrderSide.BUY else Direction.SHORT

    @property
    def notional(self) -> float:
        return self.entry_price * self.quantity

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN


@dataclass(frozen=True)
class AccountEquity:
    """Balance report from the market data provider."""
    available: float
    unrealized: float = 0.0

    @property
    def total(self) -> float:
        return self.available + self.unrealized


@dataclass(frozen=True)
class AccountSnapshot:
    """Equity at the start of a cycle. Append-only."""
    total_equity: float
    available_balance: float
    timestamp: datetime
    daily_pnl: float = 0.0
    id: Optional[int] = None
