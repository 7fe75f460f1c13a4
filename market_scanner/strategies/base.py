"""Abstract strategy: signal generation and exit evaluation from price bars."""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from market_scanner.core.types import Position, PriceBar, Signal


@dataclass(frozen=True)
class ExitDecision:
    should_exit: bool
    reason: str = ""
    kind: Optional[str] = None  # "stop_loss" | "take_profit" | "trend_reversal"


NO_EXIT = ExitDecision(should_exit=False)


class BaseStrategy(ABC):
    """Strategy turns a chronological bar window into at most one Signal per call."""

    @abstractmethod
    def generate_signal(self, symbol: str, bars: Sequence[PriceBar]) -> Signal:
        """Return a LONG/SHORT Signal with levels, or NO_TRADE. Never raises on short data."""
        pass

    @abstractmethod
    def should_exit(self, position: Position, current_price: float, bars: Sequence[PriceBar]) -> ExitDecision:
        """Decide whether an open position must be closed at current_price."""
        pass
