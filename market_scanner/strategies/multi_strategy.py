"""
Three-rule strategy engine, first match wins:
  1. Trend following: EMA fast/slow crossover gated by RSI.
  2. Mean reversion: close at or beyond a Bollinger band with RSI extreme.
  3. Momentum: MACD histogram sign flip with RSI on the same side of the pivot.
Levels: fixed-percent stop, fixed reward:risk target, narrow entry band.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from market_scanner.core.types import Direction, OrderSide, Position, PriceBar, Signal, close_series
from market_scanner.indicators import bollinger_bands, ema, macd, rsi
from market_scanner.strategies.base import NO_EXIT, BaseStrategy, ExitDecision

logger = logging.getLogger("market_scanner.strategy")

RuleResult = Optional[Tuple[Direction, List[str]]]


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Latest (and previous, where a crossover needs it) indicator values."""
    price: float
    ema_fast: float
    ema_slow: float
    prev_ema_fast: float
    prev_ema_slow: float
    rsi: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    macd_hist: float
    prev_macd_hist: float


def _last(series: pd.Series, back: int = 1) -> float:
    if len(series) < back:
        return math.nan
    return float(series.iloc[-back])


def _fmt(value: float, digits: int = 2) -> str:
    return "n/a" if math.isnan(value) else f"{value:.{digits}f}"


def crossed_above(prev_a: float, prev_b: float, a: float, b: float) -> bool:
    return prev_a <= prev_b and a > b


def crossed_below(prev_a: float, prev_b: float, a: float, b: float) -> bool:
    return prev_a >= prev_b and a < b


class MultiStrategyEngine(BaseStrategy):
    """Trend crossover, Bollinger mean reversion and MACD momentum, in that priority."""

    def __init__(
        self,
        ema_fast: int = 20,
        ema_slow: int = 50,
        rsi_len: int = 14,
        rsi_trend_long_min: float = 45,
        rsi_trend_long_max: float = 70,
        rsi_trend_short_min: float = 30,
        rsi_trend_short_max: float = 55,
        bb_len: int = 20,
        bb_mult: float = 2.0,
        rsi_oversold: float = 35,
        rsi_overbought: float = 65,
        macd_fast: int = 12,
        macd_slow: int = 26,
        macd_signal: int = 9,
        rsi_momentum_pivot: float = 50,
        stop_loss_pct: float = 0.05,
        reward_risk: float = 2.0,
        entry_band_pct: float = 0.002,
        max_risk_percent: float = 5.0,
    ):
        if ema_fast >= ema_slow:
            raise ValueError(f"ema_fast ({ema_fast}) must be shorter than ema_slow ({ema_slow})")
        self.ema_fast = ema_fast
        self.ema_slow = ema_slow
        self.rsi_len = rsi_len
        self.rsi_trend_long_min = rsi_trend_long_min
        self.rsi_trend_long_max = rsi_trend_long_max
        self.rsi_trend_short_min = rsi_trend_short_min
        self.rsi_trend_short_max = rsi_trend_short_max
        self.bb_len = bb_len
        self.bb_mult = bb_mult
        self.rsi_oversold = rsi_oversold
        self.rsi_overbought = rsi_overbought
        self.macd_fast = macd_fast
        self.macd_slow = macd_slow
        self.macd_signal = macd_signal
        self.rsi_momentum_pivot = rsi_momentum_pivot
        self.stop_loss_pct = stop_loss_pct
        self.reward_risk = reward_risk
        self.entry_band_pct = entry_band_pct
        self.max_risk_percent = max_risk_percent

    @property
    def min_bars(self) -> int:
        return max(self.ema_slow, self.bb_len, self.rsi_len + 1)

    # -- indicators -----------------------------------------------------

    def snapshot(self, bars: Sequence[PriceBar]) -> IndicatorSnapshot:
        closes = close_series(bars)
        fast = ema(closes, self.ema_fast)
        slow = ema(closes, self.ema_slow)
        bands = bollinger_bands(closes, self.bb_len, self.bb_mult)
        hist = macd(closes, self.macd_fast, self.macd_slow, self.macd_signal).histogram
        return IndicatorSnapshot(
            price=_last(closes),
            ema_fast=_last(fast),
            ema_slow=_last(slow),
            prev_ema_fast=_last(fast, 2),
            prev_ema_slow=_last(slow, 2),
            rsi=_last(rsi(closes, self.rsi_len)),
            bb_upper=_last(bands.upper),
            bb_middle=_last(bands.middle),
            bb_lower=_last(bands.lower),
            macd_hist=_last(hist),
            prev_macd_hist=_last(hist, 2),
        )

    # -- rules ----------------------------------------------------------

    def trend_crossover(self, s: IndicatorSnapshot) -> RuleResult:
        label = f"Strategy: EMA Crossover Detected ({self.ema_fast}/{self.ema_slow})"
        if (crossed_above(s.prev_ema_fast, s.prev_ema_slow, s.ema_fast, s.ema_slow)
                and self.rsi_trend_long_min < s.rsi < self.rsi_trend_long_max):
            return Direction.LONG, [
                label,
                f"EMA{self.ema_fast} ({_fmt(s.ema_fast)}) crossed above EMA{self.ema_slow} ({_fmt(s.ema_slow)})",
                f"RSI is at {_fmt(s.rsi)} confirming uptrend",
            ]
        if (crossed_below(s.prev_ema_fast, s.prev_ema_slow, s.ema_fast, s.ema_slow)
                and self.rsi_trend_short_min < s.rsi < self.rsi_trend_short_max):
            return Direction.SHORT, [
                label,
                f"EMA{self.ema_fast} ({_fmt(s.ema_fast)}) crossed below EMA{self.ema_slow} ({_fmt(s.ema_slow)})",
                f"RSI is at {_fmt(s.rsi)} confirming downtrend",
            ]
        return None

    def mean_reversion(self, s: IndicatorSnapshot) -> RuleResult:
        label = "Strategy: Bollinger Bands Mean Reversion"
        if s.price <= s.bb_lower and s.rsi < self.rsi_oversold:
            return Direction.LONG, [
                label,
                f"Price ({_fmt(s.price)}) touched lower band ({_fmt(s.bb_lower)})",
                f"RSI is oversold ({_fmt(s.rsi)})",
            ]
        if s.price >= s.bb_upper and s.rsi > self.rsi_overbought:
            return Direction.SHORT, [
                label,
                f"Price ({_fmt(s.price)}) touched upper band ({_fmt(s.bb_upper)})",
                f"RSI is overbought ({_fmt(s.rsi)})",
            ]
        return None

    def momentum(self, s: IndicatorSnapshot) -> RuleResult:
        label = "Strategy: MACD Histogram Crossover"
        shift = f"(histogram {_fmt(s.prev_macd_hist, 4)} -> {_fmt(s.macd_hist, 4)})"
        if s.prev_macd_hist < 0 < s.macd_hist and s.rsi > self.rsi_momentum_pivot:
            return Direction.LONG, [label, f"Momentum shifted to positive {shift}", f"RSI is at {_fmt(s.rsi)}"]
        if s.prev_macd_hist > 0 > s.macd_hist and s.rsi < self.rsi_momentum_pivot:
            return Direction.SHORT, [label, f"Momentum shifted to negative {shift}", f"RSI is at {_fmt(s.rsi)}"]
        return None

    # -- signal ---------------------------------------------------------

    def evaluate(self, symbol: str, s: IndicatorSnapshot) -> Signal:
        for rule in (self.trend_crossover, self.mean_reversion, self.momentum):
            result = rule(s)
            if result is not None:
                direction, rationale = result
                return self.build_signal(symbol, direction, s.price, rationale)
        spread = (s.bb_upper - s.bb_lower) / s.price * 100 if s.price else math.nan
        return Signal(
            symbol=symbol,
            direction=Direction.NO_TRADE,
            rationale=(
                f"No strong signal for {symbol}",
                f"Indicators: RSI={_fmt(s.rsi)}, BB Spread={_fmt(spread)}%",
            ),
        )

    def generate_signal(self, symbol: str, bars: Sequence[PriceBar]) -> Signal:
        if len(bars) < self.min_bars:
            return Signal(
                symbol=symbol,
                direction=Direction.NO_TRADE,
                rationale=(f"Insufficient data: {len(bars)} bars (need {self.min_bars})",),
            )
        signal = self.evaluate(symbol, self.snapshot(bars))
        logger.debug("%s -> %s | %s", symbol, signal.direction.value, "; ".join(signal.rationale))
        return signal

    def build_signal(self, symbol: str, direction: Direction, price: float, rationale: List[str]) -> Signal:
        band = self.entry_band_pct
        if direction == Direction.LONG:
            stop = price * (1 - self.stop_loss_pct)
            take_profit = price + (price - stop) * self.reward_risk
            entry_min, entry_max = price * (1 - band), price * (1 + band)
        else:
            stop = price * (1 + self.stop_loss_pct)
            take_profit = price - (stop - price) * self.reward_risk
            entry_min, entry_max = price * (1 + band), price * (1 - band)
        return Signal(
            symbol=symbol,
            direction=direction,
            rationale=tuple(rationale),
            entry_min=entry_min,
            entry_max=entry_max,
            stop_loss=stop,
            take_profit=take_profit,
            max_risk_percent=self.max_risk_percent,
        )

    # -- exits ----------------------------------------------------------

    def should_exit(self, position: Position, current_price: float, bars: Sequence[PriceBar]) -> ExitDecision:
        """Stop-loss, then take-profit, then an EMA crossover against the position."""
        is_long = position.side == OrderSide.BUY
        if (is_long and current_price <= position.stop_loss) or (not is_long and current_price >= position.stop_loss):
            return ExitDecision(True, "Stop-loss triggered", "stop_loss")
        if (is_long and current_price >= position.take_profit) or (not is_long and current_price <= position.take_profit):
            return ExitDecision(True, "Take-profit target reached", "take_profit")

        closes = close_series(bars)
        fast = ema(closes, self.ema_fast)
        slow = ema(closes, self.ema_slow)
        values = (_last(fast, 2), _last(slow, 2), _last(fast), _last(slow))
        if is_long and crossed_below(*values):
            return ExitDecision(True, "Trend reversal detected (bearish crossover)", "trend_reversal")
        if not is_long and crossed_above(*values):
            return ExitDecision(True, "Trend reversal detected (bullish crossover)", "trend_reversal")
        return NO_EXIT
