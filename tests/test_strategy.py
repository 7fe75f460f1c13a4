"""Unit tests for strategies.multi_strategy and strategies.advisory."""

import math
from dataclasses import replace

import pytest

from conftest import bars_from_closes, v_shape_closes
from market_scanner.core.types import Direction, OrderSide, Position, utc_now
from market_scanner.indicators import ema
from market_scanner.strategies.advisory import AdvisoryScore, AdvisoryScorer, apply_advisory
from market_scanner.strategies.multi_strategy import IndicatorSnapshot, MultiStrategyEngine

NEUTRAL = IndicatorSnapshot(
    price=100.0,
    ema_fast=99.0,
    ema_slow=100.0,
    prev_ema_fast=99.0,
    prev_ema_slow=100.0,
    rsi=50.0,
    bb_upper=104.0,
    bb_middle=100.0,
    bb_lower=96.0,
    macd_hist=0.1,
    prev_macd_hist=0.2,
)


def first_cross(closes, above=True):
    fast, slow = ema(closes, 20), ema(closes, 50)
    for n in range(50, len(closes)):
        prev_f, prev_s, f, s = fast.iloc[n - 1], slow.iloc[n - 1], fast.iloc[n], slow.iloc[n]
        if above and prev_f <= prev_s and f > s:
            return n
        if not above and prev_f >= prev_s and f < s:
            return n
    raise AssertionError("no crossover in series")


def window_ending_on_cross(length=100):
    """A `length`-bar series whose last bar is the 20/50 golden cross."""
    for skip in (0, 1):
        for turn in range(40, length):
            closes = v_shape_closes(direction=1, n=length + skip, turn=turn + skip)[skip:]
            fast, slow = ema(closes, 20), ema(closes, 50)
            if fast.iloc[-2] <= slow.iloc[-2] and fast.iloc[-1] > slow.iloc[-1]:
                return closes
    raise AssertionError("no window ends on a crossover")


def test_golden_cross_generates_long():
    closes = v_shape_closes(direction=1)
    n = first_cross(closes, above=True)
    engine = MultiStrategyEngine()
    bars = bars_from_closes(closes[: n + 1])
    snap = engine.snapshot(bars)
    assert 45 < snap.rsi < 70

    signal = engine.generate_signal("BTCUSDT", bars)
    price = closes[n]
    assert signal.direction == Direction.LONG
    assert signal.stop_loss < price < signal.take_profit
    assert signal.stop_loss == pytest.approx(price * 0.95)
    assert signal.take_profit == pytest.approx(price * 1.10)
    assert signal.entry_min == pytest.approx(price * 0.998)
    assert signal.entry_max == pytest.approx(price * 1.002)
    assert signal.max_risk_percent == 5.0
    assert "Crossover" in signal.rationale[0]
    assert "crossed above" in signal.rationale[1]


def test_golden_cross_on_last_of_100_bars():
    closes = window_ending_on_cross(100)
    bars = bars_from_closes(closes)
    assert len(bars) == 100
    signal = MultiStrategyEngine().generate_signal("BTCUSDT", bars)
    assert signal.direction == Direction.LONG
    assert "Crossover" in signal.rationale[0]
    assert signal.stop_loss == pytest.approx(closes[-1] * 0.95)
    assert signal.take_profit == pytest.approx(closes[-1] * 1.10)


def test_insufficient_data():
    signal = MultiStrategyEngine().generate_signal("BTCUSDT", bars_from_closes([100.0] * 30))
    assert signal.direction == Direction.NO_TRADE
    assert signal.rationale == ("Insufficient data: 30 bars (need 50)",)


def test_flat_series_is_no_trade():
    signal = MultiStrategyEngine().generate_signal("ETHUSDT", bars_from_closes([100.0] * 100))
    assert signal.direction == Direction.NO_TRADE
    assert signal.rationale[0] == "No strong signal for ETHUSDT"
    assert signal.rationale[1] == "Indicators: RSI=50.00, BB Spread=0.00%"
    assert signal.stop_loss is None


def test_bearish_crossover_short():
    engine = MultiStrategyEngine()
    snap = replace(NEUTRAL, prev_ema_fast=100.5, prev_ema_slow=100.0, ema_fast=99.5, ema_slow=100.0, rsi=40.0)
    signal = engine.evaluate("BTCUSDT", snap)
    assert signal.direction == Direction.SHORT
    assert "crossed below" in signal.rationale[1]


def test_crossover_outside_rsi_gate_falls_through():
    engine = MultiStrategyEngine()
    snap = replace(NEUTRAL, prev_ema_fast=99.0, prev_ema_slow=100.0, ema_fast=100.5, ema_slow=100.0, rsi=75.0)
    assert engine.trend_crossover(snap) is None
    assert engine.evaluate("BTCUSDT", snap).direction == Direction.NO_TRADE


def test_mean_reversion_long_and_short():
    engine = MultiStrategyEngine()
    oversold = replace(NEUTRAL, price=95.0, rsi=30.0)
    overbought = replace(NEUTRAL, price=105.0, rsi=70.0)
    long_signal = engine.evaluate("SOLUSDT", oversold)
    short_signal = engine.evaluate("SOLUSDT", overbought)
    assert long_signal.direction == Direction.LONG
    assert short_signal.direction == Direction.SHORT
    assert long_signal.rationale[0] == "Strategy: Bollinger Bands Mean Reversion"


def test_momentum_flip():
    engine = MultiStrategyEngine()
    up = replace(NEUTRAL, prev_macd_hist=-0.2, macd_hist=0.3, rsi=55.0)
    down = replace(NEUTRAL, prev_macd_hist=0.2, macd_hist=-0.3, rsi=45.0)
    assert engine.evaluate("XRPUSDT", up).direction == Direction.LONG
    assert engine.evaluate("XRPUSDT", down).direction == Direction.SHORT
    # flip without RSI on the same side does not fire
    assert engine.evaluate("XRPUSDT", replace(up, rsi=45.0)).direction == Direction.NO_TRADE


def test_crossover_has_priority_over_momentum():
    engine = MultiStrategyEngine()
    snap = replace(
        NEUTRAL, prev_ema_fast=99.0, prev_ema_slow=100.0, ema_fast=100.5, ema_slow=100.0,
        rsi=55.0, prev_macd_hist=-0.1, macd_hist=0.2,
    )
    signal = engine.evaluate("BTCUSDT", snap)
    assert signal.direction == Direction.LONG
    assert signal.rationale[0] == "Strategy: EMA Crossover Detected (20/50)"


def test_nan_indicator_never_fires():
    engine = MultiStrategyEngine()
    snap = replace(NEUTRAL, price=95.0, rsi=math.nan)
    signal = engine.evaluate("BTCUSDT", snap)
    assert signal.direction == Direction.NO_TRADE
    assert "RSI=n/a" in signal.rationale[1]


def test_short_levels_mirror_long():
    signal = MultiStrategyEngine().build_signal("BTCUSDT", Direction.SHORT, 100.0, ["x"])
    assert signal.stop_loss == pytest.approx(105.0)
    assert signal.take_profit == pytest.approx(90.0)
    assert signal.entry_min == pytest.approx(100.2)
    assert signal.entry_max == pytest.approx(99.8)
    assert signal.reference_price == signal.entry_max


def test_ema_lengths_validated():
    with pytest.raises(ValueError):
        MultiStrategyEngine(ema_fast=50, ema_slow=20)


def _long(stop=95.0, take_profit=110.0):
    return Position(
        symbol="BTCUSDT", side=OrderSide.BUY, entry_price=100.0, quantity=1.0,
        stop_loss=stop, take_profit=take_profit, opened_at=utc_now(),
    )


def test_should_exit_stop_and_target():
    engine = MultiStrategyEngine()
    assert engine.should_exit(_long(), 94.0, []).kind == "stop_loss"
    assert engine.should_exit(_long(), 111.0, []).kind == "take_profit"
    assert engine.should_exit(_long(), 100.0, []).should_exit is False


def test_should_exit_short():
    engine = MultiStrategyEngine()
    short = replace(_long(), side=OrderSide.SELL, stop_loss=105.0, take_profit=90.0)
    assert engine.should_exit(short, 106.0, []).kind == "stop_loss"
    assert engine.should_exit(short, 89.0, []).kind == "take_profit"


def test_stop_loss_wins_when_both_breached():
    # levels that a single gap price satisfies both ways
    position = _long(stop=105.0, take_profit=100.0)
    assert MultiStrategyEngine().should_exit(position, 102.0, []).kind == "stop_loss"


def test_trend_reversal_exit():
    closes = v_shape_closes(direction=-1)
    n = first_cross(closes, above=False)
    position = _long(stop=1.0, take_profit=10_000.0)
    decision = MultiStrategyEngine().should_exit(position, closes[n], bars_from_closes(closes[: n + 1]))
    assert decision.should_exit
    assert decision.kind == "trend_reversal"


class FixedScorer(AdvisoryScorer):
    def __init__(self, confidence=None, error=None):
        self.confidence = confidence
        self.error = error

    def score_signal(self, symbol, rationale, recent_bars):
        if self.error:
            raise self.error
        return AdvisoryScore(confidence=self.confidence, comment="looks fine")


def test_apply_advisory():
    signal = MultiStrategyEngine().build_signal("BTCUSDT", Direction.LONG, 100.0, ["x"])
    scored = apply_advisory(FixedScorer(confidence=130), signal, [])
    assert scored.advisory_confidence == 100.0
    assert scored.advisory_comment == "looks fine"
    assert apply_advisory(None, signal, []) is signal
    assert apply_advisory(FixedScorer(error=RuntimeError("down")), signal, []) is signal
