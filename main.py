#!/usr/bin/env python3
"""
Market Scanner CLI: run | once | stats
Usage:
  python main.py run [--config config.yaml]     # cycle every trading.cycle_interval until Ctrl+C
  python main.py once [--config config.yaml]    # a single cycle
  python main.py stats [--config config.yaml]   # performance summary from the database
"""

from __future__ import annotations
import argparse
import logging
import signal
import sys
from pathlib import Path

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from market_scanner.analytics.metrics import summarize
from market_scanner.core.config import Config, load_config
from market_scanner.core.logger import setup_logging
from market_scanner.core.types import PositionStatus
from market_scanner.engine.context import CycleContext
from market_scanner.engine.scheduler import Scheduler, TradingCycle
from market_scanner.execution.binance_futures import BinanceFuturesClient
from market_scanner.execution.paper import PaperAccount, PaperExecutor
from market_scanner.lifecycle.positions import PositionManager
from market_scanner.risk.manager import RiskManager
from market_scanner.storage.db import init_db
from market_scanner.storage.signal_repo import SignalRepo
from market_scanner.storage.snapshot_repo import SnapshotRepo
from market_scanner.storage.trade_repo import TradeRepo
from market_scanner.strategies.multi_strategy import MultiStrategyEngine
from market_scanner.utils.timeframes import timeframe_seconds

logger = logging.getLogger("market_scanner")


def build_scheduler(config: Config) -> Scheduler:
    """Construct every component once and wire them into a scheduler."""
    db_path = str(config.db_path)
    init_db(db_path)
    trades = TradeRepo(db_path)
    client = BinanceFuturesClient(
        config.binance_api_key,
        config.binance_api_secret,
        testnet=config.use_testnet,
        quote_asset=config.quote_asset,
    )
    if config.is_paper:
        market = PaperAccount(client, trades, config.initial_capital)
        executor = PaperExecutor()
    else:
        market = client
        executor = client
    strategy = MultiStrategyEngine(
        ema_fast=config.ema_fast,
        ema_slow=config.ema_slow,
        rsi_len=config.rsi_len,
        bb_len=config.bb_len,
        bb_mult=config.bb_mult,
        macd_fast=config.macd_fast,
        macd_slow=config.macd_slow,
        macd_signal=config.macd_signal,
        stop_loss_pct=config.stop_loss_pct,
        reward_risk=config.reward_risk,
        entry_band_pct=config.entry_band_pct,
    )
    risk_manager = RiskManager(
        trades,
        risk_per_trade=config.risk_per_trade,
        max_daily_loss_fraction=config.max_daily_loss_fraction,
        initial_capital=config.initial_capital,
        max_risk_percent=config.max_risk_percent,
        min_notional=config.min_notional,
        max_position_pct_equity=config.max_position_pct_equity,
        max_open_positions=config.max_open_positions,
        min_advisory_confidence=config.min_advisory_confidence,
    )
    positions = PositionManager(
        market, executor, strategy, trades,
        interval=config.kline_interval,
        history_limit=config.history_limit,
    )
    cycle = TradingCycle(
        config.symbols, market, executor, strategy, risk_manager, positions,
        SignalRepo(db_path), trades, SnapshotRepo(db_path),
        interval=config.kline_interval,
        history_limit=config.history_limit,
        record_no_trade_signals=config.record_no_trade_signals,
    )
    context = CycleContext.load(trades, config.initial_capital)
    return Scheduler(cycle, context, timeframe_seconds(config.cycle_interval))


def _check_keys(config: Config) -> bool:
    if not config.is_paper and (not config.binance_api_key or not config.binance_api_secret):
        logger.error("Live mode needs BINANCE_API_KEY and BINANCE_API_SECRET in .env")
        return False
    return True


def run_scheduler(config_path: Path | None, once: bool) -> int:
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file, config.alerts_file)
    if not _check_keys(config):
        return 1
    logger.info(
        "Market scanner starting | mode=%s | testnet=%s | %d symbols | interval=%s",
        config.trading_mode, config.use_testnet, len(config.symbols), config.cycle_interval,
    )
    scheduler = build_scheduler(config)
    if once:
        report = scheduler.run_once()
        return 0 if report is not None and not report.aborted else 1
    signal.signal(signal.SIGINT, scheduler.stop)
    signal.signal(signal.SIGTERM, scheduler.stop)
    scheduler.run_forever()
    return 0


def run_stats(config_path: Path | None) -> int:
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level)
    db_path = str(config.db_path)
    init_db(db_path)
    trades = TradeRepo(db_path)
    closed = trades.list_trades(PositionStatus.CLOSED, limit=-1)
    s = summarize(closed, SnapshotRepo(db_path).list_since())
    print("\n--- Performance ---")
    print(f"Closed trades: {s.total_trades} (wins: {s.winning_trades}, losses: {s.losing_trades})")
    print(f"Open positions: {trades.count_open()}")
    print(f"Win rate: {s.win_rate*100:.1f}%")
    print(f"Profit factor: {s.profit_factor:.2f}")
    print(f"Expectancy: {s.expectancy:.2f} USDT/trade")
    print(f"Realized PnL: {s.total_realized_pnl:.2f} USDT (today: {s.daily_realized_pnl:.2f})")
    if s.latest_equity is not None:
        print(f"Equity: {s.latest_equity:.2f} USDT")
    print(f"Max drawdown: {s.max_drawdown_pct:.2f}%")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Market Scanner CLI")
    parser.add_argument("mode", choices=["run", "once", "stats"], help="Run continuously, one cycle, or print stats")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    args = parser.parse_args()
    if args.mode == "stats":
        return run_stats(args.config)
    return run_scheduler(args.config, once=args.mode == "once")


if __name__ == "__main__":
    sys.exit(main())
