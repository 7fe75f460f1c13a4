"""
Load configuration from config.yaml and .env. API keys only from env.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, List, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_SYMBOLS = [
    "BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT", "XRPUSDT", "ADAUSDT",
    "DOGEUSDT", "AVAXUSDT", "DOTUSDT", "LINKUSDT", "LTCUSDT", "TRXUSDT",
]

TRADING_MODES = ("paper", "live")


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def _symbols(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    return [s.strip().upper() for s in raw if s and s.strip()]


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    # Env overrides (for secrets and overrides)
    def env(key: str, default: str = "") -> str:
        return os.getenv(key, default).strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    api = data.get("api", {})
    trading = data.get("trading", {})
    strategy = data.get("strategy", {})
    risk = data.get("risk", {})
    storage = data.get("storage", {})
    logging_cfg = data.get("logging", {})

    use_testnet = env_bool("USE_TESTNET", api.get("use_testnet", True))
    # Prefer dedicated testnet/mainnet keys so both can live in .env and USE_TESTNET switches
    if use_testnet:
        binance_api_key = env("BINANCE_TESTNET_API_KEY") or env("BINANCE_API_KEY")
        binance_api_secret = env("BINANCE_TESTNET_API_SECRET") or env("BINANCE_API_SECRET")
    else:
        binance_api_key = env("BINANCE_MAINNET_API_KEY") or env("BINANCE_API_KEY")
        binance_api_secret = env("BINANCE_MAINNET_API_SECRET") or env("BINANCE_API_SECRET")

    symbols = os.getenv("SYMBOLS")
    trading_mode = env("TRADING_MODE", trading.get("mode", "paper")).lower()
    if trading_mode not in TRADING_MODES:
        raise ValueError(f"trading mode must be one of {TRADING_MODES}, got {trading_mode!r}")
    min_confidence = risk.get("min_advisory_confidence", 75.0)

    return Config(
        # API (env only; never put keys in config.yaml)
        binance_api_key=binance_api_key,
        binance_api_secret=binance_api_secret,
        use_testnet=use_testnet,
        quote_asset=api.get("quote_asset", "USDT"),
        # Trading
        trading_mode=trading_mode,
        symbols=_symbols(symbols) if symbols else _symbols(trading.get("symbols", DEFAULT_SYMBOLS)),
        kline_interval=env("KLINE_INTERVAL", trading.get("kline_interval", "1m")),
        history_limit=env_int("HISTORY_LIMIT", trading.get("history_limit", 100)),
        cycle_interval=env("CYCLE_INTERVAL", trading.get("cycle_interval", "1m")),
        initial_capital=env_float("INITIAL_CAPITAL", trading.get("initial_capital", 100.0)),
        # Strategy
        ema_fast=env_int("EMA_FAST", strategy.get("ema_fast", 20)),
        ema_slow=env_int("EMA_SLOW", strategy.get("ema_slow", 50)),
        rsi_len=env_int("RSI_LEN", strategy.get("rsi_len", 14)),
        bb_len=env_int("BB_LEN", strategy.get("bb_len", 20)),
        bb_mult=env_float("BB_MULT", strategy.get("bb_mult", 2.0)),
        macd_fast=env_int("MACD_FAST", strategy.get("macd_fast", 12)),
        macd_slow=env_int("MACD_SLOW", strategy.get("macd_slow", 26)),
        macd_signal=env_int("MACD_SIGNAL", strategy.get("macd_signal", 9)),
        stop_loss_pct=env_float("STOP_LOSS_PCT", strategy.get("stop_loss_pct", 0.05)),
        reward_risk=env_float("REWARD_RISK", strategy.get("reward_risk", 2.0)),
        entry_band_pct=env_float("ENTRY_BAND_PCT", strategy.get("entry_band_pct", 0.002)),
        # Risk
        risk_per_trade=env_float("RISK_PER_TRADE", risk.get("risk_per_trade", 0.02)),
        max_daily_loss_fraction=env_float("MAX_DAILY_LOSS_FRACTION", risk.get("max_daily_loss_fraction", 0.10)),
        max_risk_percent=env_float("MAX_RISK_PERCENT", risk.get("max_risk_percent", 5.0)),
        min_notional=env_float("MIN_NOTIONAL", risk.get("min_notional", 10.0)),
        max_position_pct_equity=env_float("MAX_POSITION_PCT_EQUITY", risk.get("max_position_pct_equity", 50.0)),
        max_open_positions=env_int("MAX_OPEN_POSITIONS", risk.get("max_open_positions", 0)),  # 0 = off
        min_advisory_confidence=None if min_confidence is None else float(min_confidence),
        # Storage
        db_path=Path(env("DB_PATH", storage.get("db_path", "data/market_scanner.db"))),
        record_no_trade_signals=env_bool("RECORD_NO_TRADE_SIGNALS", storage.get("record_no_trade_signals", False)),
        # Logging
        log_level=env("LOG_LEVEL", logging_cfg.get("level", "INFO")),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "market_scanner.log"),
        alerts_file=logging_cfg.get("alerts_file", "alerts.log"),
    )


class Config:
    """Unified configuration. Immutable after load."""

    __slots__ = (
        "binance_api_key", "binance_api_secret", "use_testnet", "quote_asset",
        "trading_mode", "symbols", "kline_interval", "history_limit", "cycle_interval", "initial_capital",
        "ema_fast", "ema_slow", "rsi_len", "bb_len", "bb_mult", "macd_fast", "macd_slow", "macd_signal",
        "stop_loss_pct", "reward_risk", "entry_band_pct",
        "risk_per_trade", "max_daily_loss_fraction", "max_risk_percent", "min_notional",
        "max_position_pct_equity", "max_open_positions", "min_advisory_confidence",
        "db_path", "record_no_trade_signals",
        "log_level", "log_dir", "log_file", "alerts_file",
    )

    def __init__(
        self,
        binance_api_key: str = "",
        binance_api_secret: str = "",
        use_testnet: bool = True,
        quote_asset: str = "USDT",
        trading_mode: str = "paper",
        symbols: Optional[List[str]] = None,
        kline_interval: str = "1m",
        history_limit: int = 100,
        cycle_interval: str = "1m",
        initial_capital: float = 100.0,
        ema_fast: int = 20,
        ema_slow: int = 50,
        rsi_len: int = 14,
        bb_len: int = 20,
        bb_mult: float = 2.0,
        macd_fast: int = 12,
        macd_slow: int = 26,
        macd_signal: int = 9,
        stop_loss_pct: float = 0.05,
        reward_risk: float = 2.0,
        entry_band_pct: float = 0.002,
        risk_per_trade: float = 0.02,
        max_daily_loss_fraction: float = 0.10,
        max_risk_percent: float = 5.0,
        min_notional: float = 10.0,
        max_position_pct_equity: float = 50.0,
        max_open_positions: int = 0,
        min_advisory_confidence: Optional[float] = 75.0,
        db_path: Path = None,
        record_no_trade_signals: bool = False,
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "market_scanner.log",
        alerts_file: Optional[str] = "alerts.log",
    ):
        self.binance_api_key = binance_api_key
        self.binance_api_secret = binance_api_secret
        self.use_testnet = use_testnet
        self.quote_asset = quote_asset
        self.trading_mode = trading_mode
        self.symbols = list(symbols) if symbols else list(DEFAULT_SYMBOLS)
        self.kline_interval = kline_interval
        self.history_limit = history_limit
        self.cycle_interval = cycle_interval
        self.initial_capital = initial_capital
        self.ema_fast = ema_fast
        self.ema_slow = ema_slow
        self.rsi_len = rsi_len
        self.bb_len = bb_len
        self.bb_mult = bb_mult
        self.macd_fast = macd_fast
        self.macd_slow = macd_slow
        self.macd_signal = macd_signal
        self.stop_loss_pct = stop_loss_pct
        self.reward_risk = reward_risk
        self.entry_band_pct = entry_band_pct
        self.risk_per_trade = risk_per_trade
        self.max_daily_loss_fraction = max_daily_loss_fraction
        self.max_risk_percent = max_risk_percent
        self.min_notional = min_notional
        self.max_position_pct_equity = max_position_pct_equity
        self.max_open_positions = max_open_positions
        self.min_advisory_confidence = min_advisory_confidence
        self.db_path = Path(db_path) if db_path else Path("data/market_scanner.db")
        self.record_no_trade_signals = record_no_trade_signals
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file
        self.alerts_file = alerts_file

    @property
    def is_paper(self) -> bool:
        return self.trading_mode == "paper"
