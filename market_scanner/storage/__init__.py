"""Storage: SQLite repositories for signals, trades and account snapshots."""

from market_scanner.storage.db import get_connection, init_db
from market_scanner.storage.signal_repo import SignalRepo
from market_scanner.storage.snapshot_repo import SnapshotRepo
from market_scanner.storage.trade_repo import TradeRepo

__all__ = ["get_connection", "init_db", "SignalRepo", "SnapshotRepo", "TradeRepo"]
